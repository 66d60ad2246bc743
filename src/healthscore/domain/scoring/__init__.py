"""Scoring domain - confidential submission and disclosure.

This module provides:
- Submission: encrypt clear metrics and submit them in one contract call
- Handles: fetch the opaque result handle of an identity
- Authorization: time-bounded decryption authorization with a single-slot cache
- Decryption: decrypt a handle and normalize the service reply
- Access: grant a viewer decrypt rights
- Session: the orchestrator a UI binds to
"""

from healthscore.domain.scoring.access import AccessGranter
from healthscore.domain.scoring.authorization import (
    AuthorizationObject,
    AuthorizationState,
    DecryptionAuthorizer,
    authorization_state,
    is_within_validity,
)
from healthscore.domain.scoring.decryption import (
    DecryptionExecutor,
    coerce_clear_value,
    normalize_reply,
)
from healthscore.domain.scoring.encryption import EncryptedInputBuilder
from healthscore.domain.scoring.handles import HandleResolver
from healthscore.domain.scoring.session import (
    HealthScoreSession,
    OperationResult,
    OperationState,
    OperationStatus,
)
from healthscore.domain.scoring.submission import ClearMetricSet, SubmissionCoordinator

__all__ = [
    "EncryptedInputBuilder",
    "ClearMetricSet",
    "SubmissionCoordinator",
    "HandleResolver",
    "AuthorizationObject",
    "AuthorizationState",
    "DecryptionAuthorizer",
    "authorization_state",
    "is_within_validity",
    "DecryptionExecutor",
    "coerce_clear_value",
    "normalize_reply",
    "AccessGranter",
    "HealthScoreSession",
    "OperationResult",
    "OperationState",
    "OperationStatus",
]
