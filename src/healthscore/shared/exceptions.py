"""Custom exception hierarchy for the health score client."""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure classes surfaced at the operation boundary."""

    NOT_READY = "not_ready"
    ENCRYPTION_FAILURE = "encryption_failure"
    TRANSACTION_FAILURE = "transaction_failure"
    AUTHORIZATION_FAILURE = "authorization_failure"
    UNAUTHORIZED_DECRYPT = "unauthorized_decrypt"
    RESULT_SHAPE = "result_shape"
    BUSY = "busy"
    UNEXPECTED = "unexpected"


class HealthScoreError(Exception):
    """Base exception for all health score client errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Readiness Errors -----


class NotReadyError(HealthScoreError):
    """A required dependency (signer, contract binding, encryption) is absent."""

    kind = ErrorKind.NOT_READY

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            message=f"Not ready: missing {', '.join(missing)}",
            details={"missing": missing},
        )


class OperationBusyError(HealthScoreError):
    """Another operation is already running on this session."""

    kind = ErrorKind.BUSY

    def __init__(self, active: str) -> None:
        super().__init__(
            message=f"Another operation is in progress ({active})",
            details={"active": active},
        )


# ----- Encryption Errors -----


class EncryptionFailureError(HealthScoreError):
    """Local encryption of a clear value failed."""

    kind = ErrorKind.ENCRYPTION_FAILURE


# ----- Ledger Errors -----


class TransactionFailureError(HealthScoreError):
    """The ledger rejected or reverted a call."""

    kind = ErrorKind.TRANSACTION_FAILURE

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        self.reason = reason
        super().__init__(message=reason, details=details)


# ----- Authorization Errors -----


class AuthorizationFailureError(HealthScoreError):
    """The decryption authorization could not be produced."""

    kind = ErrorKind.AUTHORIZATION_FAILURE


class SigningRejectedError(HealthScoreError):
    """The signer declined the typed-data signature request."""

    kind = ErrorKind.AUTHORIZATION_FAILURE


class UnauthorizedDecryptError(HealthScoreError):
    """The querying identity has no grant for the requested handle."""

    kind = ErrorKind.UNAUTHORIZED_DECRYPT

    def __init__(
        self,
        message: str = "Address not authorized to decrypt.",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, details=details)


# ----- Decryption Service Errors -----


class DecryptionServiceError(HealthScoreError):
    """Transport or server error from the decryption service."""

    pass


class ResultShapeError(HealthScoreError):
    """The decryption reply could not be normalized to a clear integer."""

    kind = ErrorKind.RESULT_SHAPE

    def __init__(self, message: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(message=message, details={"payload": payload})


class IllegalStateTransition(HealthScoreError):
    """An operation state change that the session never allows."""

    pass
