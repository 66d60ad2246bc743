"""FHE capability ports and the decryption relayer client."""

from healthscore.infrastructure.fhe.base import (
    DecryptionService,
    DecryptReply,
    EncryptedField,
    EncryptionEngine,
    HandleContractPair,
    IdentityKeyedMapping,
    KeyPair,
    NamedResultsSequence,
    PositionalSequence,
    TypedDataPayload,
    reply_from_payload,
)
from healthscore.infrastructure.fhe.relayer import HttpDecryptionService

__all__ = [
    # Base classes
    "EncryptionEngine",
    "DecryptionService",
    # Wire types
    "EncryptedField",
    "KeyPair",
    "TypedDataPayload",
    "HandleContractPair",
    # Reply variants
    "DecryptReply",
    "PositionalSequence",
    "NamedResultsSequence",
    "IdentityKeyedMapping",
    "reply_from_payload",
    # Real services
    "HttpDecryptionService",
]
