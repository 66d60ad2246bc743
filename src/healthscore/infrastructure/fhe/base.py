"""Base classes for the encryption capability and decryption service."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from healthscore.shared.exceptions import ResultShapeError


@dataclass(frozen=True)
class EncryptedField:
    """One ciphertext handle plus the proof binding it to (contract, submitter)."""

    handle: str
    proof: bytes


@dataclass(frozen=True)
class KeyPair:
    """Ephemeral key pair used for a decryption authorization."""

    public_key: str
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class TypedDataPayload:
    """EIP-712 domain, types and message to be signed."""

    domain: dict[str, Any]
    types: dict[str, list[dict[str, str]]]
    message: dict[str, Any]


@dataclass(frozen=True)
class HandleContractPair:
    handle: str
    contract_address: str


# ----- Decryption replies -----
#
# The decryption service answers in one of three shapes. Each gets its own
# variant and extraction rule; add a variant rather than probing shapes.


@dataclass(frozen=True)
class PositionalSequence:
    """Reply of the form ``[value, ...]``."""

    values: tuple[Any, ...]

    def first_value(self) -> Any:
        return self.values[0] if self.values else None


@dataclass(frozen=True)
class NamedResultsSequence:
    """Reply of the form ``{"results": [value, ...]}``."""

    results: tuple[Any, ...]

    def first_value(self) -> Any:
        return self.results[0] if self.results else None


@dataclass(frozen=True)
class IdentityKeyedMapping:
    """Reply of the form ``{"<handle>": value, ...}`` in service order."""

    values: Mapping[str, Any]

    def first_value(self) -> Any:
        return next(iter(self.values.values()), None)


DecryptReply = PositionalSequence | NamedResultsSequence | IdentityKeyedMapping


def reply_from_payload(payload: Any) -> DecryptReply:
    """Tag a raw service payload with its reply variant.

    Raises:
        ResultShapeError: If the payload matches none of the known shapes
    """
    if isinstance(payload, (PositionalSequence, NamedResultsSequence, IdentityKeyedMapping)):
        return payload
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        return PositionalSequence(tuple(payload))
    if isinstance(payload, Mapping):
        results = payload.get("results")
        if isinstance(results, Sequence) and not isinstance(results, (str, bytes)):
            return NamedResultsSequence(tuple(results))
        return IdentityKeyedMapping(dict(payload))
    raise ResultShapeError("Unexpected decrypt result shape", payload=payload)


class EncryptionEngine(ABC):
    """Local FHE capability: input encryption and authorization material."""

    @abstractmethod
    async def encrypt_uint32(
        self,
        contract_address: str,
        user_address: str,
        value: int,
    ) -> EncryptedField:
        """Encrypt one 32-bit unsigned value for (contract, user)."""
        pass

    @abstractmethod
    def generate_keypair(self) -> KeyPair:
        pass

    @abstractmethod
    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> TypedDataPayload:
        """Build the typed-data request that authorizes user decryption."""
        pass


class DecryptionService(ABC):
    """Remote service that decrypts handles for an authorized user."""

    @abstractmethod
    async def user_decrypt(
        self,
        requests: Sequence[HandleContractPair],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> DecryptReply:
        """Decrypt ``requests`` for ``user_address``.

        Raises:
            UnauthorizedDecryptError: If the user lacks decrypt rights
            DecryptionServiceError: For transport or server failures
            ResultShapeError: If the reply has no known shape
        """
        pass
