"""Encrypt single clear values into authenticated contract inputs."""

from healthscore.infrastructure.fhe.base import EncryptedField, EncryptionEngine
from healthscore.shared.exceptions import EncryptionFailureError
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

# Inputs are euint32 on the contract side
MAX_CLEAR_VALUE = 2**32 - 1


class EncryptedInputBuilder:
    """Wraps one clear integer into a ciphertext bound to (contract, submitter)."""

    def __init__(self, engine: EncryptionEngine | None) -> None:
        self.engine = engine

    async def build(
        self,
        value: int,
        contract_address: str,
        user_address: str,
    ) -> EncryptedField:
        """Encrypt ``value`` for submission by ``user_address``.

        Raises:
            EncryptionFailureError: If the engine is unavailable, the value is
                outside the 32-bit unsigned range, or encryption fails
        """
        if self.engine is None:
            raise EncryptionFailureError("Encryption capability is not initialized")

        if isinstance(value, bool) or not isinstance(value, int):
            raise EncryptionFailureError(
                f"Expected an integer, got {type(value).__name__}",
                details={"type": type(value).__name__},
            )
        if not 0 <= value <= MAX_CLEAR_VALUE:
            raise EncryptionFailureError(
                f"Value out of range 0..{MAX_CLEAR_VALUE}",
                details={"max": MAX_CLEAR_VALUE},
            )

        try:
            return await self.engine.encrypt_uint32(contract_address, user_address, value)
        except Exception as e:
            logger.warning(
                "input_encryption_failed",
                contract_address=contract_address,
                error=str(e),
            )
            raise EncryptionFailureError(f"Encryption failed: {e}") from e
