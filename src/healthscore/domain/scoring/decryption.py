"""Decrypt a result handle and normalize the service reply."""

from typing import Any

from healthscore.domain.scoring.authorization import AuthorizationObject
from healthscore.domain.scoring.compat import is_disguised_unauthorized
from healthscore.infrastructure.fhe.base import (
    DecryptionService,
    DecryptReply,
    HandleContractPair,
)
from healthscore.shared.exceptions import (
    HealthScoreError,
    NotReadyError,
    ResultShapeError,
    UnauthorizedDecryptError,
)
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)


def coerce_clear_value(value: Any) -> int:
    """Coerce one decrypted value to an integer.

    Accepts ints, integral floats, decimal strings and 0x-prefixed hex.

    Raises:
        ResultShapeError: If the value cannot be read as an integer
    """
    if isinstance(value, bool) or value is None:
        raise ResultShapeError("Decrypted value is not an integer", payload=value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ResultShapeError("Decrypted value is not an integer", payload=value)
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError as e:
            raise ResultShapeError("Decrypted value is not an integer", payload=value) from e
    raise ResultShapeError("Decrypted value is not an integer", payload=value)


def normalize_reply(reply: DecryptReply) -> int:
    """Take the first positional value of any reply variant as an integer."""
    first = reply.first_value()
    if first is None:
        raise ResultShapeError("Decrypt reply holds no value", payload=reply)
    return coerce_clear_value(first)


class DecryptionExecutor:
    """Calls the decryption service with a handle and a valid authorization."""

    def __init__(self, service: DecryptionService | None) -> None:
        self.service = service

    async def decrypt(
        self,
        handle: str,
        contract_address: str,
        authorization: AuthorizationObject,
    ) -> int:
        """Decrypt ``handle`` to its clear integer.

        Raises:
            NotReadyError: If no decryption service is configured
            UnauthorizedDecryptError: If the user has no grant for the handle
            ResultShapeError: If the reply cannot be normalized
        """
        if self.service is None:
            raise NotReadyError(["decryption service"])

        try:
            reply = await self.service.user_decrypt(
                [HandleContractPair(handle=handle, contract_address=contract_address)],
                authorization.private_key,
                authorization.public_key,
                authorization.signature,
                list(authorization.contract_addresses),
                authorization.user_address,
                authorization.start_timestamp,
                authorization.duration_days,
            )
        except ResultShapeError as e:
            logger.error(
                "decrypt_result_unexpected_shape",
                handle=handle,
                payload=repr(e.payload),
            )
            raise
        except HealthScoreError:
            raise
        except Exception as e:
            if is_disguised_unauthorized(e):
                logger.info(
                    "decrypt_denied_disguised",
                    user_address=authorization.user_address,
                    handle=handle,
                )
                raise UnauthorizedDecryptError(details={"handle": handle}) from e
            raise

        try:
            value = normalize_reply(reply)
        except ResultShapeError as e:
            logger.error(
                "decrypt_result_unexpected_shape",
                handle=handle,
                payload=repr(reply),
                value=repr(e.payload),
            )
            raise ResultShapeError(
                "Unexpected decrypt result shape", payload=reply
            ) from e

        logger.info("score_decrypted", user_address=authorization.user_address, handle=handle)
        return value
