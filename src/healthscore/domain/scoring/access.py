"""Grant a viewer identity decrypt rights on the caller's score."""

from healthscore.infrastructure.chain.base import (
    LedgerError,
    ScoreContract,
    TransactionReceipt,
)
from healthscore.shared.exceptions import NotReadyError, TransactionFailureError
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)


class AccessGranter:
    def __init__(self, contract: ScoreContract | None) -> None:
        self.contract = contract

    async def grant(self, viewer: str) -> TransactionReceipt:
        """Authorize ``viewer`` for current and future results, then confirm."""
        if self.contract is None:
            raise NotReadyError(["contract binding"])

        try:
            tx = await self.contract.grant_score_access(viewer)
            receipt = await tx.wait()
        except LedgerError as e:
            logger.warning("score_access_grant_failed", viewer=viewer, reason=e.reason)
            raise TransactionFailureError(e.reason) from e

        logger.info("score_access_granted", viewer=viewer, tx_hash=receipt.tx_hash)
        return receipt
