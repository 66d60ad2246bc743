"""Fetch the opaque result handle stored for an identity."""

from healthscore.infrastructure.chain.base import (
    ZERO_HANDLE,
    LedgerError,
    ScoreContract,
    Signer,
)
from healthscore.shared.exceptions import NotReadyError, TransactionFailureError
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)


class HandleResolver:
    """Read-only lookup of result handles; no authorization needed to fetch."""

    def __init__(self, contract: ScoreContract | None, signer: Signer | None) -> None:
        self.contract = contract
        self.signer = signer

    async def resolve(self, target: str | None = None) -> str | None:
        """Return the latest handle for ``target`` (default: the caller).

        Returns None when no score has been computed for the identity yet.
        """
        missing = []
        if self.contract is None:
            missing.append("contract binding")
        if self.signer is None:
            missing.append("signer")
        if missing:
            raise NotReadyError(missing)
        assert self.contract is not None and self.signer is not None

        who = target or await self.signer.get_address()
        try:
            handle = await self.contract.get_risk_score(who)
        except LedgerError as e:
            raise TransactionFailureError(e.reason) from e

        if not handle or handle.lower() == ZERO_HANDLE:
            logger.debug("score_handle_absent", user=who)
            return None
        return handle
