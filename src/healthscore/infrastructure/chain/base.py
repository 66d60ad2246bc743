"""Base classes for the ledger contract and transaction signer."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

ZERO_HANDLE = "0x" + "00" * 32


class LedgerError(Exception):
    """The ledger rejected or reverted a call.

    ``reason`` is the revert reason (or node error text) as reported.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


@dataclass
class TransactionReceipt:
    """Confirmation of a mined transaction."""

    tx_hash: str
    block_number: int
    status: int = 1  # 1 = success, 0 = reverted
    logs: list[dict[str, Any]] = field(default_factory=list)


class PendingTransaction(ABC):
    """A sent transaction awaiting confirmation."""

    @property
    @abstractmethod
    def tx_hash(self) -> str:
        pass

    @abstractmethod
    async def wait(self) -> TransactionReceipt:
        """Block until the transaction is mined.

        Raises:
            LedgerError: If the transaction reverted
        """
        pass


class Signer(ABC):
    """The active account able to send transactions and sign typed data."""

    @abstractmethod
    async def get_address(self) -> str:
        pass

    @abstractmethod
    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        """Sign an EIP-712 payload.

        Raises:
            SigningRejectedError: If the account holder declines
        """
        pass


class ScoreContract(ABC):
    """The deployed health score contract, bound to one address and signer."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    async def get_risk_score(self, user: str) -> str:
        """Return the result handle stored for ``user`` (read-only)."""
        pass

    @abstractmethod
    async def grant_score_access(self, viewer: str) -> PendingTransaction:
        pass

    @abstractmethod
    async def submit_metrics(
        self,
        age_ext: str,
        age_proof: bytes,
        sbp_ext: str,
        sbp_proof: bytes,
        chol_ext: str,
        chol_proof: bytes,
        smok_ext: str,
        smok_proof: bytes,
    ) -> PendingTransaction:
        """Submit the four encrypted metrics in declared order."""
        pass
