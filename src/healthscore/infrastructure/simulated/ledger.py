"""In-process ledger running the health score contract."""

import asyncio
import secrets
from collections.abc import Callable

from healthscore.infrastructure.chain.base import (
    ZERO_HANDLE,
    LedgerError,
    PendingTransaction,
    ScoreContract,
    Signer,
    TransactionReceipt,
)
from healthscore.infrastructure.simulated.network import SimulatedFhevmNetwork

ScoringFunction = Callable[[int, int, int, int], int]


def additive_score(age: int, systolic_bp: int, cholesterol: int, smoker_flag: int) -> int:
    return age + systolic_bp + cholesterol + smoker_flag


class SimulatedTransaction(PendingTransaction):
    """Transaction whose state change is applied when it is mined."""

    def __init__(
        self,
        ledger: "SimulatedScoreLedger",
        apply: Callable[[], None],
    ) -> None:
        self._ledger = ledger
        self._apply = apply
        self._tx_hash = "0x" + secrets.token_hex(32)
        self._receipt: TransactionReceipt | None = None

    @property
    def tx_hash(self) -> str:
        return self._tx_hash

    async def wait(self) -> TransactionReceipt:
        if self._receipt is None:
            await asyncio.sleep(self._ledger.confirmation_delay)
            revert = self._ledger.pop_pending_revert()
            if revert is not None:
                raise LedgerError(revert)
            self._apply()
            self._receipt = TransactionReceipt(
                tx_hash=self._tx_hash,
                block_number=self._ledger.mine(),
            )
        return self._receipt


class SimulatedScoreLedger:
    """Contract state: one result handle per submitter plus viewer grants.

    A grant covers the owner's current result and every later one.
    """

    def __init__(
        self,
        network: SimulatedFhevmNetwork,
        address: str | None = None,
        scoring: ScoringFunction = additive_score,
        confirmation_delay: float = 0.0,
    ) -> None:
        self.network = network
        self.address = address or "0x" + secrets.token_hex(20)
        self.scoring = scoring
        self.confirmation_delay = confirmation_delay
        self.block_number = 0
        self.submissions = 0
        self._scores: dict[str, str] = {}
        self._viewers: dict[str, set[str]] = {}
        self._reject_next: str | None = None
        self._revert_next: str | None = None

    def bind(self, signer: Signer) -> "SimulatedScoreContract":
        return SimulatedScoreContract(self, signer)

    def contract_factory(self, address: str, signer: Signer) -> "SimulatedScoreContract":
        """Factory with the (address, signer) signature a session expects."""
        if address.lower() != self.address.lower():
            raise LedgerError(f"No contract deployed at {address}")
        return self.bind(signer)

    def reject_next(self, reason: str) -> None:
        """Make the next state-changing call fail when sent."""
        self._reject_next = reason

    def revert_next(self, reason: str) -> None:
        """Make the next sent transaction revert while being mined."""
        self._revert_next = reason

    def pop_pending_revert(self) -> str | None:
        reason, self._revert_next = self._revert_next, None
        return reason

    def _check_rejection(self) -> None:
        reason, self._reject_next = self._reject_next, None
        if reason is not None:
            raise LedgerError(reason)

    def mine(self) -> int:
        self.block_number += 1
        return self.block_number

    def risk_score_of(self, user: str) -> str:
        return self._scores.get(user.lower(), ZERO_HANDLE)

    def prepare_submission(
        self,
        sender: str,
        inputs: list[tuple[str, bytes]],
    ) -> Callable[[], None]:
        """Validate the encrypted inputs and return the state change."""
        self._check_rejection()
        clear = [
            self.network.verify_input(handle, proof, self.address, sender)
            for handle, proof in inputs
        ]
        if clear[3] not in (0, 1):
            raise LedgerError("InvalidSmokerFlag")

        def apply() -> None:
            handle = self.network.store_result(self.scoring(*clear))
            self.network.allow(handle, self.address)
            self.network.allow(handle, sender)
            for viewer in self._viewers.get(sender.lower(), set()):
                self.network.allow(handle, viewer)
            self._scores[sender.lower()] = handle
            self.submissions += 1

        return apply

    def prepare_grant(self, sender: str, viewer: str) -> Callable[[], None]:
        self._check_rejection()
        if not viewer.startswith("0x") or len(viewer) != 42:
            raise LedgerError("InvalidViewerAddress")

        def apply() -> None:
            self._viewers.setdefault(sender.lower(), set()).add(viewer.lower())
            current = self._scores.get(sender.lower())
            if current is not None:
                self.network.allow(current, viewer)

        return apply


class SimulatedScoreContract(ScoreContract):
    """Contract binding for one signer."""

    def __init__(self, ledger: SimulatedScoreLedger, signer: Signer) -> None:
        self._ledger = ledger
        self._signer = signer

    @property
    def address(self) -> str:
        return self._ledger.address

    async def get_risk_score(self, user: str) -> str:
        return self._ledger.risk_score_of(user)

    async def grant_score_access(self, viewer: str) -> PendingTransaction:
        sender = await self._signer.get_address()
        return SimulatedTransaction(self._ledger, self._ledger.prepare_grant(sender, viewer))

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
        sender = await self._signer.get_address()
        apply = self._ledger.prepare_submission(
            sender,
            [
                (age_ext, age_proof),
                (sbp_ext, sbp_proof),
                (chol_ext, chol_proof),
                (smok_ext, smok_proof),
            ],
        )
        return SimulatedTransaction(self._ledger, apply)
