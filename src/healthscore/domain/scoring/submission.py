"""Encrypt a metric set and submit it as one contract call."""

from dataclasses import dataclass

from healthscore.domain.scoring.encryption import EncryptedInputBuilder
from healthscore.infrastructure.chain.base import (
    LedgerError,
    ScoreContract,
    Signer,
    TransactionReceipt,
)
from healthscore.infrastructure.fhe.base import EncryptedField
from healthscore.shared.exceptions import NotReadyError, TransactionFailureError
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

# Argument order of submitMetrics on the contract
FIELD_ORDER = ("age", "systolic_bp", "cholesterol", "smoker_flag")


@dataclass(frozen=True)
class ClearMetricSet:
    """Clear health metrics for one submission attempt."""

    age: int
    systolic_bp: int
    cholesterol: int
    smoker: bool

    @property
    def smoker_flag(self) -> int:
        return 1 if self.smoker else 0

    def ordered_values(self) -> list[tuple[str, int]]:
        return [(name, getattr(self, name)) for name in FIELD_ORDER]


class SubmissionCoordinator:
    """Encrypts every field and submits them together, then waits for finality.

    Either the whole set is confirmed on the ledger or nothing is considered
    submitted.
    """

    def __init__(
        self,
        builder: EncryptedInputBuilder,
        contract: ScoreContract | None,
        signer: Signer | None,
        contract_address: str | None,
    ) -> None:
        self.builder = builder
        self.contract = contract
        self.signer = signer
        self.contract_address = contract_address

    def _check_ready(self) -> None:
        missing = []
        if self.builder.engine is None:
            missing.append("encryption capability")
        if self.signer is None:
            missing.append("signer")
        if not self.contract_address:
            missing.append("contract address")
        if self.contract is None:
            missing.append("contract binding")
        if missing:
            raise NotReadyError(missing)

    async def submit(self, metrics: ClearMetricSet) -> TransactionReceipt:
        """Submit ``metrics`` and return the confirmed receipt.

        Raises:
            NotReadyError: If a dependency is absent (before any encryption)
            EncryptionFailureError: If a field cannot be encrypted
            TransactionFailureError: If the ledger rejects or reverts
        """
        self._check_ready()
        assert self.signer is not None and self.contract is not None
        assert self.contract_address is not None

        submitter = await self.signer.get_address()

        encrypted: list[EncryptedField] = []
        for name, value in metrics.ordered_values():
            encrypted.append(
                await self.builder.build(value, self.contract_address, submitter)
            )
            logger.debug("metric_encrypted", field=name)

        args: list[str | bytes] = []
        for field in encrypted:
            args.extend((field.handle, field.proof))

        try:
            tx = await self.contract.submit_metrics(*args)
            logger.info("metrics_transaction_sent", tx_hash=tx.tx_hash, submitter=submitter)
            receipt = await tx.wait()
        except LedgerError as e:
            logger.warning("metrics_submission_failed", submitter=submitter, reason=e.reason)
            raise TransactionFailureError(e.reason) from e

        logger.info(
            "metrics_submitted",
            submitter=submitter,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
        )
        return receipt
