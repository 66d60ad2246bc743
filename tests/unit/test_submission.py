"""
Unit tests for input encryption and metric submission.

Tests cover:
- EncryptedInputBuilder range checks and failure mapping
- Context binding of input proofs
- SubmissionCoordinator readiness, field order and ledger failures
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from healthscore.domain.scoring.encryption import MAX_CLEAR_VALUE, EncryptedInputBuilder
from healthscore.domain.scoring.submission import (
    FIELD_ORDER,
    ClearMetricSet,
    SubmissionCoordinator,
)
from healthscore.infrastructure.chain.base import LedgerError, TransactionReceipt
from healthscore.infrastructure.fhe.base import EncryptedField, EncryptionEngine
from healthscore.shared.exceptions import (
    EncryptionFailureError,
    NotReadyError,
    TransactionFailureError,
)

CONTRACT = "0x" + "c" * 40
USER = "0x" + "a" * 40


@pytest.fixture
def mock_engine() -> MagicMock:
    """Engine producing predictable fields: handle h<value>, proof of one byte."""
    engine = MagicMock(spec=EncryptionEngine)
    engine.encrypt_uint32 = AsyncMock(
        side_effect=lambda contract, user, value: EncryptedField(
            handle=f"h{value}", proof=bytes([value])
        )
    )
    return engine


@pytest.fixture
def mock_signer() -> MagicMock:
    signer = MagicMock()
    signer.get_address = AsyncMock(return_value=USER)
    return signer


@pytest.fixture
def mock_contract() -> MagicMock:
    tx = MagicMock()
    tx.tx_hash = "0xfeed"
    tx.wait = AsyncMock(return_value=TransactionReceipt(tx_hash="0xfeed", block_number=7))
    contract = MagicMock()
    contract.submit_metrics = AsyncMock(return_value=tx)
    return contract


class TestEncryptedInputBuilder:
    """Tests for single-value encryption."""

    @pytest.mark.asyncio
    async def test_build_returns_engine_field(self, mock_engine):
        builder = EncryptedInputBuilder(mock_engine)

        field = await builder.build(45, CONTRACT, USER)

        assert field == EncryptedField(handle="h45", proof=bytes([45]))
        mock_engine.encrypt_uint32.assert_awaited_once_with(CONTRACT, USER, 45)

    @pytest.mark.asyncio
    async def test_missing_engine_fails(self):
        builder = EncryptedInputBuilder(None)

        with pytest.raises(EncryptionFailureError):
            await builder.build(45, CONTRACT, USER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [-1, MAX_CLEAR_VALUE + 1])
    async def test_out_of_range_fails_without_engine_call(self, mock_engine, value):
        builder = EncryptedInputBuilder(mock_engine)

        with pytest.raises(EncryptionFailureError):
            await builder.build(value, CONTRACT, USER)

        mock_engine.encrypt_uint32.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bool_is_rejected(self, mock_engine):
        builder = EncryptedInputBuilder(mock_engine)

        with pytest.raises(EncryptionFailureError):
            await builder.build(True, CONTRACT, USER)

    @pytest.mark.asyncio
    async def test_engine_error_is_wrapped(self, mock_engine):
        mock_engine.encrypt_uint32 = AsyncMock(side_effect=RuntimeError("wasm not loaded"))
        builder = EncryptedInputBuilder(mock_engine)

        with pytest.raises(EncryptionFailureError) as exc_info:
            await builder.build(1, CONTRACT, USER)

        assert "wasm not loaded" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_upper_bound_is_accepted(self, network):
        builder = EncryptedInputBuilder(network)

        field = await builder.build(MAX_CLEAR_VALUE, CONTRACT, USER)

        assert network.verify_input(field.handle, field.proof, CONTRACT, USER) == MAX_CLEAR_VALUE

    @pytest.mark.asyncio
    async def test_proof_is_bound_to_submission_context(self, network):
        builder = EncryptedInputBuilder(network)
        field = await builder.build(120, CONTRACT, USER)

        with pytest.raises(LedgerError) as exc_info:
            network.verify_input(field.handle, field.proof, CONTRACT, "0x" + "b" * 40)

        assert exc_info.value.reason == "InvalidInputProof"

    @pytest.mark.asyncio
    async def test_each_call_produces_fresh_ciphertext(self, network):
        builder = EncryptedInputBuilder(network)

        first = await builder.build(7, CONTRACT, USER)
        second = await builder.build(7, CONTRACT, USER)

        assert first.handle != second.handle


class TestClearMetricSet:
    def test_smoker_flag_normalized(self):
        assert ClearMetricSet(45, 120, 180, smoker=True).smoker_flag == 1
        assert ClearMetricSet(45, 120, 180, smoker=False).smoker_flag == 0

    def test_ordered_values_follow_contract_order(self):
        metrics = ClearMetricSet(age=45, systolic_bp=120, cholesterol=180, smoker=True)

        assert [name for name, _ in metrics.ordered_values()] == list(FIELD_ORDER)
        assert [value for _, value in metrics.ordered_values()] == [45, 120, 180, 1]


class TestSubmissionCoordinator:
    """Tests for the atomic metric submission."""

    @pytest.mark.asyncio
    async def test_submits_fields_in_declared_order(self, mock_engine, mock_signer, mock_contract):
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(mock_engine), mock_contract, mock_signer, CONTRACT
        )

        receipt = await coordinator.submit(ClearMetricSet(45, 120, 180, smoker=True))

        assert receipt.block_number == 7
        mock_contract.submit_metrics.assert_awaited_once_with(
            "h45", bytes([45]),
            "h120", bytes([120]),
            "h180", bytes([180]),
            "h1", bytes([1]),
        )
        assert [c.args[2] for c in mock_engine.encrypt_uint32.await_args_list] == [45, 120, 180, 1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["engine", "signer", "address", "contract"])
    async def test_not_ready_before_any_encryption(
        self, mock_engine, mock_signer, mock_contract, missing
    ):
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(None if missing == "engine" else mock_engine),
            None if missing == "contract" else mock_contract,
            None if missing == "signer" else mock_signer,
            None if missing == "address" else CONTRACT,
        )

        with pytest.raises(NotReadyError):
            await coordinator.submit(ClearMetricSet(45, 120, 180, smoker=False))

        mock_engine.encrypt_uint32.assert_not_awaited()
        mock_contract.submit_metrics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_encryption_failure_sends_nothing(self, mock_engine, mock_signer, mock_contract):
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(mock_engine), mock_contract, mock_signer, CONTRACT
        )

        with pytest.raises(EncryptionFailureError):
            await coordinator.submit(ClearMetricSet(45, 120, 2**32, smoker=False))

        mock_contract.submit_metrics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejection_reason_is_verbatim(self, mock_engine, mock_signer, mock_contract):
        mock_contract.submit_metrics = AsyncMock(
            side_effect=LedgerError("execution reverted: InvalidInputProof")
        )
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(mock_engine), mock_contract, mock_signer, CONTRACT
        )

        with pytest.raises(TransactionFailureError) as exc_info:
            await coordinator.submit(ClearMetricSet(45, 120, 180, smoker=False))

        assert exc_info.value.reason == "execution reverted: InvalidInputProof"
        assert exc_info.value.message == "execution reverted: InvalidInputProof"

    @pytest.mark.asyncio
    async def test_revert_while_mining(self, network, ledger, owner_wallet):
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(network), ledger.bind(owner_wallet), owner_wallet, ledger.address
        )
        ledger.revert_next("out of gas")

        with pytest.raises(TransactionFailureError) as exc_info:
            await coordinator.submit(ClearMetricSet(45, 120, 180, smoker=False))

        assert exc_info.value.reason == "out of gas"
        assert ledger.submissions == 0

    @pytest.mark.asyncio
    async def test_confirmed_submission_is_visible(self, network, ledger, owner_wallet):
        coordinator = SubmissionCoordinator(
            EncryptedInputBuilder(network), ledger.bind(owner_wallet), owner_wallet, ledger.address
        )

        await coordinator.submit(ClearMetricSet(45, 120, 180, smoker=False))

        assert ledger.submissions == 1
        assert ledger.risk_score_of(owner_wallet.address) != "0x" + "00" * 32
