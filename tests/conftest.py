"""
Pytest configuration and fixtures for health score client tests.
"""
from collections.abc import Callable
from typing import Any

import pytest

from healthscore.config import Settings
from healthscore.domain.scoring.session import HealthScoreSession
from healthscore.infrastructure.chain.base import Signer
from healthscore.infrastructure.chain.registry import ContractRegistry
from healthscore.infrastructure.simulated.ledger import SimulatedScoreLedger
from healthscore.infrastructure.simulated.network import SimulatedFhevmNetwork
from healthscore.infrastructure.simulated.wallet import SimulatedWallet

TEST_CHAIN_ID = 31337
TEST_START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = TEST_START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings for the local dev chain."""
    return Settings(
        _env_file=None,
        app_env="development",
        chain_id=TEST_CHAIN_ID,
        authorization_duration_days=1,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def network(clock: FakeClock) -> SimulatedFhevmNetwork:
    """Create the simulated FHE network."""
    return SimulatedFhevmNetwork(chain_id=TEST_CHAIN_ID, clock=clock)


@pytest.fixture
def ledger(network: SimulatedFhevmNetwork) -> SimulatedScoreLedger:
    """Create the simulated ledger running the score contract."""
    return SimulatedScoreLedger(network)


@pytest.fixture
def registry(ledger: SimulatedScoreLedger) -> ContractRegistry:
    return ContractRegistry({TEST_CHAIN_ID: ledger.address})


@pytest.fixture
def owner_wallet() -> SimulatedWallet:
    return SimulatedWallet()


@pytest.fixture
def viewer_wallet() -> SimulatedWallet:
    return SimulatedWallet()


@pytest.fixture
def make_session(
    registry: ContractRegistry,
    network: SimulatedFhevmNetwork,
    ledger: SimulatedScoreLedger,
    clock: FakeClock,
) -> Callable[..., HealthScoreSession]:
    """Build sessions bound to the simulated backend."""

    def _make(signer: Signer | None, **overrides: Any) -> HealthScoreSession:
        kwargs: dict[str, Any] = {
            "chain_id": TEST_CHAIN_ID,
            "registry": registry,
            "signer": signer,
            "engine": network,
            "decryption_service": network,
            "contract_factory": ledger.contract_factory,
            "duration_days": 1,
            "clock": clock,
        }
        kwargs.update(overrides)
        return HealthScoreSession(**kwargs)

    return _make


@pytest.fixture
def owner_session(
    make_session: Callable[..., HealthScoreSession],
    owner_wallet: SimulatedWallet,
) -> HealthScoreSession:
    return make_session(owner_wallet)


@pytest.fixture
def viewer_session(
    make_session: Callable[..., HealthScoreSession],
    viewer_wallet: SimulatedWallet,
) -> HealthScoreSession:
    return make_session(viewer_wallet)
