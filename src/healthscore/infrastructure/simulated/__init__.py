"""Simulated ledger, FHE network and wallet for development and testing."""

from healthscore.infrastructure.simulated.ledger import (
    SimulatedScoreContract,
    SimulatedScoreLedger,
    SimulatedTransaction,
    additive_score,
)
from healthscore.infrastructure.simulated.network import (
    NameResolutionError,
    SimulatedFhevmNetwork,
)
from healthscore.infrastructure.simulated.wallet import SimulatedWallet

__all__ = [
    "SimulatedFhevmNetwork",
    "SimulatedScoreLedger",
    "SimulatedScoreContract",
    "SimulatedTransaction",
    "SimulatedWallet",
    "NameResolutionError",
    "additive_score",
]
