"""Factories for external services.

The relayer client holds an httpx.AsyncClient. Build it once per session
and close it on shutdown.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass

from healthscore.config import Settings
from healthscore.infrastructure.chain.registry import ContractRegistry
from healthscore.infrastructure.fhe.base import DecryptionService
from healthscore.infrastructure.fhe.relayer import HttpDecryptionService
from healthscore.infrastructure.simulated.ledger import SimulatedScoreLedger
from healthscore.infrastructure.simulated.network import SimulatedFhevmNetwork

SIMULATED_CHAIN_ID = 31337


def build_decryption_service(settings: Settings) -> DecryptionService | None:
    """Relayer client if a relayer is configured, otherwise None."""
    if not settings.relayer_url or settings.chain_id is None:
        return None
    return HttpDecryptionService(
        base_url=settings.relayer_url,
        chain_id=settings.chain_id,
        api_key=settings.relayer_api_key or None,
        timeout=settings.relayer_timeout,
        max_attempts=settings.relayer_max_attempts,
    )


@dataclass
class SimulatedBackend:
    network: SimulatedFhevmNetwork
    ledger: SimulatedScoreLedger
    registry: ContractRegistry
    chain_id: int


def build_simulated_backend(settings: Settings) -> SimulatedBackend:
    """In-process ledger and FHE network for development."""
    if not settings.is_development:
        raise ValueError("The simulated backend is only available in development")
    chain_id = settings.chain_id or SIMULATED_CHAIN_ID
    network = SimulatedFhevmNetwork(chain_id=chain_id)
    ledger = SimulatedScoreLedger(network)
    registry = ContractRegistry({chain_id: ledger.address})
    return SimulatedBackend(network=network, ledger=ledger, registry=registry, chain_id=chain_id)


async def close_services(*services: object | None) -> None:
    for service in services:
        if service is None:
            continue
        close = getattr(service, "close", None)
        if close is None:
            continue
        if inspect.iscoroutinefunction(close):
            await close()
        else:
            close()
