"""Session construction from settings."""

from healthscore import __version__
from healthscore.config import Settings, get_settings
from healthscore.domain.scoring.session import ContractFactory, HealthScoreSession
from healthscore.infrastructure.chain.base import Signer
from healthscore.infrastructure.chain.registry import ContractRegistry
from healthscore.infrastructure.factory import build_decryption_service, build_simulated_backend
from healthscore.infrastructure.fhe.base import DecryptionService, EncryptionEngine
from healthscore.infrastructure.simulated.wallet import SimulatedWallet
from healthscore.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_session(
    signer: Signer | None,
    engine: EncryptionEngine | None,
    contract_factory: ContractFactory | None,
    decryption_service: DecryptionService | None = None,
    settings: Settings | None = None,
) -> HealthScoreSession:
    """Create a session for the configured chain.

    Without an explicit ``decryption_service`` the relayer from settings is
    used (if configured).
    """
    settings = settings or get_settings()
    setup_logging(settings)
    logger.info("healthscore_session_starting", version=__version__, chain_id=settings.chain_id)

    return HealthScoreSession(
        chain_id=settings.chain_id,
        registry=ContractRegistry.from_settings(settings),
        signer=signer,
        engine=engine,
        decryption_service=decryption_service or build_decryption_service(settings),
        contract_factory=contract_factory,
        duration_days=settings.authorization_duration_days,
    )


def create_simulated_session(
    signer: Signer | None = None,
    settings: Settings | None = None,
) -> tuple[HealthScoreSession, Signer]:
    """Create a development session against the in-process backend."""
    settings = settings or get_settings()
    setup_logging(settings)
    backend = build_simulated_backend(settings)
    signer = signer or SimulatedWallet()
    logger.info(
        "healthscore_simulated_session_starting",
        version=__version__,
        chain_id=backend.chain_id,
        contract_address=backend.ledger.address,
    )

    session = HealthScoreSession(
        chain_id=backend.chain_id,
        registry=backend.registry,
        signer=signer,
        engine=backend.network,
        decryption_service=backend.network,
        contract_factory=backend.ledger.contract_factory,
        duration_days=settings.authorization_duration_days,
    )
    return session, signer
