"""Health score session: sequences the scoring operations for one identity.

The session holds what a UI binds to (contract address, last handle, clear
score, last message, operation state) and runs at most one logical
operation at a time. Every failure is caught at the operation boundary and
returned as an ``OperationResult`` carrying an ``ErrorKind``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from healthscore.config import DEFAULT_AUTHORIZATION_DURATION_DAYS
from healthscore.domain.scoring.access import AccessGranter
from healthscore.domain.scoring.authorization import (
    AuthorizationState,
    DecryptionAuthorizer,
)
from healthscore.domain.scoring.decryption import DecryptionExecutor
from healthscore.domain.scoring.encryption import EncryptedInputBuilder
from healthscore.domain.scoring.handles import HandleResolver
from healthscore.domain.scoring.submission import ClearMetricSet, SubmissionCoordinator
from healthscore.infrastructure.chain.base import ScoreContract, Signer
from healthscore.infrastructure.chain.registry import ContractRegistry
from healthscore.infrastructure.fhe.base import DecryptionService, EncryptionEngine
from healthscore.observability.metrics import record_operation
from healthscore.shared.exceptions import (
    ErrorKind,
    HealthScoreError,
    IllegalStateTransition,
    NotReadyError,
    OperationBusyError,
)
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

ContractFactory = Callable[[str, Signer], ScoreContract]


class OperationState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    FETCHING = "fetching"
    AUTHORIZING = "authorizing"
    DECRYPTING = "decrypting"
    GRANTING = "granting"


_ACTIVE_STATES = [s for s in OperationState if s is not OperationState.IDLE]

# Legal transitions: (from_state, to_state)
_TRANSITIONS: set[tuple[OperationState, OperationState]] = {
    *((OperationState.IDLE, s) for s in _ACTIVE_STATES),
    *((s, OperationState.IDLE) for s in _ACTIVE_STATES),
    (OperationState.AUTHORIZING, OperationState.DECRYPTING),
}


class OperationStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one session operation."""

    status: OperationStatus
    message: str | None = None
    error_kind: ErrorKind | None = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.SUCCEEDED


_FALLBACK_MESSAGES = {
    "submit": "Submission failed",
    "fetch_handle": "Handle lookup failed",
    "decrypt": "Decryption failed",
    "grant": "Grant failed",
}


class HealthScoreSession:
    """Client-side orchestrator for one active identity on one chain.

    The host builds a new session (or calls ``reset()``) when the account or
    chain changes.
    """

    def __init__(
        self,
        chain_id: int | None,
        registry: ContractRegistry,
        signer: Signer | None,
        engine: EncryptionEngine | None,
        decryption_service: DecryptionService | None,
        contract_factory: ContractFactory | None,
        duration_days: int = DEFAULT_AUTHORIZATION_DURATION_DAYS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.chain_id = chain_id
        self.signer = signer
        self.engine = engine
        self.decryption_service = decryption_service
        self.contract_address = registry.resolve(chain_id)

        self.contract: ScoreContract | None = None
        if self.contract_address and signer is not None and contract_factory is not None:
            self.contract = contract_factory(self.contract_address, signer)

        builder = EncryptedInputBuilder(engine)
        self.submitter = SubmissionCoordinator(builder, self.contract, signer, self.contract_address)
        self.resolver = HandleResolver(self.contract, signer)
        self.authorizer = DecryptionAuthorizer(
            engine, signer, self.contract_address, duration_days, clock
        )
        self.executor = DecryptionExecutor(decryption_service)
        self.granter = AccessGranter(self.contract)

        self.handle: str | None = None
        self.clear_score: int | None = None
        self.message: str | None = None
        self._state = OperationState.IDLE
        # Bumped by reset(); operations started earlier do not write results
        self._generation = 0

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not OperationState.IDLE

    @property
    def fhe_ready(self) -> bool:
        return self.engine is not None

    async def authorization_state(self) -> AuthorizationState:
        return await self.authorizer.state()

    def reset(self) -> None:
        """Forget the handle, score, message and cached authorization.

        An operation still in flight finishes, but its outcome is not stored.
        """
        self._generation += 1
        self.handle = None
        self.clear_score = None
        self.message = None
        self.authorizer.invalidate()

    def _transition(self, target: OperationState) -> None:
        if (self._state, target) not in _TRANSITIONS:
            raise IllegalStateTransition(
                f"Illegal transition: {self._state.value} -> {target.value}"
            )
        self._state = target

    async def _run(
        self,
        operation: str,
        state: OperationState,
        body: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        if self.is_busy:
            busy = OperationBusyError(self._state.value)
            record_operation(operation, "busy", 0.0)
            return OperationResult(OperationStatus.FAILED, busy.message, busy.kind)

        self._transition(state)
        self.message = None
        generation = self._generation
        start = time.perf_counter()
        try:
            result = await body()
        except HealthScoreError as e:
            logger.warning(
                "operation_failed",
                operation=operation,
                kind=e.kind.value,
                error=e.message,
            )
            result = OperationResult(OperationStatus.FAILED, e.message, e.kind)
        except Exception as e:
            logger.exception("operation_unexpected_error", operation=operation, error=str(e))
            result = OperationResult(
                OperationStatus.FAILED,
                str(e) or _FALLBACK_MESSAGES[operation],
                ErrorKind.UNEXPECTED,
            )
        finally:
            self._transition(OperationState.IDLE)

        record_operation(operation, result.status.value, time.perf_counter() - start)
        if generation == self._generation:
            self.message = result.message
        return result

    # ----- Operations -----

    async def submit_metrics(
        self,
        age: int,
        systolic_bp: int,
        cholesterol: int,
        smoker: bool,
    ) -> OperationResult:
        """Encrypt and submit the four metrics; the contract computes the score."""
        metrics = ClearMetricSet(
            age=age, systolic_bp=systolic_bp, cholesterol=cholesterol, smoker=smoker
        )

        async def body() -> OperationResult:
            receipt = await self.submitter.submit(metrics)
            return OperationResult(
                OperationStatus.SUCCEEDED,
                "Metrics submitted & score computed.",
                value=receipt,
            )

        return await self._run("submit", OperationState.SUBMITTING, body)

    async def get_score_handle(self, user: str | None = None) -> OperationResult:
        """Fetch the result handle of ``user`` (default: the caller)."""

        async def body() -> OperationResult:
            generation = self._generation
            handle = await self.resolver.resolve(user)
            assert self.signer is not None
            who = user or await self.signer.get_address()
            if generation == self._generation:
                if handle != self.handle:
                    self.clear_score = None
                self.handle = handle
            if handle is None:
                return OperationResult(
                    OperationStatus.SUCCEEDED, f"No score computed yet for {who}."
                )
            return OperationResult(
                OperationStatus.SUCCEEDED,
                f"Handle received for {who}: {handle}",
                value=handle,
            )

        return await self._run("fetch_handle", OperationState.FETCHING, body)

    async def decrypt_score(self) -> OperationResult:
        """Decrypt the held handle. A no-op when no handle is held."""
        handle = self.handle
        if not handle:
            record_operation("decrypt", OperationStatus.SKIPPED.value, 0.0)
            return OperationResult(OperationStatus.SKIPPED)

        async def body() -> OperationResult:
            missing = []
            if not self.contract_address:
                missing.append("contract address")
            if self.signer is None:
                missing.append("signer")
            if self.engine is None:
                missing.append("encryption capability")
            if self.decryption_service is None:
                missing.append("decryption service")
            if missing:
                raise NotReadyError(missing)
            assert self.contract_address is not None
            generation = self._generation

            authorization = await self.authorizer.ensure()
            self._transition(OperationState.DECRYPTING)
            value = await self.executor.decrypt(handle, self.contract_address, authorization)
            if generation == self._generation:
                self.clear_score = value
            return OperationResult(
                OperationStatus.SUCCEEDED, f"Score decrypted: {value}", value=value
            )

        return await self._run("decrypt", OperationState.AUTHORIZING, body)

    async def grant_to(self, viewer: str) -> OperationResult:
        """Let ``viewer`` decrypt the caller's current and future scores."""
        if not viewer:
            record_operation("grant", OperationStatus.SKIPPED.value, 0.0)
            return OperationResult(OperationStatus.SKIPPED)

        async def body() -> OperationResult:
            receipt = await self.granter.grant(viewer)
            return OperationResult(
                OperationStatus.SUCCEEDED, f"Granted to {viewer}", value=receipt
            )

        return await self._run("grant", OperationState.GRANTING, body)
