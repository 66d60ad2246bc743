"""Time-bounded decryption authorization: create, cache, invalidate.

The authorization lifecycle is an explicit state derived on every request
from the cached object and the current time:

- ABSENT: nothing cached, or the cached object is bound to another
  (contract, user) context
- VALID: bound to the queried context and inside its validity window
- EXPIRED: bound to the queried context but outside its window

There is no background expiry. ``ensure()`` re-signs lazily when the state
is not VALID, and overlapping callers share one signing flow.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from healthscore.infrastructure.chain.base import Signer
from healthscore.infrastructure.fhe.base import EncryptionEngine
from healthscore.observability.metrics import SIGNING_FLOWS
from healthscore.shared.exceptions import AuthorizationFailureError, HealthScoreError
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400


class AuthorizationState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuthorizationObject:
    """Signed user-decrypt request bound to contracts, a user and a window."""

    public_key: str
    private_key: str = field(repr=False)
    signature: str
    contract_addresses: tuple[str, ...]
    user_address: str
    start_timestamp: int
    duration_days: int

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY


def is_within_validity(now: float, start_timestamp: int, duration_days: int) -> bool:
    """True while ``now`` lies in [start, start + duration)."""
    return start_timestamp <= now < start_timestamp + duration_days * SECONDS_PER_DAY


def is_bound_to(
    authorization: AuthorizationObject,
    contract_address: str,
    user_address: str,
) -> bool:
    """True if the object covers exactly this contract and user."""
    return (
        [a.lower() for a in authorization.contract_addresses] == [contract_address.lower()]
        and authorization.user_address.lower() == user_address.lower()
    )


def authorization_state(
    authorization: AuthorizationObject | None,
    now: float,
    contract_address: str,
    user_address: str,
) -> AuthorizationState:
    if authorization is None or not is_bound_to(authorization, contract_address, user_address):
        return AuthorizationState.ABSENT
    if not is_within_validity(now, authorization.start_timestamp, authorization.duration_days):
        return AuthorizationState.EXPIRED
    return AuthorizationState.VALID


class DecryptionAuthorizer:
    """Owns the single-slot authorization cache for a session.

    Only this class writes the slot. Readers obtain the object through
    ``ensure()``.
    """

    def __init__(
        self,
        engine: EncryptionEngine | None,
        signer: Signer | None,
        contract_address: str | None,
        duration_days: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.signer = signer
        self.contract_address = contract_address
        self.duration_days = duration_days
        self.clock = clock
        self._cached: AuthorizationObject | None = None
        self._pending: tuple[tuple[str, str], asyncio.Task[AuthorizationObject]] | None = None
        # Bumped by invalidate(); flows started before it never fill the slot
        self._generation = 0

    @property
    def cached(self) -> AuthorizationObject | None:
        return self._cached

    async def state(self) -> AuthorizationState:
        """Current state for the session's (contract, user) context."""
        if self.signer is None or not self.contract_address:
            return AuthorizationState.ABSENT
        user = await self.signer.get_address()
        return authorization_state(self._cached, self.clock(), self.contract_address, user)

    def invalidate(self) -> None:
        self._cached = None
        self._pending = None
        self._generation += 1

    async def ensure(self) -> AuthorizationObject:
        """Return a valid authorization, signing a new one if needed.

        Raises:
            AuthorizationFailureError: If a dependency is missing or the
                signing flow fails or is declined
        """
        if self.engine is None or self.signer is None or not self.contract_address:
            raise AuthorizationFailureError(
                "Decryption capability, signer or contract address not ready"
            )

        user = await self.signer.get_address()
        context = (self.contract_address.lower(), user.lower())

        state = authorization_state(self._cached, self.clock(), self.contract_address, user)
        if state is AuthorizationState.VALID:
            assert self._cached is not None
            return self._cached

        if self._pending is not None and self._pending[0] == context:
            logger.debug("authorization_signing_joined", user_address=user)
            return await asyncio.shield(self._pending[1])

        logger.info("authorization_signing_started", user_address=user, previous_state=state.value)
        task = asyncio.get_running_loop().create_task(
            self._sign(self.contract_address, user, self._generation)
        )
        self._pending = (context, task)
        task.add_done_callback(self._clear_pending)
        return await asyncio.shield(task)

    def _clear_pending(self, task: asyncio.Task[AuthorizationObject]) -> None:
        if self._pending is not None and self._pending[1] is task:
            self._pending = None
        # Retrieve the outcome even when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def _sign(
        self, contract_address: str, user: str, generation: int
    ) -> AuthorizationObject:
        assert self.engine is not None and self.signer is not None

        start = int(self.clock())
        try:
            keypair = self.engine.generate_keypair()
            typed = self.engine.create_eip712(
                keypair.public_key, [contract_address], start, self.duration_days
            )
            signature = await self.signer.sign_typed_data(typed.domain, typed.types, typed.message)
        except HealthScoreError as e:
            SIGNING_FLOWS.labels(outcome="failed").inc()
            logger.warning("authorization_signing_failed", user_address=user, error=e.message)
            raise AuthorizationFailureError(
                f"Failed to generate FHE decryption signature: {e.message}"
            ) from e
        except Exception as e:
            SIGNING_FLOWS.labels(outcome="failed").inc()
            logger.warning("authorization_signing_failed", user_address=user, error=str(e))
            raise AuthorizationFailureError(
                f"Failed to generate FHE decryption signature: {e}"
            ) from e

        authorization = AuthorizationObject(
            public_key=keypair.public_key,
            private_key=keypair.private_key,
            signature=signature,
            contract_addresses=(contract_address,),
            user_address=user,
            start_timestamp=start,
            duration_days=self.duration_days,
        )
        if generation != self._generation:
            logger.info("authorization_discarded_after_invalidate", user_address=user)
            return authorization
        # Single assignment: the slot never holds a partial object
        self._cached = authorization
        SIGNING_FLOWS.labels(outcome="signed").inc()
        logger.info(
            "authorization_signed",
            user_address=user,
            start_timestamp=start,
            expires_at=authorization.expires_at,
        )
        return authorization
