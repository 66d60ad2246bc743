"""
Unit tests for the decryption authorization lifecycle.

Tests cover:
- Validity predicates and state derivation
- Caching within the validity window and re-signing after expiry
- Coalescing of overlapping ensure() calls
- Cache preservation on signing failure
"""
import asyncio

import pytest

from healthscore.domain.scoring.authorization import (
    SECONDS_PER_DAY,
    AuthorizationObject,
    AuthorizationState,
    DecryptionAuthorizer,
    authorization_state,
    is_within_validity,
)
from healthscore.infrastructure.simulated.wallet import SimulatedWallet, recover_signer
from healthscore.shared.exceptions import AuthorizationFailureError

CONTRACT = "0x" + "c" * 40
USER = "0x" + "a" * 40
START = 1_700_000_000


def _authorization(**overrides) -> AuthorizationObject:
    fields = {
        "public_key": "0xpub",
        "private_key": "0xpriv",
        "signature": "0xsig",
        "contract_addresses": (CONTRACT,),
        "user_address": USER,
        "start_timestamp": START,
        "duration_days": 1,
    }
    fields.update(overrides)
    return AuthorizationObject(**fields)


class TestValidityPredicates:
    """Pure checks over (now, start, duration, identities)."""

    def test_window_is_half_open(self):
        assert is_within_validity(START, START, 1) is True
        assert is_within_validity(START + SECONDS_PER_DAY - 1, START, 1) is True
        assert is_within_validity(START + SECONDS_PER_DAY, START, 1) is False
        assert is_within_validity(START - 1, START, 1) is False

    def test_absent_without_object(self):
        assert authorization_state(None, START, CONTRACT, USER) is AuthorizationState.ABSENT

    def test_valid_inside_window(self):
        state = authorization_state(_authorization(), START + 10, CONTRACT, USER)

        assert state is AuthorizationState.VALID

    def test_expired_after_window(self):
        state = authorization_state(_authorization(), START + SECONDS_PER_DAY, CONTRACT, USER)

        assert state is AuthorizationState.EXPIRED

    def test_other_contract_is_absent(self):
        state = authorization_state(_authorization(), START, "0x" + "d" * 40, USER)

        assert state is AuthorizationState.ABSENT

    def test_contract_set_must_match_exactly(self):
        auth = _authorization(contract_addresses=(CONTRACT, "0x" + "d" * 40))

        assert authorization_state(auth, START, CONTRACT, USER) is AuthorizationState.ABSENT

    def test_other_user_is_absent(self):
        state = authorization_state(_authorization(), START, CONTRACT, "0x" + "b" * 40)

        assert state is AuthorizationState.ABSENT

    def test_address_case_is_ignored(self):
        state = authorization_state(_authorization(), START, CONTRACT.upper(), USER.upper())

        assert state is AuthorizationState.VALID

    def test_private_key_not_in_repr(self):
        assert "0xpriv" not in repr(_authorization())


class TestDecryptionAuthorizer:
    """Tests for ensure() against the simulated network and wallet."""

    @pytest.fixture
    def authorizer(self, network, owner_wallet, ledger, clock) -> DecryptionAuthorizer:
        return DecryptionAuthorizer(network, owner_wallet, ledger.address, 1, clock)

    @pytest.mark.asyncio
    async def test_initial_state_is_absent(self, authorizer):
        assert await authorizer.state() is AuthorizationState.ABSENT

    @pytest.mark.asyncio
    async def test_ensure_signs_bound_request(self, authorizer, owner_wallet, network, ledger, clock):
        auth = await authorizer.ensure()

        assert auth.user_address == owner_wallet.address
        assert auth.contract_addresses == (ledger.address,)
        assert auth.start_timestamp == int(clock.now)
        assert await authorizer.state() is AuthorizationState.VALID

        typed = network.create_eip712(
            auth.public_key, auth.contract_addresses, auth.start_timestamp, auth.duration_days
        )
        assert recover_signer(auth.signature, typed.domain, typed.types, typed.message) == (
            owner_wallet.address
        )

    @pytest.mark.asyncio
    async def test_second_call_within_window_reuses_cache(self, authorizer, owner_wallet, clock):
        first = await authorizer.ensure()
        clock.advance(SECONDS_PER_DAY - 1)
        second = await authorizer.ensure()

        assert second is first
        assert owner_wallet.signature_requests == 1

    @pytest.mark.asyncio
    async def test_resigns_once_after_expiry(self, authorizer, owner_wallet, clock):
        first = await authorizer.ensure()
        clock.advance(SECONDS_PER_DAY)

        assert await authorizer.state() is AuthorizationState.EXPIRED

        second = await authorizer.ensure()

        assert second is not first
        assert authorizer.cached is second
        assert owner_wallet.signature_requests == 2
        assert await authorizer.state() is AuthorizationState.VALID

    @pytest.mark.asyncio
    async def test_overlapping_calls_share_one_signing_flow(self, network, ledger, clock):
        wallet = SimulatedWallet(signing_delay=0.01)
        authorizer = DecryptionAuthorizer(network, wallet, ledger.address, 1, clock)

        results = await asyncio.gather(
            authorizer.ensure(), authorizer.ensure(), authorizer.ensure()
        )

        assert results[0] is results[1] is results[2]
        assert wallet.signature_requests == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_flow(self, network, ledger, clock):
        wallet = SimulatedWallet(signing_delay=0.01)
        authorizer = DecryptionAuthorizer(network, wallet, ledger.address, 1, clock)

        first = asyncio.create_task(authorizer.ensure())
        await asyncio.sleep(0)
        second = asyncio.create_task(authorizer.ensure())
        await asyncio.sleep(0)
        first.cancel()

        auth = await second

        assert authorizer.cached is auth
        assert wallet.signature_requests == 1

    @pytest.mark.asyncio
    async def test_declined_signature_keeps_cache_absent(self, network, ledger, clock):
        wallet = SimulatedWallet(decline_signing=True)
        authorizer = DecryptionAuthorizer(network, wallet, ledger.address, 1, clock)

        with pytest.raises(AuthorizationFailureError):
            await authorizer.ensure()

        assert authorizer.cached is None
        assert await authorizer.state() is AuthorizationState.ABSENT

    @pytest.mark.asyncio
    async def test_declined_resign_keeps_expired_object(self, authorizer, owner_wallet, clock):
        first = await authorizer.ensure()
        clock.advance(SECONDS_PER_DAY)
        owner_wallet.decline_signing = True

        with pytest.raises(AuthorizationFailureError):
            await authorizer.ensure()

        assert authorizer.cached is first
        assert await authorizer.state() is AuthorizationState.EXPIRED

    @pytest.mark.asyncio
    async def test_failed_flow_can_be_retried(self, authorizer, owner_wallet):
        owner_wallet.decline_signing = True
        with pytest.raises(AuthorizationFailureError):
            await authorizer.ensure()

        owner_wallet.decline_signing = False
        auth = await authorizer.ensure()

        assert authorizer.cached is auth
        assert owner_wallet.signature_requests == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_signature(self, authorizer, owner_wallet):
        await authorizer.ensure()
        authorizer.invalidate()

        assert await authorizer.state() is AuthorizationState.ABSENT
        await authorizer.ensure()
        assert owner_wallet.signature_requests == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["engine", "signer", "address"])
    async def test_missing_dependency_fails(self, network, owner_wallet, ledger, clock, missing):
        authorizer = DecryptionAuthorizer(
            None if missing == "engine" else network,
            None if missing == "signer" else owner_wallet,
            None if missing == "address" else ledger.address,
            1,
            clock,
        )

        with pytest.raises(AuthorizationFailureError):
            await authorizer.ensure()

        assert owner_wallet.signature_requests == 0

    @pytest.mark.asyncio
    async def test_invalidate_during_signing_discards_result(self, network, ledger, clock):
        wallet = SimulatedWallet(signing_delay=0.01)
        authorizer = DecryptionAuthorizer(network, wallet, ledger.address, 1, clock)

        pending = asyncio.create_task(authorizer.ensure())
        await asyncio.sleep(0)
        authorizer.invalidate()
        auth = await pending

        assert auth.user_address == wallet.address
        assert authorizer.cached is None
        assert await authorizer.state() is AuthorizationState.ABSENT

    @pytest.mark.asyncio
    async def test_failure_with_no_waiters_is_retrieved(self, network, ledger, clock):
        wallet = SimulatedWallet(decline_signing=True, signing_delay=0.01)
        authorizer = DecryptionAuthorizer(network, wallet, ledger.address, 1, clock)

        waiter = asyncio.create_task(authorizer.ensure())
        await asyncio.sleep(0)
        signing = authorizer._pending[1]
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        await asyncio.wait({signing})
        await asyncio.sleep(0)

        assert signing._log_traceback is False
        assert isinstance(signing.exception(), AuthorizationFailureError)
        assert authorizer._pending is None
