"""In-process wallet for development and tests.

Signatures are Ed25519 over a canonical JSON encoding of the typed data; the
public key is prefixed to the signature so a verifier can recover the
signing address without a key registry.
"""

import asyncio
import hashlib
import json
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from healthscore.infrastructure.chain.base import Signer
from healthscore.shared.exceptions import SigningRejectedError

_PUBLIC_KEY_LEN = 32


def address_for_public_key(public_key: bytes) -> str:
    return "0x" + hashlib.sha256(public_key).digest()[-20:].hex()


def typed_data_digest(
    domain: dict[str, Any],
    types: dict[str, list[dict[str, str]]],
    message: dict[str, Any],
) -> bytes:
    encoded = json.dumps(
        {"domain": domain, "types": types, "message": message},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(encoded.encode()).digest()


def recover_signer(
    signature: str,
    domain: dict[str, Any],
    types: dict[str, list[dict[str, str]]],
    message: dict[str, Any],
) -> str | None:
    """Return the signing address, or None if the signature does not verify."""
    try:
        raw = bytes.fromhex(signature.removeprefix("0x"))
    except ValueError:
        return None
    public_bytes, sig = raw[:_PUBLIC_KEY_LEN], raw[_PUBLIC_KEY_LEN:]
    try:
        Ed25519PublicKey.from_public_bytes(public_bytes).verify(
            sig, typed_data_digest(domain, types, message)
        )
    except (InvalidSignature, ValueError):
        return None
    return address_for_public_key(public_bytes)


class SimulatedWallet(Signer):
    """Signer holding a local Ed25519 key.

    ``decline_signing`` makes every signature request fail the way a user
    rejecting the wallet prompt would. ``signature_requests`` counts prompts.
    """

    def __init__(
        self,
        private_key: Ed25519PrivateKey | None = None,
        decline_signing: bool = False,
        signing_delay: float = 0.0,
    ) -> None:
        self._key = private_key or Ed25519PrivateKey.generate()
        self._public_bytes = self._key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        self.address = address_for_public_key(self._public_bytes)
        self.decline_signing = decline_signing
        self.signing_delay = signing_delay
        self.signature_requests = 0

    async def get_address(self) -> str:
        return self.address

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        message: dict[str, Any],
    ) -> str:
        self.signature_requests += 1
        await asyncio.sleep(self.signing_delay)
        if self.decline_signing:
            raise SigningRejectedError("User rejected the request.")
        signature = self._key.sign(typed_data_digest(domain, types, message))
        return "0x" + (self._public_bytes + signature).hex()
