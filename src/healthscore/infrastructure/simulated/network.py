"""In-process FHE network: input encryption, ACL and user decryption.

Values are sealed with AES-GCM under a network key rather than encrypted
homomorphically. Input ciphertexts carry ``contract:user`` as associated
data, so a proof only verifies for the submission context it was made for.
"""

import hashlib
import os
import secrets
import time
from collections.abc import Callable, Sequence
from typing import Any, Literal

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from healthscore.infrastructure.chain.base import LedgerError
from healthscore.infrastructure.fhe.base import (
    DecryptionService,
    DecryptReply,
    EncryptedField,
    EncryptionEngine,
    HandleContractPair,
    KeyPair,
    TypedDataPayload,
    reply_from_payload,
)
from healthscore.infrastructure.simulated.wallet import recover_signer
from healthscore.shared.exceptions import (
    DecryptionServiceError,
    UnauthorizedDecryptError,
)
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

UINT32_LIMIT = 2**32
SECONDS_PER_DAY = 86400
_NONCE_LEN = 12

ReplyShape = Literal["sequence", "results", "mapping"]

USER_DECRYPT_TYPES: dict[str, list[dict[str, str]]] = {
    "UserDecryptRequestVerification": [
        {"name": "publicKey", "type": "bytes"},
        {"name": "contractAddresses", "type": "address[]"},
        {"name": "startTimestamp", "type": "uint256"},
        {"name": "durationDays", "type": "uint256"},
    ]
}


class NameResolutionError(Exception):
    """Error raised by an identity layer that tried to resolve a name.

    Some wallet stacks surface a refused decryption this way.
    """

    def __init__(self, message: str, code: str, operation: str) -> None:
        self.code = code
        self.operation = operation
        super().__init__(message)


def _binding(contract_address: str, user_address: str) -> bytes:
    return f"{contract_address.lower()}:{user_address.lower()}".encode()


class SimulatedFhevmNetwork(EncryptionEngine, DecryptionService):
    """Encryption engine, access-control list and decryption service in one."""

    def __init__(
        self,
        chain_id: int = 31337,
        reply_shape: ReplyShape = "sequence",
        disguise_denials: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.chain_id = chain_id
        self.reply_shape = reply_shape
        self.disguise_denials = disguise_denials
        self.clock = clock
        self.verifying_contract = "0x" + secrets.token_hex(20)
        self.decrypt_calls = 0
        self._aead = AESGCM(AESGCM.generate_key(bit_length=256))
        self._results: dict[str, bytes] = {}
        self._acl: dict[str, set[str]] = {}

    # ----- Encryption engine -----

    async def encrypt_uint32(
        self,
        contract_address: str,
        user_address: str,
        value: int,
    ) -> EncryptedField:
        if not 0 <= value < UINT32_LIMIT:
            raise ValueError(f"Value {value} does not fit in 32 bits")
        nonce = os.urandom(_NONCE_LEN)
        ciphertext = self._aead.encrypt(
            nonce, value.to_bytes(4, "big"), _binding(contract_address, user_address)
        )
        proof = nonce + ciphertext
        return EncryptedField(handle=self._input_handle(proof), proof=proof)

    def generate_keypair(self) -> KeyPair:
        key = X25519PrivateKey.generate()
        public = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        private = key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return KeyPair(public_key="0x" + public.hex(), private_key="0x" + private.hex())

    def create_eip712(
        self,
        public_key: str,
        contract_addresses: Sequence[str],
        start_timestamp: int,
        duration_days: int,
    ) -> TypedDataPayload:
        return TypedDataPayload(
            domain={
                "name": "Decryption",
                "version": "1",
                "chainId": self.chain_id,
                "verifyingContract": self.verifying_contract,
            },
            types=USER_DECRYPT_TYPES,
            message={
                "publicKey": public_key,
                "contractAddresses": list(contract_addresses),
                "startTimestamp": str(start_timestamp),
                "durationDays": str(duration_days),
            },
        )

    # ----- Coprocessor and ACL (used by the ledger) -----

    @staticmethod
    def _input_handle(proof: bytes) -> str:
        return "0x" + hashlib.sha256(proof).hexdigest()

    def verify_input(
        self,
        handle: str,
        proof: bytes,
        contract_address: str,
        sender: str,
    ) -> int:
        """Open an input ciphertext for (contract, sender).

        Raises:
            LedgerError: If the handle or proof is not valid in this context
        """
        if self._input_handle(proof) != handle:
            raise LedgerError("InvalidInputHandle")
        nonce, ciphertext = proof[:_NONCE_LEN], proof[_NONCE_LEN:]
        try:
            clear = self._aead.decrypt(nonce, ciphertext, _binding(contract_address, sender))
        except InvalidTag as e:
            raise LedgerError("InvalidInputProof") from e
        return int.from_bytes(clear, "big")

    def store_result(self, value: int) -> str:
        handle = "0x" + secrets.token_hex(32)
        nonce = os.urandom(_NONCE_LEN)
        sealed = self._aead.encrypt(nonce, (value % UINT32_LIMIT).to_bytes(4, "big"), b"result")
        self._results[handle] = nonce + sealed
        return handle

    def allow(self, handle: str, address: str) -> None:
        self._acl.setdefault(handle, set()).add(address.lower())

    def is_allowed(self, handle: str, address: str) -> bool:
        return address.lower() in self._acl.get(handle, set())

    def _open_result(self, handle: str) -> int:
        blob = self._results[handle]
        clear = self._aead.decrypt(blob[:_NONCE_LEN], blob[_NONCE_LEN:], b"result")
        return int.from_bytes(clear, "big")

    # ----- Decryption service -----

    def _deny(self, user_address: str, handle: str) -> Exception:
        logger.info("simulated_decrypt_denied", user_address=user_address, handle=handle)
        if self.disguise_denials:
            return NameResolutionError(
                "network does not support ENS",
                code="UNSUPPORTED_OPERATION",
                operation="getEnsAddress",
            )
        return UnauthorizedDecryptError(details={"handle": handle})

    def _build_payload(self, values: dict[str, int]) -> Any:
        if self.reply_shape == "results":
            return {"results": list(values.values())}
        if self.reply_shape == "mapping":
            return dict(values)
        return list(values.values())

    async def user_decrypt(
        self,
        requests: Sequence[HandleContractPair],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> DecryptReply:
        self.decrypt_calls += 1

        typed = self.create_eip712(public_key, contract_addresses, start_timestamp, duration_days)
        signer = recover_signer(signature, typed.domain, typed.types, typed.message)
        if signer is None or signer != user_address.lower():
            raise DecryptionServiceError("Invalid user decrypt signature")

        now = self.clock()
        if not start_timestamp <= now < start_timestamp + duration_days * SECONDS_PER_DAY:
            raise DecryptionServiceError("User decrypt request is outside its validity window")

        bound = {address.lower() for address in contract_addresses}
        values: dict[str, int] = {}
        for request in requests:
            handle = request.handle
            if (
                request.contract_address.lower() not in bound
                or handle not in self._results
                or not self.is_allowed(handle, user_address)
                or not self.is_allowed(handle, request.contract_address)
            ):
                raise self._deny(user_address, handle)
            values[handle] = self._open_result(handle)

        return reply_from_payload(self._build_payload(values))
