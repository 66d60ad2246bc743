"""HTTP client for the decryption relayer.

The relayer receives the signed user-decrypt request and answers with the
decrypted results for the requested handles. The ephemeral private key is
never sent; when the relayer answers with shares encrypted to the public
key, pass a ``share_decoder`` that finishes decryption locally.
"""

from collections.abc import Callable, Sequence
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from healthscore.infrastructure.fhe.base import (
    DecryptionService,
    DecryptReply,
    HandleContractPair,
    reply_from_payload,
)
from healthscore.shared.exceptions import (
    DecryptionServiceError,
    ResultShapeError,
    UnauthorizedDecryptError,
)
from healthscore.shared.logging import get_logger

logger = get_logger(__name__)

USER_DECRYPT_PATH = "/v1/user-decrypt"

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError)

ShareDecoder = Callable[[Any, str], Any]


class HttpDecryptionService(DecryptionService):
    """Decryption service backed by a relayer HTTP API."""

    def __init__(
        self,
        base_url: str,
        chain_id: int,
        api_key: str | None = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        share_decoder: ShareDecoder | None = None,
    ):
        """Initialize the relayer client.

        Args:
            base_url: Relayer root URL
            chain_id: Chain the contracts are deployed on
            api_key: Optional relayer API key
            timeout: Request timeout in seconds
            max_attempts: Attempts for timeouts and connection errors
            backoff: Exponential backoff multiplier in seconds
            share_decoder: Local decryption of the relayer payload, if needed
        """
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.api_key = api_key
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.share_decoder = share_decoder
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
            if self.api_key:
                headers["x-api-key"] = self.api_key

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_request_body(
        self,
        requests: Sequence[HandleContractPair],
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> dict[str, Any]:
        return {
            "handleContractPairs": [
                {"handle": r.handle, "contractAddress": r.contract_address}
                for r in requests
            ],
            "requestValidity": {
                "startTimestamp": str(start_timestamp),
                "durationDays": str(duration_days),
            },
            "contractsChainId": str(self.chain_id),
            "contractAddresses": list(contract_addresses),
            "userAddress": user_address,
            "signature": signature.removeprefix("0x"),
            "publicKey": public_key.removeprefix("0x"),
        }

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, max=10),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await client.post(USER_DECRYPT_PATH, json=body)
        raise DecryptionServiceError("Relayer request was not attempted")

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
        body = self._build_request_body(
            requests,
            public_key,
            signature,
            contract_addresses,
            user_address,
            start_timestamp,
            duration_days,
        )

        try:
            response = await self._post(body)
        except _TRANSIENT_ERRORS as e:
            logger.warning("relayer_unreachable", url=self.base_url, error=str(e))
            raise DecryptionServiceError(
                f"Decryption relayer unreachable: {e}",
                details={"url": self.base_url},
            ) from e
        except httpx.HTTPError as e:
            raise DecryptionServiceError(f"Decryption relayer error: {e}") from e

        if response.status_code in (401, 403):
            logger.info(
                "relayer_decrypt_denied",
                user_address=user_address,
                status_code=response.status_code,
            )
            raise UnauthorizedDecryptError(
                details={"status_code": response.status_code},
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "relayer_http_error",
                status_code=response.status_code,
                error=str(e),
            )
            raise DecryptionServiceError(
                f"Decryption relayer returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ResultShapeError("Relayer reply is not JSON", payload=response.text) from e

        payload = data.get("response", data) if isinstance(data, dict) else data
        if self.share_decoder is not None:
            payload = self.share_decoder(payload, private_key)

        return reply_from_payload(payload)
