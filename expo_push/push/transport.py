"""Transport to the Expo push service.

The dispatch engine only needs ``PushTransport``; ``HttpxTransport`` is
the HTTP implementation used by ``PushClient``.
"""

from typing import Any, Optional, Protocol, runtime_checkable
import logging

import httpx

from expo_push.push.config import (
    DEFAULT_PUSH_CONFIG,
    PUSH_API_PATH,
    RECEIPTS_API_PATH,
    PushConfig,
)
from expo_push.push.errors import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class PushTransport(Protocol):
    """What the dispatch engine and receipt lookups need from a transport.

    Both calls return the parsed JSON body and raise ``TransportError``
    when the service cannot be reached or answers with something that is
    not JSON.
    """

    async def send_batch(self, payload: list[dict]) -> Any:
        ...

    async def fetch_receipts(self, ids: list[str]) -> Any:
        ...


class HttpxTransport:
    """``httpx.AsyncClient`` transport with a connection pool sized to the concurrency limit."""

    def __init__(
        self,
        config: Optional[PushConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = config or DEFAULT_PUSH_CONFIG
        self._client = client
        self._owns_client = client is None

    @property
    def config(self) -> PushConfig:
        return self._config

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "User-Agent": self._config.user_agent,
        }
        if self._config.access_token:
            headers["Authorization"] = f"Bearer {self._config.access_token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=self._headers(),
                timeout=self._config.request_timeout,
                limits=httpx.Limits(
                    max_connections=self._config.concurrency,
                    max_keepalive_connections=self._config.concurrency,
                ),
            )
            self._owns_client = True
        return self._client

    async def send_batch(self, payload: list[dict]) -> Any:
        return await self._post(PUSH_API_PATH, payload)

    async def fetch_receipts(self, ids: list[str]) -> Any:
        return await self._post(RECEIPTS_API_PATH, {"ids": list(ids)})

    async def _post(self, path: str, body: Any) -> Any:
        client = self._get_client()
        try:
            response = await client.post(path, json=body)
        except httpx.HTTPError as exc:
            raise TransportError(f"POST {path} failed: {type(exc).__name__}: {exc}")

        # Expo reports request-level problems in the JSON body, also on 4xx/5xx.
        try:
            parsed = response.json()
        except ValueError:
            raise TransportError(
                f"POST {path} returned a non-JSON body (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if response.is_error:
            logger.warning("POST %s returned HTTP %d", path, response.status_code)
        return parsed

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
