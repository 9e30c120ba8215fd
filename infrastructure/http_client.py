"""Shared async HTTP client with configurable connect/read timeouts."""

from typing import Any, Optional

import httpx

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient with configurable timeouts.

    One instance per external service keeps timeouts independently configurable.
    ``transport`` lets tests swap in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            headers=JSON_HEADERS,
            transport=transport,
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
