"""Async HTTP client for outbound mail APIs, with a bounded timeout."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient.

    Created once in the app lifespan and closed on shutdown. ``transport``
    lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "elite-auth",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
