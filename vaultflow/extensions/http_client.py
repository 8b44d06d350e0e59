"""
HTTP provider backed by httpx.
"""

import logging
from typing import Optional

import httpx

from vaultflow.providers import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class HttpxClient:
    """
    Async HTTP client for ``http`` nodes.

    The underlying ``httpx.AsyncClient`` is created lazily and reused.
    """

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client.

        Args:
            timeout: Request timeout in seconds
            transport: Custom transport (tests pass ``httpx.MockTransport``)
        """
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(self, request: HttpRequest) -> HttpResponse:
        client = await self._get_client()
        logger.debug(f"{request.method} {request.url}")

        response = await client.request(
            request.method,
            request.url,
            headers=request.headers or None,
            content=request.content,
            data=request.data,
            files=request.files,
        )
        return HttpResponse(
            status=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            content=response.content,
        )
