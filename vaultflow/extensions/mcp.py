"""
MCP client for remote tool servers over Streamable HTTP.

Speaks JSON-RPC 2.0: ``initialize``, the ``notifications/initialized``
notification, then ``tools/call``. Responses may be plain JSON or an SSE
stream whose last ``data:`` line carries the result.
"""

import itertools
import json
import logging
from typing import Any, Dict, Optional

import httpx

from vaultflow.core.errors import NodeExecutionError
from vaultflow.providers import McpToolResult

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "vaultflow", "version": "0.1.0"}


class McpError(NodeExecutionError):
    """The MCP server returned a JSON-RPC error or an unreadable response."""


class McpSession:
    """One initialized session against a single server URL."""

    def __init__(self, client: httpx.AsyncClient, url: str, headers: Optional[Dict[str, str]] = None):
        self.client = client
        self.url = url
        self.headers = dict(headers or {})
        self.session_id: Optional[str] = None
        self._ids = itertools.count(1)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self.headers,
        }
        if self.session_id:
            headers["Mcp-Session-Id"] = self.session_id
        return headers

    async def send_request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or {}}
        response = await self.client.post(self.url, headers=self._headers(), json=payload)
        response.raise_for_status()

        session_id = response.headers.get("mcp-session-id")
        if session_id:
            self.session_id = session_id

        if "text/event-stream" in response.headers.get("content-type", ""):
            message = parse_sse(response.text)
        else:
            message = response.json()

        if message.get("error"):
            error = message["error"]
            raise McpError(f"MCP Error {error.get('code')}: {error.get('message')}")
        return message.get("result")

    async def send_notification(self, method: str):
        payload = {"jsonrpc": "2.0", "method": method}
        await self.client.post(self.url, headers=self._headers(), json=payload)

    async def initialize(self) -> Any:
        result = await self.send_request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": CLIENT_INFO,
        })
        await self.send_notification("notifications/initialized")
        return result

    async def close(self):
        if self.session_id:
            headers = dict(self.headers)
            headers["Mcp-Session-Id"] = self.session_id
            try:
                await self.client.delete(self.url, headers=headers)
            except httpx.HTTPError as e:
                logger.debug(f"Ignoring MCP session close failure for {self.url}: {e}")
            self.session_id = None


def parse_sse(text: str) -> Dict[str, Any]:
    """The JSON-RPC message in the last ``data:`` line of an SSE body."""
    last = ""
    for line in text.splitlines():
        if line.startswith("data:"):
            last = line[5:].strip()
    if not last:
        raise McpError("No data received in SSE response")
    return json.loads(last)


class McpHttpClient:
    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize MCP client.

        Args:
            timeout: Request timeout in seconds
            transport: Custom transport (tests pass ``httpx.MockTransport``)
        """
        self.timeout = timeout
        self.transport = transport

    async def call_tool(
        self, url: str, tool: str, args: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> McpToolResult:
        """
        Call a tool on the server at ``url`` in a fresh session.

        Returns:
            The tool's content blocks and error flag
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            session = McpSession(client, url, headers)
            try:
                await session.initialize()
                logger.debug(f"Calling MCP tool '{tool}' at {url}")
                result = await session.send_request("tools/call", {"name": tool, "arguments": args})
            except httpx.HTTPError as e:
                raise McpError(f"MCP request failed: {e}") from e
            finally:
                await session.close()

        result = result or {}
        return McpToolResult(content=list(result.get("content", [])), is_error=bool(result.get("isError")))
