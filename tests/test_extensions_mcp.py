"""Tests for the MCP Streamable HTTP client."""

import json

import httpx
import pytest

from vaultflow.extensions.mcp import McpError, McpHttpClient, PROTOCOL_VERSION, parse_sse


class FakeMcpServer:
    """Records JSON-RPC traffic and answers like a Streamable HTTP server."""

    def __init__(self, tool_result=None, sse=False, error=None):
        self.tool_result = tool_result or {"content": [{"type": "text", "text": "42"}]}
        self.sse = sse
        self.error = error
        self.messages = []
        self.deleted = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            self.deleted.append(request.headers.get("mcp-session-id"))
            return httpx.Response(200)

        message = json.loads(request.content)
        self.messages.append((message, request.headers.get("mcp-session-id")))
        if "id" not in message:
            return httpx.Response(202)

        if message["method"] == "initialize":
            body = {"jsonrpc": "2.0", "id": message["id"], "result": {"protocolVersion": PROTOCOL_VERSION}}
            return httpx.Response(200, json=body, headers={"Mcp-Session-Id": "sess-1"})

        if self.error:
            body = {"jsonrpc": "2.0", "id": message["id"], "error": self.error}
        else:
            body = {"jsonrpc": "2.0", "id": message["id"], "result": self.tool_result}
        if self.sse:
            text = f"event: message\ndata: {json.dumps(body)}\n\n"
            return httpx.Response(200, text=text, headers={"Content-Type": "text/event-stream"})
        return httpx.Response(200, json=body)


@pytest.mark.asyncio
async def test_call_tool_handshake_and_session():
    server = FakeMcpServer()
    client = McpHttpClient(transport=httpx.MockTransport(server))

    result = await client.call_tool("https://mcp.test/mcp", "answer", {"q": "life"}, {"Authorization": "Bearer t"})

    assert result.text == "42"
    assert not result.is_error
    methods = [m["method"] for m, _ in server.messages]
    assert methods == ["initialize", "notifications/initialized", "tools/call"]
    assert server.messages[2][0]["params"] == {"name": "answer", "arguments": {"q": "life"}}
    # Session id from initialize is sent on later requests and the session is closed
    assert server.messages[2][1] == "sess-1"
    assert server.deleted == ["sess-1"]


@pytest.mark.asyncio
async def test_call_tool_sse_response():
    server = FakeMcpServer(sse=True, tool_result={"content": [{"type": "text", "text": "streamed"}], "isError": True})
    client = McpHttpClient(transport=httpx.MockTransport(server))
    result = await client.call_tool("https://mcp.test/mcp", "t", {})
    assert result.text == "streamed"
    assert result.is_error


@pytest.mark.asyncio
async def test_call_tool_json_rpc_error():
    server = FakeMcpServer(error={"code": -32602, "message": "Invalid params"})
    client = McpHttpClient(transport=httpx.MockTransport(server))
    with pytest.raises(McpError, match="MCP Error -32602: Invalid params"):
        await client.call_tool("https://mcp.test/mcp", "t", {})


@pytest.mark.asyncio
async def test_call_tool_http_error():
    client = McpHttpClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(McpError, match="MCP request failed"):
        await client.call_tool("https://mcp.test/mcp", "t", {})


def test_parse_sse_uses_last_data_line():
    text = 'data: {"id": 1}\n\ndata: {"id": 2}\n'
    assert parse_sse(text) == {"id": 2}
    with pytest.raises(McpError):
        parse_sse("event: ping\n")
