"""
Network node kinds: http, json, mcp.
"""

import base64
import json
import logging
import posixpath
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from vaultflow.core.errors import NodeExecutionError
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.utils import (
    extension_for_mime, is_binary_mime, mime_type_for, parse_file_data, parse_headers,
)
from vaultflow.providers import HttpRequest, HttpResponse
from vaultflow.template import load_json_text, resolve

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT", "PATCH")


def _form_fields(ctx: NodeContext) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """
    Build multipart fields from the raw JSON body.

    The JSON is parsed before placeholders are resolved so substituted text
    cannot break it. A key written ``field:filename`` sends its value as a
    file; a value holding FileExplorerData is sent as that file.
    """
    raw = ctx.node.properties.get("body", "")
    try:
        raw_fields = json.loads(raw)
    except ValueError:
        raw_fields = None
    if not isinstance(raw_fields, dict):
        raise NodeExecutionError("form-data contentType requires body to be a valid JSON object", ctx.node_id)

    data: Dict[str, str] = {}
    files: Dict[str, Any] = {}
    for raw_key, raw_value in raw_fields.items():
        key = resolve(raw_key, ctx.scope)
        value = resolve(str(raw_value), ctx.scope)
        field_name, sep, filename = key.partition(":")

        file_data = parse_file_data(value)
        if file_data is not None:
            if file_data.content_type == "binary" and file_data.data:
                payload = base64.b64decode(file_data.data)
            else:
                payload = file_data.data.encode("utf-8")
            files[field_name] = (file_data.basename, payload, file_data.mime_type)
        elif sep:
            extension = filename.rsplit(".", 1)[-1] if "." in filename else ""
            files[field_name] = (filename, value.encode("utf-8"), mime_type_for(extension))
        else:
            data[key] = value
    return data, files


def build_request(ctx: NodeContext) -> HttpRequest:
    url = ctx.prop("url").strip()
    if not url:
        raise NodeExecutionError("HTTP node missing 'url' property", ctx.node_id)

    method = ctx.prop("method", "GET").upper()
    content_type = ctx.prop("contentType", "json")
    headers = parse_headers(ctx.prop("headers"))
    has_header = any(k.lower() == "content-type" for k in headers)
    request = HttpRequest(url=url, method=method, headers=headers)

    body = ctx.prop("body")
    if not body or method not in BODY_METHODS:
        return request

    if content_type == "form-data":
        data, files = _form_fields(ctx)
        # httpx sets the multipart boundary header itself.
        request.headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
        request.data = data
        request.files = files or None
    elif content_type == "binary":
        file_data = parse_file_data(body)
        if file_data is None or file_data.content_type != "binary" or not file_data.data:
            raise NodeExecutionError("binary contentType requires FileExplorerData with binary content", ctx.node_id)
        request.content = base64.b64decode(file_data.data)
        if not has_header:
            request.headers["Content-Type"] = file_data.mime_type
    else:
        request.content = body.encode("utf-8")
        if not has_header:
            request.headers["Content-Type"] = "text/plain" if content_type == "text" else "application/json"
    return request


def _download_name(url: str, mime_type: str) -> Tuple[str, str]:
    basename = posixpath.basename(urlparse(url).path)
    if basename and "." in basename:
        return basename, basename.rsplit(".", 1)[-1]
    extension = extension_for_mime(mime_type)
    if extension:
        return f"download.{extension}", extension
    return "download", ""


def response_value(url: str, response: HttpResponse, response_type: str = "auto") -> Any:
    """
    Turn a response into the value stored by ``saveTo``.

    Binary payloads become FileExplorerData; JSON text is re-serialized compactly.
    """
    mime_type = (response.content_type or "application/octet-stream").split(";")[0].strip()
    if response_type == "binary":
        binary = True
    elif response_type == "text":
        binary = False
    else:
        binary = is_binary_mime(mime_type)

    if binary:
        basename, extension = _download_name(url, mime_type)
        name = basename.rsplit(".", 1)[0] if "." in basename else basename
        return {
            "path": "",
            "basename": basename,
            "name": name,
            "extension": extension,
            "mimeType": mime_type,
            "contentType": "binary",
            "data": base64.b64encode(response.content).decode("ascii"),
        }

    text = response.text
    try:
        return json.dumps(json.loads(text), ensure_ascii=False, separators=(",", ":"))
    except ValueError:
        return text


async def handle_http(ctx: NodeContext) -> StepOutcome:
    client = ctx.require("http")
    request = build_request(ctx)

    try:
        response = await client.request(request)
    except NodeExecutionError:
        raise
    except Exception as e:
        raise NodeExecutionError(f"HTTP request failed: {request.method} {request.url} - {e}", ctx.node_id) from e

    variables = ctx.writes(saveStatus=response.status)
    if response.is_error and ctx.flag("throwOnError"):
        raise NodeExecutionError(
            f"HTTP {response.status} {request.method} {request.url}: {response.text}", ctx.node_id
        )

    value = response_value(request.url, response, ctx.prop("responseType", "auto"))
    variables.update(ctx.writes(saveTo=value))
    return StepOutcome(output={"status": response.status, "body": value}, variables=variables)


async def handle_json(ctx: NodeContext) -> StepOutcome:
    source = ctx.prop("source").strip()
    if not source:
        raise NodeExecutionError("JSON node missing 'source' property", ctx.node_id)
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("JSON node missing 'saveTo' property", ctx.node_id)
    if source not in ctx.scope:
        raise NodeExecutionError(f"Variable '{source}' not found", ctx.node_id)

    value = ctx.scope[source]
    try:
        parsed = load_json_text(value)
    except ValueError as e:
        raise NodeExecutionError(f"Failed to parse JSON from '{source}': {e}", ctx.node_id) from e
    return StepOutcome(output=parsed, variables=ctx.writes(saveTo=parsed))


def _json_object(text: str, what: str, node_id: str) -> Optional[dict]:
    if not text.strip():
        return None
    try:
        value = json.loads(text)
    except ValueError:
        raise NodeExecutionError(f"Invalid JSON in MCP {what}: {text}", node_id)
    if not isinstance(value, dict):
        raise NodeExecutionError(f"MCP {what} must be a JSON object", node_id)
    return value


async def handle_mcp(ctx: NodeContext) -> StepOutcome:
    url = ctx.prop("url").strip()
    tool = ctx.prop("tool").strip()
    if not url:
        raise NodeExecutionError("MCP node missing 'url' property", ctx.node_id)
    if not tool:
        raise NodeExecutionError("MCP node missing 'tool' property", ctx.node_id)

    headers = _json_object(ctx.prop("headers"), "headers", ctx.node_id)
    args = _json_object(ctx.prop("args"), "args", ctx.node_id) or {}

    client = ctx.require("mcp")
    result = await client.call_tool(url, tool, args, headers)
    if result.is_error:
        raise NodeExecutionError(f"MCP tool execution failed: {result.text}", ctx.node_id)

    return StepOutcome(output=result.text, variables=ctx.writes(saveTo=result.text))


HANDLERS = {
    "http": handle_http,
    "json": handle_json,
    "mcp": handle_mcp,
}
