"""
Helpers shared by the node handlers: header parsing, file metadata and MIME
guessing for ``FileExplorerData`` payloads.
"""

import json
import posixpath
from typing import Any, Dict, Optional

from pydantic import ValidationError

from vaultflow.core.models import FileExplorerData

BINARY_EXTENSIONS = {
    "png", "jpg", "jpeg", "gif", "webp", "bmp", "ico", "tiff", "pdf",
    "zip", "gz", "tar", "mp3", "wav", "ogg", "mp4", "webm", "mov",
}

MIME_BY_EXTENSION = {
    "md": "text/markdown",
    "txt": "text/plain",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "csv": "text/csv",
    "svg": "image/svg+xml",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "gz": "application/gzip",
    "tar": "application/x-tar",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "mp4": "video/mp4",
    "webm": "video/webm",
}

EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "text/plain": "txt",
    "text/javascript": "js",
    "application/octet-stream": "bin",
    "application/x-zip-compressed": "zip",
}
for _ext, _mime in MIME_BY_EXTENSION.items():
    EXTENSION_BY_MIME.setdefault(_mime, _ext)


def file_info(path: str) -> Dict[str, str]:
    """Split a vault path into path, basename, name and extension."""
    basename = posixpath.basename(path)
    dot = basename.rfind(".")
    if dot > 0:
        return {"path": path, "basename": basename, "name": basename[:dot], "extension": basename[dot + 1:]}
    return {"path": path, "basename": basename, "name": basename, "extension": ""}


def mime_type_for(extension: str) -> str:
    return MIME_BY_EXTENSION.get(extension.lower(), "application/octet-stream")


def extension_for_mime(mime_type: str) -> str:
    return EXTENSION_BY_MIME.get(mime_type, "")


def is_binary_extension(extension: str) -> bool:
    return extension.lower() in BINARY_EXTENSIONS


def is_binary_mime(mime_type: str) -> bool:
    """Unknown types are treated as text."""
    if mime_type.startswith("text/"):
        return False
    if mime_type in ("application/json", "application/xml", "application/javascript"):
        return False
    if mime_type.endswith("+xml") or mime_type.endswith("+json"):
        return False
    if mime_type.startswith(("image/", "audio/", "video/")):
        return True
    return mime_type in (
        "application/pdf",
        "application/zip",
        "application/x-zip-compressed",
        "application/octet-stream",
        "application/gzip",
        "application/x-tar",
    )


def parse_file_data(value: Any) -> Optional[FileExplorerData]:
    """
    Read a ``FileExplorerData`` from a variable value (dict or JSON text).

    Returns:
        The parsed payload, or None if the value does not have that shape
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if not isinstance(value, dict):
        return None
    if not {"contentType", "data", "mimeType"} <= set(value):
        return None
    try:
        return FileExplorerData.model_validate(value)
    except ValidationError:
        return None


def parse_headers(text: str) -> Dict[str, str]:
    """Headers given as a JSON object, or as ``Key: Value`` lines."""
    if not text.strip():
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return {str(k): str(v) for k, v in parsed.items()}

    headers = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def split_list(text: str) -> list:
    """Comma-separated names, blanks dropped."""
    return [item.strip() for item in text.split(",") if item.strip()]
