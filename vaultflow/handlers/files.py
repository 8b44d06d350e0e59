"""
File node kinds: file-explorer, file-save.

Files travel between nodes as FileExplorerData values: metadata plus text,
or base64 for binary content.
"""

import base64
import logging
import posixpath

from vaultflow.core.errors import NodeExecutionError, UserCancelledError
from vaultflow.core.models import FileExplorerData
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.utils import file_info, is_binary_extension, mime_type_for, parse_file_data
from vaultflow.interaction import InteractionRequest

logger = logging.getLogger(__name__)


async def read_file_data(vault, path: str) -> FileExplorerData:
    """Load a vault file as FileExplorerData, base64-encoding binary extensions."""
    info = file_info(path)
    extension = info["extension"].lower()
    binary = is_binary_extension(extension)
    if binary:
        data = base64.b64encode(await vault.read_bytes(path)).decode("ascii")
    else:
        data = await vault.read_text(path)
    return FileExplorerData(
        **info,
        mime_type=mime_type_for(extension),
        content_type="binary" if binary else "text",
        data=data,
    )


async def handle_file_explorer(ctx: NodeContext) -> StepOutcome:
    if not ctx.prop("saveTo").strip() and not ctx.prop("savePathTo").strip():
        raise NodeExecutionError("file-explorer node requires 'saveTo' or 'savePathTo' property", ctx.node_id)

    mode = ctx.prop("mode", "select")
    extensions = [e.strip().lower().lstrip(".") for e in ctx.prop("extensions").split(",") if e.strip()]

    path = ctx.prop("path").strip()
    if not path:
        port = ctx.require("interaction")
        response = await port.request(InteractionRequest(
            kind="create-file" if mode == "create" else "select-file",
            node_id=ctx.node_id,
            title="Create file" if mode == "create" else "Select file",
            payload={"extensions": extensions, "default": ctx.prop("default")},
        ))
        if response is None or not response.value:
            raise UserCancelledError("File selection cancelled by user")
        path = str(response.value)

    variables = ctx.writes(savePathTo=path)
    if ctx.prop("saveTo").strip():
        if mode == "create":
            info = file_info(path)
            extension = info["extension"]
            file_data = FileExplorerData(
                **info,
                mime_type=mime_type_for(extension),
                content_type="binary" if is_binary_extension(extension) else "text",
            )
        else:
            vault = ctx.require("vault")
            if not await vault.exists(path):
                raise NodeExecutionError(f"File not found: {path}", ctx.node_id)
            file_data = await read_file_data(vault, path)
        variables.update(ctx.writes(saveTo=file_data.to_variable()))

    return StepOutcome(output={"path": path, "mode": mode}, variables=variables)


async def handle_file_save(ctx: NodeContext) -> StepOutcome:
    source = ctx.prop("source").strip()
    path = ctx.prop("path").strip()
    if not source:
        raise NodeExecutionError("file-save node requires 'source' property", ctx.node_id)
    if not path:
        raise NodeExecutionError("file-save node requires 'path' property", ctx.node_id)
    if source not in ctx.scope:
        raise NodeExecutionError(f"Source variable '{source}' not found", ctx.node_id)

    file_data = parse_file_data(ctx.scope[source])
    if file_data is None or not file_data.data:
        raise NodeExecutionError(f"Source variable '{source}' is not valid FileExplorerData", ctx.node_id)

    if "." not in posixpath.basename(path) and file_data.extension:
        path = f"{path}.{file_data.extension}"

    vault = ctx.require("vault")
    if file_data.content_type == "binary":
        await vault.write_bytes(path, base64.b64decode(file_data.data))
    else:
        await vault.write_text(path, file_data.data)
    logger.info(f"Saved {file_data.content_type} file {path}")

    return StepOutcome(
        output={"path": path, "contentType": file_data.content_type},
        variables=ctx.writes(savePathTo=path),
    )


HANDLERS = {
    "file-explorer": handle_file_explorer,
    "file-save": handle_file_save,
}
