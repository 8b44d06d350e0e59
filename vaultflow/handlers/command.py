"""
The ``command`` node kind: send a prompt to the model provider.
"""

import logging

from vaultflow.core.errors import NodeExecutionError
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.utils import extension_for_mime, parse_file_data, split_list
from vaultflow.providers import Attachment, ModelRequest

logger = logging.getLogger(__name__)


def _collect_attachments(ctx: NodeContext) -> list:
    """Binary FileExplorerData variables named in ``attachments``; text files travel in the prompt."""
    attachments = []
    for var_name in split_list(ctx.prop("attachments")):
        file_data = parse_file_data(ctx.scope.get(var_name))
        if file_data is None:
            logger.warning(f"Attachment variable '{var_name}' does not hold file data; skipping")
            continue
        if file_data.content_type == "binary" and file_data.data:
            attachments.append(Attachment(mime_type=file_data.mime_type, data=file_data.data, name=file_data.basename))
    return attachments


def _image_variable(images: list):
    files = []
    for idx, image in enumerate(images, start=1):
        extension = image.mime_type.split("/")[-1] or extension_for_mime(image.mime_type) or "png"
        filename = f"generated-image-{idx}.{extension}"
        files.append({
            "path": filename,
            "basename": filename,
            "name": f"generated-image-{idx}",
            "extension": extension,
            "mimeType": image.mime_type,
            "contentType": "binary",
            "data": image.data,
        })
    return files[0] if len(files) == 1 else files


async def handle_command(ctx: NodeContext) -> StepOutcome:
    prompt = ctx.prop("prompt")
    if not prompt.strip():
        raise NodeExecutionError("Command node missing 'prompt' property", ctx.node_id)

    model = ctx.require("model")
    request = ModelRequest(
        prompt=prompt,
        model=ctx.prop("model") or None,
        system_prompt=ctx.prop("systemPrompt") or None,
        rag_setting=ctx.prop("ragSetting") or None,
        vault_tools=ctx.prop("vaultTools") or None,
        mcp_servers=split_list(ctx.prop("mcpServers")),
        attachments=_collect_attachments(ctx),
    )

    result = await model.generate(request)

    variables = ctx.writes(saveTo=result.text)
    if result.images:
        variables.update(ctx.writes(saveImageTo=_image_variable(result.images)))

    output = {"text": result.text, "model": result.model}
    if result.usage:
        output["usage"] = result.usage
    if result.images:
        output["images"] = len(result.images)
    return StepOutcome(output=output, variables=variables)


HANDLERS = {
    "command": handle_command,
}
