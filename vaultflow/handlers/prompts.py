"""
Interactive node kinds: dialog, prompt-file, prompt-selection.

Each suspends on the interaction port; a None response is a user cancel.
Hotkey and event launches pre-seed ``__hotkeyActiveFile__``,
``__hotkeySelection__`` or ``__eventFile__`` so no prompt is needed.
"""

import json
import logging
from typing import Any, Dict, Optional

from vaultflow.core.errors import NodeExecutionError, UserCancelledError
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.notes import note_path
from vaultflow.handlers.utils import file_info, split_list
from vaultflow.interaction import InteractionRequest

logger = logging.getLogger(__name__)


def _seeded_path(value: Any) -> Optional[str]:
    """Path from a seeded file-info variable (dict or JSON text)."""
    if isinstance(value, str) and value:
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if isinstance(value, dict) and value.get("path"):
        return str(value["path"])
    return None


async def handle_dialog(ctx: NodeContext) -> StepOutcome:
    defaults: Dict[str, Any] = {}
    if ctx.prop("defaults"):
        try:
            parsed = json.loads(ctx.prop("defaults"))
        except ValueError:
            logger.warning(f"Dialog '{ctx.node_id}' has invalid JSON in 'defaults'; ignoring")
            parsed = {}
        if isinstance(parsed, dict):
            if "input" in parsed:
                defaults["input"] = parsed["input"]
            if isinstance(parsed.get("selected"), list):
                defaults["selected"] = parsed["selected"]

    port = ctx.require("interaction")
    response = await port.request(InteractionRequest(
        kind="dialog",
        node_id=ctx.node_id,
        title=ctx.prop("title", "Dialog"),
        message=ctx.prop("message"),
        options=split_list(ctx.prop("options")),
        payload={
            "multiSelect": ctx.flag("multiSelect"),
            "button1": ctx.prop("button1", "OK"),
            "button2": ctx.prop("button2") or None,
            "markdown": ctx.flag("markdown"),
            "inputTitle": ctx.prop("inputTitle") or None,
            "multiline": ctx.flag("multiline"),
            "defaults": defaults,
        },
    ))
    if response is None:
        raise UserCancelledError("Dialog cancelled by user")

    result = {"button": response.button, "selected": list(response.selected)}
    if response.input is not None:
        result["input"] = response.input
    return StepOutcome(output=result, variables=ctx.writes(saveTo=result))


async def handle_prompt_file(ctx: NodeContext) -> StepOutcome:
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("prompt-file node missing 'saveTo' property", ctx.node_id)

    path = None
    if not ctx.flag("forcePrompt"):
        path = _seeded_path(ctx.scope.get("__hotkeyActiveFile__")) or _seeded_path(ctx.scope.get("__eventFile__"))

    if path is None:
        port = ctx.require("interaction")
        response = await port.request(InteractionRequest(
            kind="select-note",
            node_id=ctx.node_id,
            title="Select note",
            payload={"default": ctx.prop("default")},
        ))
        if response is None or not response.value:
            raise UserCancelledError("File selection cancelled by user")
        path = str(response.value)

    vault = ctx.require("vault")
    path = note_path(path)
    if not await vault.exists(path):
        raise NodeExecutionError(f"File not found: {path}", ctx.node_id)
    content = await vault.read_text(path)

    variables = ctx.writes(saveTo=content, saveFileTo=file_info(path))
    return StepOutcome(output={"path": path}, variables=variables)


def _whole_text(path: str, content: str) -> Dict[str, Any]:
    return {
        "filePath": path,
        "startLine": 1,
        "endLine": len(content.split("\n")),
        "start": 0,
        "end": len(content),
    }


def _offset(lines: list, position: Dict[str, int]) -> int:
    line = int(position.get("line", 0))
    return sum(len(lines[i]) + 1 for i in range(min(line, len(lines)))) + int(position.get("ch", 0))


async def handle_prompt_selection(ctx: NodeContext) -> StepOutcome:
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("prompt-selection node missing 'saveTo' property", ctx.node_id)

    seeded = ctx.scope.get("__hotkeySelection__")
    if seeded:
        info = ctx.scope.get("__hotkeySelectionInfo__")
        variables = ctx.writes(saveTo=str(seeded))
        if info:
            variables.update(ctx.writes(saveSelectionTo=info))
        return StepOutcome(output={"source": "hotkey"}, variables=variables)

    if ctx.providers.selection:
        text = ctx.providers.selection
        return StepOutcome(output={"source": "editor"}, variables=ctx.writes(saveTo=text))

    port = ctx.require("interaction")
    response = await port.request(InteractionRequest(kind="selection", node_id=ctx.node_id, title="Select text"))
    if response is None or response.value is None:
        raise UserCancelledError("Selection cancelled by user")

    value = response.value
    if isinstance(value, str):
        return StepOutcome(output={"source": "prompt"}, variables=ctx.writes(saveTo=value))

    path = value.get("path", "")
    vault = ctx.require("vault")
    if not await vault.exists(path):
        raise NodeExecutionError(f"File not found: {path}", ctx.node_id)
    content = await vault.read_text(path)

    if "start" in value and "end" in value:
        lines = content.split("\n")
        start = _offset(lines, value["start"])
        end = _offset(lines, value["end"])
        info = {
            "filePath": path,
            "startLine": value["start"].get("line", 0),
            "endLine": value["end"].get("line", 0),
            "start": start,
            "end": end,
        }
        text = content[start:end]
    else:
        info = _whole_text(path, content)
        text = content

    variables = ctx.writes(saveTo=text, saveSelectionTo=info)
    return StepOutcome(output={"source": "prompt", "path": path}, variables=variables)


HANDLERS = {
    "dialog": handle_dialog,
    "prompt-file": handle_prompt_file,
    "prompt-selection": handle_prompt_selection,
}
