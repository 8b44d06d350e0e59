"""
Integration node kinds: workflow, rag-sync, obsidian-command.
"""

import hashlib
import json
import logging
import time
from typing import Any, Dict

from vaultflow.core.errors import NodeExecutionError, VaultflowError
from vaultflow.core.scope import VariableScope
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.notes import note_path
from vaultflow.template import resolve, resolve_value

logger = logging.getLogger(__name__)


def _pairs(text: str) -> Dict[str, str]:
    pairs = {}
    for pair in text.split(","):
        key, sep, value = pair.partition("=")
        if sep and key.strip():
            pairs[key.strip()] = value.strip()
    return pairs


def parse_input_mapping(raw: str, scope: VariableScope) -> Dict[str, Any]:
    """
    Child inputs from the unresolved ``input`` property.

    A JSON object is parsed before its placeholders are resolved, so parent
    values holding quotes or newlines cannot break it; a value that is a
    single ``{{name}}`` passes the parent value unchanged. Otherwise the
    resolved text is read as JSON, then as ``key=value`` pairs where a value
    naming a parent variable passes that variable's value.
    """
    if not raw or not raw.strip():
        return {}
    try:
        mapping = json.loads(raw)
    except ValueError:
        mapping = None
    if isinstance(mapping, dict):
        return {
            resolve(key, scope): resolve_value(value, scope) if isinstance(value, str) else value
            for key, value in mapping.items()
        }

    text = resolve(raw, scope)
    try:
        mapping = json.loads(text)
    except ValueError:
        mapping = None
    if isinstance(mapping, dict):
        return mapping

    return {key: scope.get(value, value) for key, value in _pairs(text).items()}


def parse_output_mapping(text: str) -> Dict[str, str]:
    """``{parentVar: childVar}`` from a JSON object or ``parent=child`` pairs."""
    if not text.strip():
        return {}
    try:
        mapping = json.loads(text)
    except ValueError:
        mapping = None
    if isinstance(mapping, dict):
        return {k: v for k, v in mapping.items() if isinstance(v, str)}
    return {k: v for k, v in _pairs(text).items() if v}


async def handle_workflow(ctx: NodeContext) -> StepOutcome:
    path = ctx.prop("path").strip()
    if not path:
        raise NodeExecutionError("Workflow node missing 'path' property", ctx.node_id)
    if ctx.run_subworkflow is None:
        raise NodeExecutionError("Sub-workflow execution not available", ctx.node_id)

    resolver = ctx.require("workflows")
    try:
        workflow = resolver.resolve(path, ctx.prop("name") or None)
    except (VaultflowError, OSError) as e:
        raise NodeExecutionError(f"Cannot load sub-workflow '{path}': {e}", ctx.node_id) from e

    inputs = parse_input_mapping(ctx.node.properties.get("input", ""), ctx.scope)
    child = ctx.scope.derive_child(inputs)
    await ctx.run_subworkflow(workflow, child)

    writes = VariableScope.exports(child, parse_output_mapping(ctx.prop("output")), ctx.prop("prefix"))
    return StepOutcome(output=dict(writes), variables=writes)


async def handle_rag_sync(ctx: NodeContext) -> StepOutcome:
    path = ctx.prop("path").strip()
    old_path = ctx.prop("oldPath").strip()
    setting = ctx.prop("ragSetting").strip()
    if not path and not old_path:
        raise NodeExecutionError("rag-sync node requires 'path' or 'oldPath' property", ctx.node_id)
    if not setting:
        raise NodeExecutionError("rag-sync node missing 'ragSetting' property", ctx.node_id)

    rag = ctx.require("rag")
    path = note_path(path) if path else None
    old_path = note_path(old_path) if old_path else None

    deleted_old = False
    if old_path:
        try:
            await rag.delete(setting, old_path)
            deleted_old = True
        except Exception as e:
            # The old entry may never have been indexed.
            logger.warning(f"rag-sync could not delete '{old_path}' from '{setting}': {e}")

    result = {
        "path": path,
        "oldPath": old_path,
        "deletedOldPath": deleted_old,
        "fileId": None,
        "ragSetting": setting,
        "mode": "delete",
    }
    if path:
        vault = ctx.require("vault")
        if not await vault.exists(path):
            raise NodeExecutionError(f"Note not found: {path}", ctx.node_id)
        content = await vault.read_text(path)
        result["checksum"] = hashlib.sha256(content.encode("utf-8")).hexdigest()
        result["fileId"] = await rag.upload(setting, path, content)
        result["mode"] = "rename" if old_path else "sync"
    result["syncedAt"] = int(time.time() * 1000)

    return StepOutcome(output=result, variables=ctx.writes(saveTo=result))


async def handle_obsidian_command(ctx: NodeContext) -> StepOutcome:
    command_id = ctx.prop("command").strip()
    if not command_id:
        raise NodeExecutionError("obsidian-command node missing 'command' property", ctx.node_id)

    path = ctx.prop("path").strip() or None
    if path:
        path = note_path(path)
        if ctx.providers.vault is not None and not await ctx.providers.vault.exists(path):
            raise NodeExecutionError(f"File not found: {path}", ctx.node_id)

    host = ctx.require("host")
    await host.execute(command_id, path)

    result = {"commandId": command_id, "executed": True, "timestamp": int(time.time() * 1000)}
    if path:
        result["path"] = path
    return StepOutcome(output=result, variables=ctx.writes(saveTo=result))


HANDLERS = {
    "workflow": handle_workflow,
    "rag-sync": handle_rag_sync,
    "obsidian-command": handle_obsidian_command,
}
