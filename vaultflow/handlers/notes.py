"""
Vault note node kinds: note, note-read, note-search, note-list, folder-list, open.
"""

import logging
import re
import time
from typing import List, Optional

from vaultflow.core.errors import NodeExecutionError, UserCancelledError
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.handlers.utils import file_info, split_list
from vaultflow.interaction import InteractionRequest

logger = logging.getLogger(__name__)

NOTE_MODES = ("overwrite", "append", "create")
DURATION_RE = re.compile(r"^(\d+)\s*(m|min|h|hour|d|day)s?$", re.IGNORECASE)
_UNIT_SECONDS = {"m": 60, "min": 60, "h": 3600, "hour": 3600, "d": 86400, "day": 86400}


def note_path(path: str) -> str:
    return path if path.endswith(".md") else f"{path}.md"


def parse_duration(text: str) -> Optional[int]:
    """``"30m"``, ``"2 hours"``, ``"7d"`` -> seconds; None when not a duration."""
    match = DURATION_RE.match(text.strip()) if text else None
    if not match:
        return None
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]


async def confirm_write(ctx: NodeContext, path: str, content: str, mode: str) -> None:
    """
    Ask the user to approve a write unless the node sets ``confirm: "false"``.

    Raises:
        UserCancelledError: If the user declines
    """
    if not ctx.flag("confirm", default=True):
        return
    port = ctx.require("interaction")
    response = await port.request(InteractionRequest(
        kind="confirm",
        node_id=ctx.node_id,
        title=f"Write {path}",
        message=content,
        payload={"path": path, "content": content, "mode": mode},
    ))
    if response is None or not response.value:
        raise UserCancelledError("Note write cancelled by user")


async def handle_note(ctx: NodeContext) -> StepOutcome:
    path = ctx.prop("path").strip()
    if not path:
        raise NodeExecutionError("Note node missing 'path' property", ctx.node_id)
    mode = ctx.prop("mode", "overwrite")
    if mode not in NOTE_MODES:
        raise NodeExecutionError(f"Unknown note mode '{mode}'", ctx.node_id)

    path = note_path(path)
    content = ctx.prop("content")
    await confirm_write(ctx, path, content, mode)

    vault = ctx.require("vault")
    exists = await vault.exists(path)
    written = True
    if mode == "create" and exists:
        written = False
    elif mode == "append" and exists:
        current = await vault.read_text(path)
        await vault.write_text(path, current + "\n" + content)
    else:
        await vault.write_text(path, content)

    if written:
        logger.info(f"Wrote note {path} ({mode})")
    return StepOutcome(output={"path": path, "mode": mode, "written": written})


async def handle_note_read(ctx: NodeContext) -> StepOutcome:
    path = ctx.prop("path").strip()
    if not path:
        raise NodeExecutionError("note-read node missing 'path' property", ctx.node_id)
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("note-read node missing 'saveTo' property", ctx.node_id)

    vault = ctx.require("vault")
    path = note_path(path)
    if not await vault.exists(path):
        raise NodeExecutionError(f"Note not found: {path}", ctx.node_id)

    content = await vault.read_text(path)
    return StepOutcome(output={"path": path, "length": len(content)}, variables=ctx.writes(saveTo=content))


async def _markdown_files(vault, folder: str = "", recursive: bool = True) -> List[str]:
    return [p for p in await vault.list_files(folder, recursive=recursive) if p.endswith(".md")]


async def handle_note_search(ctx: NodeContext) -> StepOutcome:
    query = ctx.prop("query")
    if not query:
        raise NodeExecutionError("note-search node missing 'query' property", ctx.node_id)
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("note-search node missing 'saveTo' property", ctx.node_id)

    vault = ctx.require("vault")
    limit = ctx.int_prop("limit", 10) or 10
    search_content = ctx.flag("searchContent")
    needle = query.lower()

    results = []
    for path in await _markdown_files(vault):
        if len(results) >= limit:
            break
        name = file_info(path)["name"]
        if search_content:
            content = await vault.read_text(path)
            index = content.lower().find(needle)
            if index == -1:
                continue
            start = max(0, index - 50)
            end = min(len(content), index + len(query) + 50)
            snippet = ("..." if start > 0 else "") + content[start:end] + ("..." if end < len(content) else "")
            results.append({"name": name, "path": path, "matchedContent": snippet})
        elif needle in name.lower() or needle in path.lower():
            results.append({"name": name, "path": path})

    return StepOutcome(output={"count": len(results)}, variables=ctx.writes(saveTo=results))


def _normalize_tags(text: str) -> List[str]:
    tags = []
    for tag in split_list(text):
        tag = tag if tag.startswith("#") else f"#{tag}"
        if len(tag) > 1:
            tags.append(tag)
    return tags


def _in_folder(path: str, folder: str, recursive: bool) -> bool:
    prefix = folder.rstrip("/") + "/"
    if recursive:
        return path.startswith(prefix) or path == folder.rstrip("/") + ".md"
    return path.rsplit("/", 1)[0] + "/" == prefix if "/" in path else False


async def handle_note_list(ctx: NodeContext) -> StepOutcome:
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("note-list node missing 'saveTo' property", ctx.node_id)

    vault = ctx.require("vault")
    folder = ctx.prop("folder").strip()
    recursive = ctx.flag("recursive")
    limit = ctx.int_prop("limit", 50) or 50
    sort_by = ctx.prop("sortBy")
    descending = ctx.prop("sortOrder", "desc") != "asc"
    required_tags = _normalize_tags(ctx.prop("tags"))
    match_all = ctx.prop("tagMatch", "any") == "all"
    created_within = parse_duration(ctx.prop("createdWithin"))
    modified_within = parse_duration(ctx.prop("modifiedWithin"))
    now = time.time()

    entries = []
    for path in await _markdown_files(vault):
        if folder and not _in_folder(path, folder, recursive):
            continue
        stat = await vault.stat(path)
        if created_within is not None and stat.ctime < now - created_within:
            continue
        if modified_within is not None and stat.mtime < now - modified_within:
            continue
        tags = await vault.tags(path)
        if required_tags:
            matched = [tag in tags for tag in required_tags]
            if not (all(matched) if match_all else any(matched)):
                continue
        entries.append({
            "name": file_info(path)["name"],
            "path": path,
            "created": int(stat.ctime * 1000),
            "modified": int(stat.mtime * 1000),
            "tags": tags,
        })

    if sort_by in ("created", "modified"):
        entries.sort(key=lambda e: e[sort_by], reverse=descending)
    elif sort_by == "name":
        entries.sort(key=lambda e: e["name"].lower(), reverse=descending)

    total = len(entries)
    notes = entries[:limit]
    value = {"notes": notes, "count": len(notes), "totalCount": total, "hasMore": total > limit}
    return StepOutcome(output={"count": len(notes), "totalCount": total}, variables=ctx.writes(saveTo=value))


async def handle_folder_list(ctx: NodeContext) -> StepOutcome:
    if not ctx.prop("saveTo").strip():
        raise NodeExecutionError("folder-list node missing 'saveTo' property", ctx.node_id)

    vault = ctx.require("vault")
    parent = ctx.prop("folder").strip().rstrip("/")
    folders = []
    for folder in await vault.list_folders(""):
        if parent and not (folder == parent or folder.startswith(parent + "/")):
            continue
        if folder:
            folders.append(folder)
    folders.sort()

    value = {"folders": folders, "count": len(folders)}
    return StepOutcome(output={"count": len(folders)}, variables=ctx.writes(saveTo=value))


async def handle_open(ctx: NodeContext) -> StepOutcome:
    path = ctx.prop("path").strip()
    if not path:
        raise NodeExecutionError("Open node missing 'path' property", ctx.node_id)
    host = ctx.require("host")
    path = note_path(path)
    await host.open_file(path)
    return StepOutcome(output={"path": path})


HANDLERS = {
    "note": handle_note,
    "note-read": handle_note_read,
    "note-search": handle_note_search,
    "note-list": handle_note_list,
    "folder-list": handle_folder_list,
    "open": handle_open,
}
