"""Tests for the dialog, prompt-file and prompt-selection node kinds."""

import pytest

from vaultflow.core.errors import NodeExecutionError, UserCancelledError
from vaultflow.interaction import InteractionResponse

from conftest import ScriptedInteractionPort, run_node


@pytest.mark.asyncio
async def test_dialog_request_payload(providers):
    providers.interaction = ScriptedInteractionPort(InteractionResponse(button="Later", selected=["x", "y"]))
    outcome = await run_node(providers, {
        "id": "d", "type": "dialog", "title": "Pick {{what}}", "message": "Choose",
        "options": "x, y, z", "multiSelect": "true", "button2": "Later",
        "defaults": '{"selected": ["x"], "input": "n/a", "other": 1}', "saveTo": "choice",
    }, {"what": "letters"})

    request = providers.interaction.requests[0]
    assert request.kind == "dialog"
    assert request.title == "Pick letters"
    assert request.options == ["x", "y", "z"]
    assert request.payload["multiSelect"] is True
    assert request.payload["button1"] == "OK"
    assert request.payload["defaults"] == {"selected": ["x"], "input": "n/a"}
    # No input field was requested, so no input key in the result
    assert outcome.variables == {"choice": {"button": "Later", "selected": ["x", "y"]}}


@pytest.mark.asyncio
async def test_dialog_invalid_defaults_ignored(providers):
    providers.interaction = ScriptedInteractionPort(InteractionResponse(button="OK"))
    await run_node(providers, {"id": "d", "type": "dialog", "defaults": "{not json"})
    assert providers.interaction.requests[0].payload["defaults"] == {}


@pytest.mark.asyncio
async def test_prompt_file_uses_hotkey_file(providers, vault):
    vault.files["daily/today.md"] = "today"
    outcome = await run_node(providers, {
        "id": "p", "type": "prompt-file", "saveTo": "content", "saveFileTo": "info",
    }, {"__hotkeyActiveFile__": {"path": "daily/today.md"}})

    assert providers.interaction.requests == []
    assert outcome.variables["content"] == "today"
    assert outcome.variables["info"] == {
        "path": "daily/today.md", "basename": "today.md", "name": "today", "extension": "md",
    }


@pytest.mark.asyncio
async def test_prompt_file_event_file_json_and_force_prompt(providers, vault):
    vault.files.update({"event.md": "from event", "picked.md": "from prompt"})
    outcome = await run_node(providers, {"id": "p", "type": "prompt-file", "saveTo": "c"},
                             {"__eventFile__": '{"path": "event.md"}'})
    assert outcome.variables == {"c": "from event"}

    providers.interaction = ScriptedInteractionPort(InteractionResponse(value="picked"))
    outcome = await run_node(providers, {"id": "p", "type": "prompt-file", "saveTo": "c", "forcePrompt": "true"},
                             {"__eventFile__": '{"path": "event.md"}'})
    assert providers.interaction.requests[0].kind == "select-note"
    assert outcome.variables == {"c": "from prompt"}


@pytest.mark.asyncio
async def test_prompt_file_cancel_and_missing(providers):
    with pytest.raises(UserCancelledError):
        await run_node(providers, {"id": "p", "type": "prompt-file", "saveTo": "c"})

    providers.interaction = ScriptedInteractionPort(InteractionResponse(value="ghost"))
    with pytest.raises(NodeExecutionError, match="File not found: ghost.md"):
        await run_node(providers, {"id": "p", "type": "prompt-file", "saveTo": "c"})


@pytest.mark.asyncio
async def test_prompt_selection_sources(providers):
    outcome = await run_node(providers, {
        "id": "s", "type": "prompt-selection", "saveTo": "sel", "saveSelectionTo": "info",
    }, {"__hotkeySelection__": "picked text", "__hotkeySelectionInfo__": {"filePath": "a.md"}})
    assert outcome.variables == {"sel": "picked text", "info": {"filePath": "a.md"}}

    providers.selection = "editor text"
    outcome = await run_node(providers, {"id": "s", "type": "prompt-selection", "saveTo": "sel"})
    assert outcome.variables == {"sel": "editor text"}


@pytest.mark.asyncio
async def test_prompt_selection_range_from_prompt(providers, vault):
    vault.files["a.md"] = "line one\nline two\nline three"
    providers.interaction = ScriptedInteractionPort(InteractionResponse(
        value={"path": "a.md", "start": {"line": 1, "ch": 5}, "end": {"line": 2, "ch": 4}},
    ))
    outcome = await run_node(providers, {
        "id": "s", "type": "prompt-selection", "saveTo": "sel", "saveSelectionTo": "info",
    })
    assert outcome.variables["sel"] == "two\nline"
    assert outcome.variables["info"] == {"filePath": "a.md", "startLine": 1, "endLine": 2, "start": 14, "end": 22}


@pytest.mark.asyncio
async def test_prompt_selection_whole_file_and_cancel(providers, vault):
    vault.files["b.md"] = "all\ntext"
    providers.interaction = ScriptedInteractionPort(InteractionResponse(value={"path": "b.md"}))
    outcome = await run_node(providers, {"id": "s", "type": "prompt-selection", "saveTo": "sel", "saveSelectionTo": "i"})
    assert outcome.variables["sel"] == "all\ntext"
    assert outcome.variables["i"]["endLine"] == 2

    with pytest.raises(UserCancelledError, match="Selection cancelled"):
        await run_node(providers, {"id": "s", "type": "prompt-selection", "saveTo": "sel"})
