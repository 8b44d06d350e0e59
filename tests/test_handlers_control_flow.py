"""Tests for the variable, set, if, while and sleep node kinds."""

import pytest
from unittest.mock import AsyncMock, patch

from vaultflow.core.errors import NodeExecutionError
from vaultflow.handlers.control_flow import evaluate_expression

from conftest import FakeHost, run_node


@pytest.mark.parametrize("text,expected", [
    ("1 + 2", 3),
    ("10 - 4", 6),
    ("3 * 1.5", 4.5),
    ("9 / 3", 3),
    ("7 / 2", 3.5),
    ("5 / 0", 0),
    ("7 % 3", 1),
    ("-7 % 3", -1),
    ("5 % 0", 0),
    ("-4 + 1", -3),
    (" + 5", 5),
    ("3 -", 3),
    ("-5", -5),
    ("42", 42),
    ("hello world", "hello world"),
    ("1 + 2 + 3", "1 + 2 + 3"),
    ("007", "007"),
])
def test_evaluate_expression(text, expected):
    assert evaluate_expression(text) == expected


@pytest.mark.asyncio
async def test_variable_coerces_numbers(providers):
    outcome = await run_node(providers, {"id": "v", "type": "variable", "name": "n", "value": "0"})
    assert outcome.variables == {"n": 0}

    outcome = await run_node(providers, {"id": "v", "type": "variable", "name": "s", "value": "{{x}}!"}, {"x": "hi"})
    assert outcome.variables == {"s": "hi!"}


@pytest.mark.asyncio
async def test_variable_requires_name(providers):
    with pytest.raises(NodeExecutionError, match="missing 'name'"):
        await run_node(providers, {"id": "v", "type": "variable", "value": "1"})


@pytest.mark.asyncio
async def test_set_with_missing_operand_reads_zero(providers):
    outcome = await run_node(providers, {"id": "s", "type": "set", "name": "n", "value": "{{missing}} + 1"})
    assert outcome.variables == {"n": 1}


@pytest.mark.asyncio
async def test_set_clipboard_copies_to_host(providers):
    outcome = await run_node(providers, {"id": "s", "type": "set", "name": "_clipboard", "value": "{{a}} + 2"}, {"a": 1})
    assert outcome.variables == {"_clipboard": 3}
    assert providers.host.clipboard == ["3"]

    await run_node(providers, {"id": "s", "type": "set", "name": "other", "value": "x"})
    assert providers.host.clipboard == ["3"]


@pytest.mark.asyncio
async def test_set_clipboard_failure_still_sets_variable(providers):
    providers.host = FakeHost(clipboard_error=OSError("no display"))
    outcome = await run_node(providers, {"id": "s", "type": "set", "name": "_clipboard", "value": "text"})
    assert outcome.status == "success"
    assert outcome.variables == {"_clipboard": "text"}

    providers.host = None
    outcome = await run_node(providers, {"id": "s", "type": "set", "name": "_clipboard", "value": "text"})
    assert outcome.variables == {"_clipboard": "text"}



@pytest.mark.asyncio
async def test_condition_outcomes(providers):
    outcome = await run_node(providers, {"id": "c", "type": "if", "condition": "{{a}} > 1"}, {"a": 2})
    assert outcome.branch is True
    assert outcome.status == "success"
    # The raw condition is kept in the step input
    assert outcome.input["condition"] == "{{a}} > 1"

    outcome = await run_node(providers, {"id": "c", "type": "if", "condition": "oops"})
    assert outcome.branch is False
    assert outcome.status == "error"
    assert "not a boolean" in outcome.error


@pytest.mark.asyncio
async def test_while_guard_error_on_entry_skips_loop(providers):
    outcome = await run_node(providers, {"id": "c", "type": "while", "condition": "oops"})
    assert outcome.branch is False
    assert outcome.status == "success"
    assert outcome.error is None


@pytest.mark.asyncio
async def test_sleep_uses_milliseconds(providers):
    with patch("vaultflow.handlers.control_flow.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        outcome = await run_node(providers, {"id": "z", "type": "sleep", "duration": "250"})
    mock_sleep.assert_awaited_once_with(0.25)
    assert outcome.output == 250


@pytest.mark.asyncio
async def test_sleep_invalid_duration(providers):
    with pytest.raises(NodeExecutionError, match="must be a number"):
        await run_node(providers, {"id": "z", "type": "sleep", "duration": "soon"})
