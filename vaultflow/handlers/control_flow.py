"""
Control-flow node kinds: variable, set, if, while, sleep.
"""

import asyncio
import logging
import math
import re

from vaultflow.conditions import evaluate_or_false
from vaultflow.core.errors import NodeExecutionError
from vaultflow.dispatcher import NodeContext, StepOutcome
from vaultflow.template import coerce_literal, normalize_number, parse_number, stringify

logger = logging.getLogger(__name__)

# Assigning this name with `set` also copies the value to the host clipboard.
CLIPBOARD_VARIABLE = "_clipboard"

_NUM = r"-?\d+(?:\.\d+)?"
ARITHMETIC_RE = re.compile(rf"^({_NUM})\s*([+\-*/%])\s*({_NUM})$")
# Operands that resolved to nothing are read as zero.
PARTIAL_ARITHMETIC_RE = re.compile(rf"^({_NUM})?\s*([+\-*/%])\s*({_NUM})?$")


def _apply(left: float, op: str, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return left / right if right != 0 else 0
    # Remainder keeps the sign of the dividend; modulo by zero yields 0.
    return math.fmod(left, right) if right != 0 else 0


def evaluate_expression(text: str):
    """
    Compute the value of a ``set`` expression.

    ``a op b`` with numeric operands is computed; a lone number becomes a
    number; anything else is kept as text.
    """
    candidate = text.strip()
    match = ARITHMETIC_RE.match(candidate) or PARTIAL_ARITHMETIC_RE.match(candidate)
    if match and (match.group(1) is not None or match.group(3) is not None):
        if match.group(1) is None and match.group(2) == "-" and parse_number(candidate) is not None:
            return coerce_literal(candidate)
        left = float(match.group(1) or 0)
        right = float(match.group(3) or 0)
        return normalize_number(_apply(left, match.group(2), right))

    value = coerce_literal(candidate)
    return text if isinstance(value, str) else value


async def handle_variable(ctx: NodeContext) -> StepOutcome:
    name = ctx.prop("name").strip()
    if not name:
        raise NodeExecutionError("Variable node missing 'name' property", ctx.node_id)
    value = coerce_literal(ctx.prop("value"))
    return StepOutcome(output=value, variables={name: value})


async def handle_set(ctx: NodeContext) -> StepOutcome:
    name = ctx.prop("name").strip()
    if not name:
        raise NodeExecutionError("Set node missing 'name' property", ctx.node_id)
    value = evaluate_expression(ctx.prop("value"))
    if name == CLIPBOARD_VARIABLE and ctx.providers.host is not None:
        try:
            await ctx.providers.host.write_clipboard(stringify(value))
        except Exception as e:
            # set never fails; the variable is still written.
            logger.warning(f"Failed to write to clipboard: {e}")
    return StepOutcome(output=value, variables={name: value})


async def handle_condition(ctx: NodeContext) -> StepOutcome:
    """
    Shared by ``if`` and ``while``; loops come from back-edges to the while node.

    A guard that cannot be evaluated takes the false branch with an error
    status, except a ``while`` guard on entry, which just skips the loop.
    """
    expression = ctx.props.get("condition", "")
    result, error = evaluate_or_false(expression, ctx.scope)
    if error:
        if ctx.node.type == "while" and ctx.first_visit:
            logger.info(f"Loop '{ctx.node_id}' not entered: {error}")
            return StepOutcome(output=False, branch=False)
        return StepOutcome(output=False, branch=False, status="error", error=error)
    return StepOutcome(output=result, branch=result)


async def handle_sleep(ctx: NodeContext) -> StepOutcome:
    duration = ctx.int_prop("duration", 0)
    if duration > 0:
        logger.debug(f"Sleeping for {duration}ms")
        await asyncio.sleep(duration / 1000)
    return StepOutcome(output=duration)


HANDLERS = {
    "variable": handle_variable,
    "set": handle_set,
    "if": handle_condition,
    "while": handle_condition,
    "sleep": handle_sleep,
}
