"""
Condition Evaluator

Evaluates the boolean expressions used by ``if`` and ``while`` nodes.

Grammar (keywords are case-insensitive):

    expr       := and_expr (("or" | "||") and_expr)*
    and_expr   := not_expr (("and" | "&&") not_expr)*
    not_expr   := ("not" | "!") not_expr | primary
    primary    := "(" expr ")" | operand [compare_op operand]
    compare_op := "==" | "!=" | "<" | ">" | "<=" | ">=" | "contains"

Operands are tokenized before any placeholder is resolved, so a variable
value can never introduce operators or parentheses.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from vaultflow.core.errors import ConditionError
from vaultflow.template import parse_number, resolve, stringify

logger = logging.getLogger(__name__)

COMPARE_OPS = ("==", "!=", "<=", ">=", "<", ">", "contains")
_TWO_CHAR = {"==": "OP", "!=": "OP", "<=": "OP", ">=": "OP", "&&": "AND", "||": "OR"}
_KEYWORDS = {"and": "AND", "or": "OR", "not": "NOT", "contains": "OP"}
_WORD_STOP = set("()<>=")


@dataclass
class Token:
    kind: str  # OPERAND, OP, AND, OR, NOT, LPAREN, RPAREN
    value: str = ""
    quoted: bool = False


def tokenize(expression: str) -> List[Token]:
    """Split an expression into tokens; placeholders stay inside their operand."""
    tokens: List[Token] = []
    text = expression
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue

        pair = text[i:i + 2]
        if pair in _TWO_CHAR:
            kind = _TWO_CHAR[pair]
            tokens.append(Token(kind, pair if kind == "OP" else ""))
            i += 2
            continue
        if ch == "(":
            tokens.append(Token("LPAREN"))
            i += 1
            continue
        if ch == ")":
            tokens.append(Token("RPAREN"))
            i += 1
            continue
        if ch in "<>":
            tokens.append(Token("OP", ch))
            i += 1
            continue
        if ch == "!":
            tokens.append(Token("NOT"))
            i += 1
            continue
        if ch == "=":
            raise ConditionError(f"Unexpected '=' at position {i}; use '=='")

        if ch in "\"'":
            end = text.find(ch, i + 1)
            if end == -1:
                raise ConditionError(f"Unterminated string starting at position {i}")
            tokens.append(Token("OPERAND", text[i + 1:end], quoted=True))
            i = end + 1
            continue

        start = i
        while i < length:
            if text.startswith("{{", i):
                close = text.find("}}", i + 2)
                if close == -1:
                    i = length
                    break
                i = close + 2
                continue
            c = text[i]
            if c.isspace() or c in _WORD_STOP or text[i:i + 2] in ("&&", "||", "!="):
                break
            i += 1

        word = text[start:i]
        keyword = _KEYWORDS.get(word.lower())
        if keyword == "OP":
            tokens.append(Token("OP", "contains"))
        elif keyword:
            tokens.append(Token(keyword))
        else:
            tokens.append(Token("OPERAND", word))

    return tokens


def _as_array(text: str) -> Optional[list]:
    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        value = json.loads(stripped)
    except ValueError:
        return None
    return value if isinstance(value, list) else None


def compare(left: str, op: str, right: str) -> bool:
    """Apply a comparison operator to two resolved operands."""
    if op == "contains":
        items = _as_array(left)
        if items is not None:
            return right in [stringify(item) for item in items]
        return right in left

    left_num = parse_number(left)
    right_num = parse_number(right)
    if left_num is not None and right_num is not None:
        a: Any = left_num
        b: Any = right_num
    else:
        a, b = left, right

    if op == "==":
        return a == b
    if op == "!=":
        return a != b
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    if op == ">=":
        return a >= b
    raise ConditionError(f"Unknown operator '{op}'")


class _Parser:
    def __init__(self, tokens: List[Token], scope: Mapping[str, Any]):
        self.tokens = tokens
        self.scope = scope
        self.pos = 0

    def peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def take(self) -> Token:
        token = self.peek()
        if token is None:
            raise ConditionError("Unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> bool:
        value = self.or_expr()
        if self.peek() is not None:
            raise ConditionError(f"Unexpected token '{self.peek().value or self.peek().kind}'")
        return value

    def or_expr(self) -> bool:
        value = self.and_expr()
        while self.peek() is not None and self.peek().kind == "OR":
            self.take()
            right = self.and_expr()
            value = value or right
        return value

    def and_expr(self) -> bool:
        value = self.not_expr()
        while self.peek() is not None and self.peek().kind == "AND":
            self.take()
            right = self.not_expr()
            value = value and right
        return value

    def not_expr(self) -> bool:
        token = self.peek()
        if token is not None and token.kind == "NOT":
            self.take()
            return not self.not_expr()
        return self.primary()

    def primary(self) -> bool:
        token = self.take()
        if token.kind == "LPAREN":
            value = self.or_expr()
            closing = self.take()
            if closing.kind != "RPAREN":
                raise ConditionError("Expected ')'")
            return value
        if token.kind != "OPERAND":
            raise ConditionError(f"Expected operand, got '{token.value or token.kind}'")

        left = resolve(token.value, self.scope)
        following = self.peek()
        if following is not None and following.kind == "OP":
            op = self.take().value
            right_token = self.take()
            if right_token.kind != "OPERAND":
                raise ConditionError(f"Expected operand after '{op}'")
            right = resolve(right_token.value, self.scope)
            return compare(left, op, right)

        literal = left.strip().lower()
        if literal == "true":
            return True
        if literal == "false":
            return False
        raise ConditionError(f"Operand '{left}' is not a boolean; expected true or false")


def evaluate(expression: str, scope: Mapping[str, Any]) -> bool:
    """
    Evaluate a condition expression against the scope.

    Args:
        expression: Raw condition text, placeholders unresolved
        scope: Variables to resolve placeholders against

    Returns:
        The boolean result

    Raises:
        ConditionError: If the expression is empty or malformed
    """
    if expression is None or not expression.strip():
        raise ConditionError("Empty condition")
    tokens = tokenize(expression)
    return _Parser(tokens, scope).parse()


def evaluate_or_false(expression: str, scope: Mapping[str, Any]) -> Tuple[bool, Optional[str]]:
    """Evaluate, turning any ConditionError into ``(False, message)``."""
    try:
        return evaluate(expression, scope), None
    except ConditionError as e:
        logger.warning(f"Condition '{expression}' could not be evaluated: {e}")
        return False, str(e)
