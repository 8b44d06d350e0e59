"""
Template Engine

Resolves ``{{name}}`` placeholders against a variable scope. Resolution is a
single pass: text that was substituted in is never scanned again.

Supported forms:
- ``{{name}}`` / ``{{ name }}``
- ``{{name.field.sub}}`` and ``{{name[0].field}}`` on structured values or JSON text
- ``{{items[idx]}}`` where ``idx`` is another variable
- ``{{name:json}}`` escapes the substituted text for use inside a JSON string
"""

import json
import math
import re
from typing import Any, Dict, List, Mapping, Optional

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][\w.\[\]-]*)(:json)?\s*\}\}")
NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_PATH_TOKEN_RE = re.compile(r"([^.\[\]]+)|\[([^\]]*)\]")

_MISSING = object()


def stringify(value: Any) -> str:
    """Render a scope value the way it appears when substituted into text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def parse_number(text: Any) -> Optional[float]:
    """Return ``text`` as a number if it is a plain decimal literal, else None."""
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        return text
    if not isinstance(text, str):
        return None
    candidate = text.strip()
    if not NUMBER_RE.match(candidate):
        return None
    return float(candidate)


def normalize_number(value: float) -> Any:
    """Collapse integral floats to int so ``1.0`` is stored as ``1``."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return value


def coerce_literal(text: str) -> Any:
    """
    Turn an authored literal into a scope value.

    Only canonical numerals become numbers (``"0"`` -> ``0``, ``"1.5"`` -> ``1.5``);
    ``"007"`` or ``"1.50"`` stay strings so formatting survives a round trip.
    """
    number = parse_number(text)
    if number is not None:
        normalized = normalize_number(number)
        if stringify(normalized) == text:
            return normalized
    return text


def load_json_text(value: Any) -> Any:
    """Parse JSON held in a string, unwrapping a markdown code fence if present."""
    if not isinstance(value, str):
        return value
    text = value
    fenced = FENCED_JSON_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    return json.loads(text)


def _split_path(path: str) -> List[str]:
    return [m.group(1) if m.group(1) is not None else m.group(2) for m in _PATH_TOKEN_RE.finditer(path)]


def _step_into(current: Any, key: str, scope: Mapping[str, Any]) -> Any:
    if isinstance(current, list):
        if key.lstrip("-").isdigit():
            index = int(key)
        else:
            resolved = scope.get(key, _MISSING)
            number = parse_number(resolved) if resolved is not _MISSING else None
            if number is None or not float(number).is_integer():
                return _MISSING
            index = int(number)
        if -len(current) <= index < len(current):
            return current[index]
        return _MISSING
    if isinstance(current, dict):
        return current.get(key, _MISSING)
    return _MISSING


def lookup(path: str, scope: Mapping[str, Any]) -> Any:
    """
    Navigate a dotted/indexed path through the scope.

    Returns:
        The value, or ``None`` when any segment is missing
    """
    parts = _split_path(path)
    if not parts:
        return None

    current = scope.get(parts[0], _MISSING)
    if current is _MISSING:
        return None
    if len(parts) == 1:
        return current

    if isinstance(current, str):
        try:
            current = load_json_text(current)
        except ValueError:
            return None

    for key in parts[1:]:
        current = _step_into(current, key, scope)
        if current is _MISSING:
            return None
    return current


def _json_escape(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)[1:-1]


def resolve(text: str, scope: Mapping[str, Any]) -> str:
    """
    Replace every placeholder in ``text`` with its stringified value.

    Args:
        text: Template text
        scope: Variables to resolve against

    Returns:
        The resolved text; unknown names resolve to an empty string
    """
    if not text or "{{" not in text:
        return text

    def replacer(match: "re.Match") -> str:
        value = stringify(lookup(match.group(1), scope))
        if match.group(2):
            return _json_escape(value)
        return value

    return PLACEHOLDER_RE.sub(replacer, text)


def resolve_value(text: str, scope: Mapping[str, Any]) -> Any:
    """
    Resolve ``text``, keeping the scope value itself when ``text`` is a
    single bare placeholder, so dicts, lists and numbers keep their type.
    """
    match = PLACEHOLDER_RE.fullmatch(text.strip()) if isinstance(text, str) else None
    if match and not match.group(2):
        value = lookup(match.group(1), scope)
        return "" if value is None else value
    return resolve(text, scope)


def resolve_mapping(values: Mapping[str, Any], scope: Mapping[str, Any]) -> Dict[str, Any]:
    """Resolve every string value of a mapping; other values pass through."""
    return {key: resolve(value, scope) if isinstance(value, str) else value for key, value in values.items()}


def find_placeholders(text: str) -> List[str]:
    """Root variable names referenced by ``text``."""
    names = []
    for match in PLACEHOLDER_RE.finditer(text or ""):
        root = _split_path(match.group(1))[0]
        if root not in names:
            names.append(root)
    return names
