"""Tests for the template engine."""

import pytest

from vaultflow.template import (
    coerce_literal,
    find_placeholders,
    load_json_text,
    lookup,
    parse_number,
    resolve,
    resolve_mapping,
    resolve_value,
    stringify,
)


def test_resolve_simple_and_spaced_placeholders():
    scope = {"name": "Ada", "count": 3}
    assert resolve("Hi {{name}} x{{ count }}", scope) == "Hi Ada x3"


def test_resolve_missing_variable_is_empty():
    assert resolve("[{{nope}}]", {}) == "[]"


def test_resolve_text_without_placeholders_unchanged():
    assert resolve("plain {text}", {"text": "x"}) == "plain {text}"
    assert resolve("", {}) == ""


def test_resolve_is_single_pass():
    scope = {"a": "{{b}}", "b": "secret"}
    assert resolve("{{a}}", scope) == "{{b}}"


def test_resolve_dotted_path_on_structured_value():
    scope = {"user": {"profile": {"city": "Oslo"}}}
    assert resolve("{{user.profile.city}}", scope) == "Oslo"


def test_resolve_dotted_path_on_json_text():
    scope = {"resp": '{"items": [{"id": 7}, {"id": 8}]}'}
    assert resolve("{{resp.items[1].id}}", scope) == "8"


def test_resolve_index_by_variable():
    scope = {"items": ["a", "b", "c"], "i": 2}
    assert resolve("{{items[i]}}", scope) == "c"


def test_resolve_index_out_of_range_is_empty():
    assert resolve("{{items[5]}}", {"items": [1]}) == ""


def test_resolve_json_escape():
    scope = {"text": 'say "hi"\nbye'}
    assert resolve('{"msg": "{{text:json}}"}', scope) == '{"msg": "say \\"hi\\"\\nbye"}'


def test_stringify_values():
    assert stringify(None) == ""
    assert stringify(True) == "true"
    assert stringify(2.0) == "2"
    assert stringify(2.5) == "2.5"
    assert stringify({"a": [1, 2]}) == '{"a":[1,2]}'


def test_parse_number():
    assert parse_number("42") == 42.0
    assert parse_number(" -1.5 ") == -1.5
    assert parse_number("1e3") == 1000.0
    assert parse_number("abc") is None
    assert parse_number("") is None
    assert parse_number(True) is None
    assert parse_number(7) == 7


def test_coerce_literal_only_canonical_numerals():
    assert coerce_literal("0") == 0
    assert coerce_literal("1.5") == 1.5
    assert coerce_literal("007") == "007"
    assert coerce_literal("1.50") == "1.50"
    assert coerce_literal("hello") == "hello"


def test_load_json_text_unwraps_fence():
    text = 'Here:\n```json\n{"ok": true}\n```'
    assert load_json_text(text) == {"ok": True}


def test_load_json_text_invalid_raises():
    with pytest.raises(ValueError):
        load_json_text("{broken")


def test_lookup_missing_segment_is_none():
    assert lookup("a.b.c", {"a": {"b": {}}}) is None
    assert lookup("a.b", {"a": "not json"}) is None


def test_resolve_mapping_passes_non_strings():
    result = resolve_mapping({"a": "{{x}}", "b": 5}, {"x": "y"})
    assert result == {"a": "y", "b": 5}


def test_resolve_value_keeps_type_of_single_placeholder():
    scope = {"data": {"k": [1]}, "n": 4, "s": "a\nb"}
    assert resolve_value("{{data}}", scope) == {"k": [1]}
    assert resolve_value(" {{ n }} ", scope) == 4
    assert resolve_value("{{data.k}}", scope) == [1]
    assert resolve_value("{{missing}}", scope) == ""
    assert resolve_value("n={{n}}", scope) == "n=4"
    assert resolve_value("{{s:json}}", scope) == "a\\nb"


def test_find_placeholders_roots():
    assert find_placeholders("{{a.b}} {{c[0]}} {{a}} {{d:json}}") == ["a", "c", "d"]
