"""Tests for the workflow loader."""

import json

import pytest
import yaml

from vaultflow.core.errors import WorkflowLoadError
from vaultflow.core.registry import HandlerRegistry
from vaultflow.workflow_loader import (
    FileWorkflowResolver,
    load_workflow_file,
    referenced_variables,
    save_workflow,
    validate_dependencies,
    workflow_from_dict,
)

SAMPLE_WORKFLOW_YAML = """
name: count
nodes:
  - id: init
    type: variable
    name: n
    value: 0
  - id: loop
    type: while
    condition: "{{n}} < 2"
    falseNext: done
  - id: inc
    type: set
    name: n
    value: "{{n}} + 1"
    next: loop
  - id: done
    type: variable
    name: result
    value: finished
"""


def test_load_yaml_file(tmp_path):
    f = tmp_path / "count.yaml"
    f.write_text(SAMPLE_WORKFLOW_YAML)

    wf = load_workflow_file(str(f))
    assert wf.name == "count"
    assert wf.path == str(f)
    assert [n.id for n in wf.nodes] == ["init", "loop", "inc", "done"]
    # Scalars are stored as strings
    assert wf.get_node("init").properties == {"name": "n", "value": "0"}
    assert wf.get_node("loop").false_next == "done"
    assert wf.get_node("inc").next == "loop"


def test_load_json_file(tmp_path):
    f = tmp_path / "wf.json"
    f.write_text(json.dumps({"name": "j", "nodes": [{"id": "a", "type": "variable", "properties": {"name": "x", "value": 1}}]}))
    wf = load_workflow_file(str(f))
    assert wf.get_node("a").properties == {"name": "x", "value": "1"}


def test_load_named_workflow_from_list(tmp_path):
    f = tmp_path / "many.yaml"
    f.write_text(yaml.safe_dump({"workflows": [
        {"name": "first", "nodes": [{"id": "a", "type": "variable"}]},
        {"name": "second", "nodes": [{"id": "b", "type": "set"}]},
    ]}))
    assert load_workflow_file(str(f)).name == "first"
    assert load_workflow_file(str(f), name="second").entry_node.id == "b"
    with pytest.raises(WorkflowLoadError, match="not found"):
        load_workflow_file(str(f), name="third")


def test_load_missing_file():
    with pytest.raises(WorkflowLoadError, match="not found"):
        load_workflow_file("nonexistent.yaml")


def test_load_wrong_suffix(tmp_path):
    f = tmp_path / "wf.txt"
    f.write_text("nodes: []")
    with pytest.raises(WorkflowLoadError, match="Expected"):
        load_workflow_file(str(f))


def test_load_invalid_yaml(tmp_path):
    f = tmp_path / "bad.yaml"
    f.write_text("nodes: [unclosed")
    with pytest.raises(WorkflowLoadError, match="Invalid workflow file"):
        load_workflow_file(str(f))


def test_default_node_ids():
    wf = workflow_from_dict({"nodes": [{"type": "variable"}, {"type": "set"}]})
    assert [n.id for n in wf.nodes] == ["node-1", "node-2"]


def test_dangling_pointer_is_load_error():
    with pytest.raises(WorkflowLoadError) as exc_info:
        workflow_from_dict({"nodes": [{"id": "a", "type": "variable", "next": "missing"}]})
    assert exc_info.value.errors
    assert "missing" in str(exc_info.value)


def test_validate_dependencies_unknown_kind():
    wf = workflow_from_dict({"nodes": [{"id": "a", "type": "variable"}, {"id": "b", "type": "teleport"}]})
    is_valid, errors = validate_dependencies(wf, HandlerRegistry())
    assert not is_valid
    assert errors == ["Node 'b': unknown node type 'teleport'"]


def test_referenced_variables(tmp_path):
    f = tmp_path / "count.yaml"
    f.write_text(SAMPLE_WORKFLOW_YAML)
    assert referenced_variables(load_workflow_file(str(f))) == ["n"]


def test_save_and_reload_multiline(tmp_path):
    wf = workflow_from_dict({"name": "s", "nodes": [
        {"id": "a", "type": "note", "path": "x", "content": "line1\nline2", "next": "end"},
    ]})
    path = save_workflow(wf, str(tmp_path / "saved"))
    assert path.endswith(".yaml")
    assert "|" in open(path).read()

    reloaded = load_workflow_file(path)
    assert reloaded.get_node("a").properties["content"] == "line1\nline2"
    assert reloaded.get_node("a").next == "end"


def test_file_resolver_appends_suffix(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "child.yaml").write_text(SAMPLE_WORKFLOW_YAML)
    resolver = FileWorkflowResolver(str(tmp_path))
    assert resolver.resolve("sub/child").name == "count"
    assert resolver.resolve("sub/child.yaml").name == "count"
    with pytest.raises(WorkflowLoadError):
        resolver.resolve("sub/missing")
