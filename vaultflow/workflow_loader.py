"""
Workflow Loader

Reads workflow YAML/JSON files and validates them against the Pydantic schema.
Structural problems (dangling pointers, duplicate ids, unknown node kinds)
are raised as WorkflowLoadError before any step executes.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from vaultflow.core.errors import WorkflowLoadError
from vaultflow.core.models import Workflow
from vaultflow.core.registry import HandlerRegistry
from vaultflow.template import find_placeholders, stringify

WORKFLOW_SUFFIXES = (".yaml", ".yml", ".json")
POINTER_KEYS = {"next": "next", "trueNext": "true_next", "falseNext": "false_next"}


def _normalize_node(raw: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Lift every key other than id/type/pointers into string properties."""
    if not isinstance(raw, dict):
        raise WorkflowLoadError(f"Node #{index + 1} is not a mapping")

    node: Dict[str, Any] = {
        "id": str(raw.get("id") or f"node-{index + 1}"),
        "type": str(raw.get("type", "")),
        "properties": {},
    }
    for key in POINTER_KEYS:
        if raw.get(key) is not None:
            node[key] = str(raw[key])

    properties = dict(raw.get("properties") or {})
    for key, value in raw.items():
        if key in ("id", "type", "properties") or key in POINTER_KEYS:
            continue
        properties[key] = value
    node["properties"] = {str(k): stringify(v) for k, v in properties.items()}
    return node


def workflow_from_dict(data: Dict[str, Any], path: Optional[str] = None) -> Workflow:
    """
    Build a validated Workflow from parsed YAML/JSON.

    Args:
        data: Mapping with ``name`` and ``nodes``
        path: Source file, recorded on the workflow

    Returns:
        Validated Workflow

    Raises:
        WorkflowLoadError: If the graph is malformed
    """
    if not isinstance(data, dict):
        raise WorkflowLoadError("Workflow must be a mapping with 'nodes'")
    raw_nodes = data.get("nodes")
    if not isinstance(raw_nodes, list):
        raise WorkflowLoadError("Workflow 'nodes' must be a list")

    nodes = [_normalize_node(raw, idx) for idx, raw in enumerate(raw_nodes)]
    try:
        return Workflow(name=str(data.get("name", "")), nodes=nodes, path=path)
    except ValidationError as e:
        errors = [err["msg"] for err in e.errors()]
        raise WorkflowLoadError(f"Invalid workflow: {'; '.join(errors)}", errors) from e


def _select(data: Any, name: Optional[str], source: str) -> Dict[str, Any]:
    if isinstance(data, dict) and "workflows" in data:
        candidates = data["workflows"] or []
        if name is None:
            if not candidates:
                raise WorkflowLoadError(f"No workflows in {source}")
            return candidates[0]
        for candidate in candidates:
            if isinstance(candidate, dict) and candidate.get("name") == name:
                return candidate
        raise WorkflowLoadError(f"Workflow '{name}' not found in {source}")

    if isinstance(data, dict) and "workflow" in data:
        data = data["workflow"]
    if name is not None and isinstance(data, dict) and data.get("name") not in (None, name):
        raise WorkflowLoadError(f"Workflow '{name}' not found in {source}")
    return data


def load_workflow_file(file_path: str, name: Optional[str] = None) -> Workflow:
    """
    Read a workflow file and parse it into a validated Workflow.

    Args:
        file_path: Path to a .yaml, .yml or .json file
        name: Which workflow to pick when the file holds a ``workflows`` list

    Returns:
        Validated Workflow

    Raises:
        WorkflowLoadError: If the file cannot be read, parsed or validated
    """
    path = Path(file_path)
    if not path.exists():
        raise WorkflowLoadError(f"Workflow file not found: {file_path}")
    if path.suffix not in WORKFLOW_SUFFIXES:
        raise WorkflowLoadError(f"Expected .yaml, .yml or .json file, got: {path.suffix}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
    except (yaml.YAMLError, ValueError) as e:
        raise WorkflowLoadError(f"Invalid workflow file {file_path}: {e}")

    if data is None:
        raise WorkflowLoadError(f"Empty workflow file: {file_path}")

    return workflow_from_dict(_select(data, name, file_path), path=str(path))


def validate_dependencies(workflow: Workflow, registry: HandlerRegistry) -> Tuple[bool, List[str]]:
    """
    Check that every node kind has a handler before starting execution.

    Args:
        workflow: The parsed workflow
        registry: Handler registry to check against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []
    for node in workflow.nodes:
        if node.type not in registry:
            errors.append(f"Node '{node.id}': unknown node type '{node.type}'")
    return (len(errors) == 0, errors)


def referenced_variables(workflow: Workflow) -> List[str]:
    """Every variable name referenced by a placeholder, in first-use order."""
    names: List[str] = []
    for node in workflow.nodes:
        for value in node.properties.values():
            for name in find_placeholders(value):
                if name not in names:
                    names.append(name)
    return names


def str_representer(dumper, data):
    """Custom representer for strings. Uses block style for multi-line strings."""
    if '\n' in data:
        return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='|')
    return dumper.represent_scalar('tag:yaml.org,2002:str', data)


class _WorkflowDumper(yaml.SafeDumper):
    pass


_WorkflowDumper.add_representer(str, str_representer)


def workflow_to_dict(workflow: Workflow) -> Dict[str, Any]:
    nodes = []
    for node in workflow.nodes:
        entry: Dict[str, Any] = {"id": node.id, "type": node.type}
        entry.update(node.properties)
        for key, attr in POINTER_KEYS.items():
            if getattr(node, attr):
                entry[key] = getattr(node, attr)
        nodes.append(entry)
    return {"name": workflow.name, "nodes": nodes}


def save_workflow(workflow: Workflow, path: str) -> str:
    """Write a workflow as YAML; adds ``.yaml`` when the path has no known suffix."""
    if not path.endswith(WORKFLOW_SUFFIXES):
        path = path + ".yaml"

    with open(path, 'w', encoding='utf-8') as f:
        if path.endswith(".json"):
            json.dump(workflow_to_dict(workflow), f, indent=2, ensure_ascii=False)
        else:
            yaml.dump(workflow_to_dict(workflow), f, Dumper=_WorkflowDumper, sort_keys=False, indent=2,
                      default_flow_style=False, allow_unicode=True)
    return path


class FileWorkflowResolver:
    """Resolves ``workflow`` node paths relative to a base directory."""

    def __init__(self, base_dir: str = "."):
        self.base_dir = Path(base_dir)

    def resolve(self, path: str, name: Optional[str] = None) -> Workflow:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate

        options = [candidate] + [candidate.with_name(candidate.name + suffix) for suffix in WORKFLOW_SUFFIXES]
        for option in options:
            if option.is_file() and option.suffix in WORKFLOW_SUFFIXES:
                return load_workflow_file(str(option), name=name)
        raise WorkflowLoadError(f"Sub-workflow not found: {path}")
