"""
Workflow Pydantic Models

Defines the workflow graph consumed by the engine and the execution history
it produces.
"""

from typing import List, Dict, Any, Optional, Literal

from pydantic import BaseModel, Field, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


# Reserved pointer value that terminates the run explicitly.
END_NODE = "end"

BUILTIN_NODE_TYPES = (
    "variable",
    "set",
    "if",
    "while",
    "sleep",
    "command",
    "http",
    "json",
    "mcp",
    "note",
    "note-read",
    "note-search",
    "note-list",
    "folder-list",
    "open",
    "file-explorer",
    "file-save",
    "dialog",
    "prompt-file",
    "prompt-selection",
    "workflow",
    "rag-sync",
    "obsidian-command",
)

BRANCH_NODE_TYPES = ("if", "while")

StepStatus = Literal["pending", "success", "error", "skipped"]
ExecutionStatus = Literal["running", "completed", "error", "cancelled"]


# --- Workflow graph ---

class WorkflowNode(BaseModel):
    """A single step in the workflow graph."""
    id: str = Field(..., description="Unique node identifier")
    type: str = Field(..., description="Node kind, e.g. 'variable' or 'http'")
    properties: Dict[str, str] = Field(default_factory=dict, description="Template-bearing node settings")
    next: Optional[str] = Field(None, description="Explicit successor")
    true_next: Optional[str] = Field(None, description="Successor when a branch condition holds")
    false_next: Optional[str] = Field(None, description="Successor when a branch condition fails")

    model_config = ConfigDict(extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True)

    @property
    def is_branch(self) -> bool:
        return self.type in BRANCH_NODE_TYPES

    def pointers(self) -> Dict[str, Optional[str]]:
        """Successor pointers keyed by their authoring name."""
        return {
            "next": self.next,
            "trueNext": self.true_next,
            "falseNext": self.false_next,
            "onCancel": self.properties.get("onCancel"),
        }


class Workflow(BaseModel):
    """An ordered node list; order only matters for fallthrough."""
    name: str = Field("", description="Workflow display name")
    nodes: List[WorkflowNode] = Field(..., description="Nodes in authoring order")
    path: Optional[str] = Field(None, description="Where the workflow was loaded from")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def _check_graph(self) -> "Workflow":
        if not self.nodes:
            raise ValueError("Workflow has no nodes")

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id '{node.id}'")
            seen.add(node.id)

        for node in self.nodes:
            for label, target in node.pointers().items():
                if target and target != END_NODE and target not in seen:
                    raise ValueError(f"Node '{node.id}': {label} references unknown node '{target}'")
        return self

    @property
    def entry_node(self) -> WorkflowNode:
        return self.nodes[0]

    def index_of(self, node_id: str) -> int:
        for idx, node in enumerate(self.nodes):
            if node.id == node_id:
                return idx
        raise KeyError(node_id)

    def get_node(self, node_id: str) -> WorkflowNode:
        return self.nodes[self.index_of(node_id)]

    def positional_successor(self, node_id: str) -> Optional[str]:
        """Id of the node after ``node_id`` in array order, if any."""
        idx = self.index_of(node_id)
        if idx + 1 < len(self.nodes):
            return self.nodes[idx + 1].id
        return None


# --- File payloads passed between file/http/command nodes ---

class FileExplorerData(BaseModel):
    """A file's metadata and content, text or base64-encoded binary."""
    path: str = ""
    basename: str = ""
    name: str = ""
    extension: str = ""
    mime_type: str = "application/octet-stream"
    content_type: Literal["text", "binary"] = "text"
    data: str = ""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_variable(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# --- Execution history ---

class ExecutionStep(BaseModel):
    """One node visit. Closed steps are immutable."""
    node_id: str
    node_type: str
    timestamp: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    status: StepStatus = "pending"
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ExecutionRecord(BaseModel):
    """The full trace of one top-level run."""
    id: str
    workflow_name: str = ""
    workflow_path: Optional[str] = None
    start_time: str
    end_time: Optional[str] = None
    status: ExecutionStatus = "running"
    steps: List[ExecutionStep] = Field(default_factory=list)
    error_node_id: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def error_step(self) -> Optional[ExecutionStep]:
        for step in reversed(self.steps):
            if step.status == "error" and step.node_id == self.error_node_id:
                return step
        return None
