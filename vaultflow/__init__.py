"""
vaultflow - Vault Workflow Engine

Executes authored automation workflows (variables, branches, loops, network,
file, model and sub-workflow steps) with a step-by-step execution history.
"""

from vaultflow.core.models import (
    END_NODE,
    WorkflowNode,
    Workflow,
    FileExplorerData,
    ExecutionStep,
    ExecutionRecord,
)
from vaultflow.core.errors import (
    VaultflowError,
    WorkflowLoadError,
    ConditionError,
    NodeExecutionError,
    ProviderUnavailableError,
    SubWorkflowError,
    UserCancelledError,
    ExecutionCancelled,
)
from vaultflow.core.registry import HandlerRegistry
from vaultflow.core.scope import VariableScope
from vaultflow.conditions import evaluate, evaluate_or_false
from vaultflow.template import resolve
from vaultflow.dispatcher import NodeDispatcher, NodeContext, StepOutcome
from vaultflow.executor import ExecutorEngine, CancellationToken
from vaultflow.recorder import ExecutionRecorder
from vaultflow.history import JsonFileHistorySink
from vaultflow.interaction import InteractionRequest, InteractionResponse, QueueInteractionPort
from vaultflow.providers import Providers
from vaultflow.workflow_loader import load_workflow_file, workflow_from_dict, validate_dependencies, save_workflow
from vaultflow.config import Settings

__all__ = [
    # Models
    "END_NODE",
    "WorkflowNode",
    "Workflow",
    "FileExplorerData",
    "ExecutionStep",
    "ExecutionRecord",
    # Errors
    "VaultflowError",
    "WorkflowLoadError",
    "ConditionError",
    "NodeExecutionError",
    "ProviderUnavailableError",
    "SubWorkflowError",
    "UserCancelledError",
    "ExecutionCancelled",
    # Core
    "HandlerRegistry",
    "VariableScope",
    "NodeDispatcher",
    "NodeContext",
    "StepOutcome",
    "ExecutorEngine",
    "CancellationToken",
    "ExecutionRecorder",
    "JsonFileHistorySink",
    "QueueInteractionPort",
    "Providers",
    "Settings",
    # Functions
    "resolve",
    "evaluate",
    "evaluate_or_false",
    "load_workflow_file",
    "workflow_from_dict",
    "validate_dependencies",
    "save_workflow",
    # Types
    "InteractionRequest",
    "InteractionResponse",
]
