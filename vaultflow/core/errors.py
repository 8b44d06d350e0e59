"""
Error taxonomy for the workflow engine.

Authoring errors degrade gracefully, capability errors abort the run,
user cancels either skip or cancel, and load errors are raised before any
step executes.
"""

from typing import Optional


class VaultflowError(Exception):
    """Base class for all engine errors."""


class WorkflowLoadError(VaultflowError):
    """The workflow graph is structurally invalid (raised at load time)."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ConditionError(VaultflowError):
    """A condition expression could not be parsed or evaluated."""


class NodeExecutionError(VaultflowError):
    """A node failed while performing its effect."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.node_id = node_id


class ProviderUnavailableError(NodeExecutionError):
    """The capability provider a node needs was not injected."""


class SubWorkflowError(NodeExecutionError):
    """A nested workflow run ended with an error."""


class UserCancelledError(VaultflowError):
    """The user dismissed an interactive request or declined a confirmation."""


class ExecutionCancelled(VaultflowError):
    """The run's cancellation token fired."""
