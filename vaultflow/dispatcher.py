"""
Node Dispatcher

Resolves a node's properties through the template engine, looks up the
handler for its type and awaits it. Handlers receive a ``NodeContext`` and
return a ``StepOutcome``; the walker applies the outcome to the scope.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from vaultflow.core.errors import NodeExecutionError
from vaultflow.core.models import Workflow, WorkflowNode
from vaultflow.core.registry import HandlerRegistry
from vaultflow.core.scope import VariableScope
from vaultflow.providers import Providers
from vaultflow.template import resolve

if TYPE_CHECKING:
    from vaultflow.executor import CancellationToken

logger = logging.getLogger(__name__)

# Left unresolved so the evaluator can tokenize before substitution.
RAW_PROPERTIES = ("condition",)

SubWorkflowRunner = Callable[[Workflow, VariableScope], Awaitable[None]]


@dataclass
class StepOutcome:
    """What a handler produced for one node visit."""
    input: Optional[Dict[str, Any]] = None
    output: Any = None
    variables: Dict[str, Any] = field(default_factory=dict)
    branch: Optional[bool] = None
    status: str = "success"
    error: Optional[str] = None


@dataclass
class NodeContext:
    node: WorkflowNode
    props: Dict[str, str]
    scope: VariableScope
    providers: Providers
    token: Optional["CancellationToken"] = None
    run_subworkflow: Optional[SubWorkflowRunner] = None
    first_visit: bool = True

    @property
    def node_id(self) -> str:
        return self.node.id

    def prop(self, name: str, default: str = "") -> str:
        value = self.props.get(name)
        if value is None or value == "":
            return default
        return value

    def flag(self, name: str, default: bool = False) -> bool:
        value = self.props.get(name)
        if value is None or value.strip() == "":
            return default
        return value.strip().lower() == "true"

    def int_prop(self, name: str, default: int) -> int:
        value = self.prop(name).strip()
        if not value:
            return default
        try:
            return int(float(value))
        except ValueError:
            raise NodeExecutionError(f"Property '{name}' must be a number, got '{value}'", self.node_id)

    def writes(self, **values: Any) -> Dict[str, Any]:
        """
        Map output properties to the variables they name.

        ``ctx.writes(saveTo=text)`` returns ``{<value of saveTo>: text}``, or an
        empty dict when the node does not set ``saveTo``.
        """
        result = {}
        for prop_name, value in values.items():
            target = self.prop(prop_name).strip()
            if target:
                result[target] = value
        return result

    def require(self, provider: str) -> Any:
        try:
            return self.providers.require(provider)
        except NodeExecutionError as e:
            e.node_id = self.node_id
            raise


class NodeDispatcher:
    def __init__(self, registry: Optional[HandlerRegistry] = None):
        self.registry = registry or HandlerRegistry()

    def resolve_properties(self, node: WorkflowNode, scope: VariableScope) -> Dict[str, str]:
        resolved = {}
        for key, value in node.properties.items():
            if key in RAW_PROPERTIES:
                resolved[key] = value
            else:
                resolved[key] = resolve(value, scope)
        return resolved

    async def execute(
        self,
        node: WorkflowNode,
        scope: VariableScope,
        providers: Providers,
        token: Optional["CancellationToken"] = None,
        run_subworkflow: Optional[SubWorkflowRunner] = None,
        first_visit: bool = True,
    ) -> StepOutcome:
        """
        Run one node.

        Args:
            node: The node to execute
            scope: Current variable scope; handlers read it, the walker writes it
            providers: Injected capabilities
            token: Cancellation token of the run
            run_subworkflow: Callback the ``workflow`` kind uses for nested runs
            first_visit: False when the walk has already executed this node

        Returns:
            The handler's StepOutcome, with ``input`` defaulting to the resolved properties

        Raises:
            NodeExecutionError: On an unknown node type or a capability failure
            UserCancelledError: When the user cancels an interactive request
        """
        handler = self.registry.get_handler(node.type)
        if handler is None:
            raise NodeExecutionError(f"Unknown node type '{node.type}'", node.id)

        props = self.resolve_properties(node, scope)
        ctx = NodeContext(
            node=node,
            props=props,
            scope=scope,
            providers=providers,
            token=token,
            run_subworkflow=run_subworkflow,
            first_visit=first_visit,
        )
        logger.debug(f"Dispatching {node.type} node '{node.id}'")

        outcome = await handler(ctx)
        if outcome.input is None:
            outcome.input = dict(props)
        return outcome
