"""
Executor Engine - The Control-Flow Walker

Walks a workflow graph one node at a time: dispatch the node, apply its
variable writes, close its step in the recorder and pick the successor.
The run ends when there is no successor, a node fails, or the
cancellation token fires.
"""

import argparse
import asyncio
import functools
import logging
import signal
import sys
from typing import Any, Dict, Optional

from vaultflow.config import Settings, configure_logging
from vaultflow.core.errors import (
    ExecutionCancelled, SubWorkflowError, UserCancelledError, VaultflowError,
)
from vaultflow.core.models import END_NODE, ExecutionRecord, Workflow, WorkflowNode
from vaultflow.core.registry import HandlerRegistry
from vaultflow.core.scope import VariableScope
from vaultflow.dispatcher import NodeDispatcher, StepOutcome
from vaultflow.extensions.console import ConsoleInteractionPort
from vaultflow.extensions.gemini import GeminiModelProvider
from vaultflow.extensions.http_client import HttpxClient
from vaultflow.extensions.local_vault import LocalVault
from vaultflow.extensions.mcp import McpHttpClient
from vaultflow.extensions.shell import ShellHostCommands
from vaultflow.history import JsonFileHistorySink
from vaultflow.providers import Providers
from vaultflow.recorder import ExecutionRecorder, StepListener
from vaultflow.template import coerce_literal
from vaultflow.workflow_loader import FileWorkflowResolver, load_workflow_file, validate_dependencies

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Execution cancelled"


class CancellationToken:
    """Cooperative cancel signal shared by a top-level run and its sub-workflows."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()


class RunFailed(VaultflowError):
    """A fatal node error that ends the run; carries the failing step id."""

    def __init__(self, message: str, node_id: str):
        super().__init__(message)
        self.node_id = node_id


class ExecutorEngine:
    """
    Executes workflows against injected providers.

    One engine can run many workflows; all per-run state (scope, recorder,
    token) lives in ``run_workflow``.
    """

    def __init__(self, providers: Optional[Providers] = None, registry: Optional[HandlerRegistry] = None):
        """
        Initialize the executor engine.

        Args:
            providers: Capabilities available to node handlers (and the history sink)
            registry: Node handlers; defaults to every built-in kind
        """
        self.providers = providers or Providers()
        self.dispatcher = NodeDispatcher(registry)

    async def run_workflow(
        self,
        workflow: Workflow,
        variables: Optional[Dict[str, Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_step: Optional[StepListener] = None,
    ) -> ExecutionRecord:
        """
        Execute a workflow from its first node.

        Args:
            workflow: The validated workflow graph
            variables: Initial variables
            cancel_token: Token the caller can fire to stop the run
            on_step: Called with every closed step, in order

        Returns:
            The closed record: completed, error (with ``error_node_id``) or cancelled
        """
        token = cancel_token or CancellationToken()
        recorder = ExecutionRecorder(workflow.name, workflow.path)
        if on_step is not None:
            recorder.add_listener(on_step)
        scope = VariableScope(variables)

        status = "completed"
        error_node_id = None
        logger.info(f"Starting workflow '{workflow.name}' ({len(workflow.nodes)} nodes)")
        try:
            await self._walk(workflow, scope, recorder, token)
        except ExecutionCancelled as e:
            status = "cancelled"
            logger.info(f"Workflow '{workflow.name}' cancelled: {e}")
        except RunFailed as e:
            status = "error"
            error_node_id = e.node_id
            logger.error(f"Workflow '{workflow.name}' failed at '{e.node_id}': {e}")
        except asyncio.CancelledError:
            self._finish(recorder, "cancelled", scope)
            raise

        record = self._finish(recorder, status, scope, error_node_id)
        logger.info(f"Workflow '{workflow.name}' finished with status {status} ({len(record.steps)} steps)")
        return record

    def _finish(self, recorder: ExecutionRecorder, status: str, scope: VariableScope, error_node_id: Optional[str] = None) -> ExecutionRecord:
        record = recorder.finish(status, scope.snapshot(), error_node_id)
        if self.providers.history is not None:
            try:
                self.providers.history.save(record)
            except OSError:
                logger.exception(f"Failed to save execution record {record.id}")
        return record

    async def _walk(
        self,
        workflow: Workflow,
        scope: VariableScope,
        recorder: ExecutionRecorder,
        token: CancellationToken,
        prefix: str = "",
    ):
        """
        Run nodes until the graph ends.

        Raises:
            ExecutionCancelled: Token fired, or an interactive cancel with no ``onCancel``
            RunFailed: A node failed without ``bestEffort``
        """
        current: Optional[str] = workflow.entry_node.id
        visited = set()
        while current is not None:
            if token.is_cancelled:
                raise ExecutionCancelled(CANCELLED_MESSAGE)

            node = workflow.get_node(current)
            step_id = prefix + node.id
            step = recorder.begin(step_id, node.type, node.properties)
            logger.info(f"Executing {node.type} node '{step_id}'")

            run_subworkflow = functools.partial(
                self._run_nested, recorder=recorder, token=token, parent_step_id=step_id
            )

            first_visit = node.id not in visited
            visited.add(node.id)

            try:
                execution = self.dispatcher.execute(
                    node, scope, self.providers, token, run_subworkflow, first_visit=first_visit
                )
                if prefix:
                    # Nested runs are already raced by the top-level walk.
                    outcome = await execution
                else:
                    outcome = await self._race(execution, token)
            except (ExecutionCancelled, asyncio.CancelledError):
                recorder.close(step, "error", error=CANCELLED_MESSAGE)
                raise
            except UserCancelledError as e:
                recorder.close(step, "skipped", error=str(e))
                target = node.properties.get("onCancel")
                if not target:
                    raise ExecutionCancelled(str(e))
                logger.info(f"Node '{step_id}' cancelled by user; continuing at '{target}'")
                current = None if target == END_NODE else target
                continue
            except Exception as e:
                recorder.close(step, "error", error=str(e))
                if node.properties.get("bestEffort", "").strip().lower() == "true":
                    logger.warning(f"Node '{step_id}' failed (best effort, continuing): {e}")
                    current = self.successor(workflow, node)
                    continue
                raise RunFailed(str(e), step_id) from e

            self._apply(scope, outcome)
            recorder.close(step, outcome.status, output=outcome.output, error=outcome.error, input=outcome.input)
            if outcome.status == "error":
                logger.warning(f"Node '{step_id}' recorded an error: {outcome.error}")
            current = self.successor(workflow, node, outcome.branch)

    async def _run_nested(
        self,
        workflow: Workflow,
        scope: VariableScope,
        recorder: ExecutionRecorder,
        token: CancellationToken,
        parent_step_id: str,
    ):
        try:
            await self._walk(workflow, scope, recorder, token, prefix=f"{parent_step_id}/")
        except RunFailed as e:
            raise SubWorkflowError(f"Sub-workflow '{workflow.name}' failed at '{e.node_id}': {e}", parent_step_id) from e

    @staticmethod
    def _apply(scope: VariableScope, outcome: StepOutcome):
        for name, value in outcome.variables.items():
            scope[name] = value

    @staticmethod
    async def _race(execution, token: CancellationToken) -> StepOutcome:
        """Await a node, aborting it as soon as the token fires."""
        task = asyncio.ensure_future(execution)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        # Collect the aborted task so its cancellation is not reported as unhandled.
        await asyncio.gather(task, return_exceptions=True)
        raise ExecutionCancelled(CANCELLED_MESSAGE)

    @staticmethod
    def successor(workflow: Workflow, node: WorkflowNode, branch: Optional[bool] = None) -> Optional[str]:
        """
        Id of the node to run after ``node``, or None when the run ends.

        Branch kinds follow trueNext (falling through positionally when unset)
        or falseNext (ending the run when unset). Other kinds follow ``next``,
        then array order. ``"end"`` always ends the run.
        """
        if node.is_branch and branch is not None:
            if branch:
                target = node.true_next or workflow.positional_successor(node.id)
            else:
                target = node.false_next
        else:
            target = node.next or workflow.positional_successor(node.id)

        if target == END_NODE:
            return None
        return target


def build_providers(settings: Settings, vault_dir: Optional[str] = None, history_dir: Optional[str] = None) -> Providers:
    """Wire the concrete extensions for command-line runs."""
    vault_root = vault_dir or settings.vault_dir
    providers = Providers(
        http=HttpxClient(timeout=settings.http_timeout),
        mcp=McpHttpClient(timeout=settings.http_timeout),
        vault=LocalVault(vault_root),
        workflows=FileWorkflowResolver(vault_root),
        interaction=ConsoleInteractionPort(),
        host=ShellHostCommands(clipboard=settings.clipboard_command, timeout=settings.shell_timeout),
        history=JsonFileHistorySink(history_dir) if history_dir else None,
    )
    if settings.gemini_api_key:
        providers.model = GeminiModelProvider(settings.gemini_api_key, settings.gemini_model_name)
    return providers


def _parse_vars(pairs) -> Dict[str, Any]:
    variables = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --var '{pair}', expected key=value")
        variables[key.strip()] = coerce_literal(value)
    return variables


async def _run_cli(engine: ExecutorEngine, workflow: Workflow, variables: Dict[str, Any]) -> ExecutionRecord:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        # Signal handlers are unavailable on Windows event loops.
        pass

    def print_step(step):
        marker = {"success": "ok", "error": "FAILED", "skipped": "skipped"}.get(step.status, step.status)
        print(f"  [{marker}] {step.node_id} ({step.node_type})" + (f": {step.error}" if step.error else ""))

    return await engine.run_workflow(workflow, variables, cancel_token=token, on_step=print_step)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="vaultflow workflow executor")
    parser.add_argument("workflow_path", help="Path to a .yaml/.yml/.json workflow file")
    parser.add_argument("--name", help="Workflow name when the file holds several")
    parser.add_argument("--var", action="append", metavar="KEY=VALUE", help="Initial variable (repeatable)")
    parser.add_argument("--history-dir", help="Directory for execution records")
    parser.add_argument("--vault", help="Vault root directory")
    parser.add_argument("--no-history", action="store_true", help="Do not save the execution record")

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        workflow = load_workflow_file(args.workflow_path, name=args.name)
        variables = _parse_vars(args.var)
    except (VaultflowError, ValueError, OSError) as e:
        print(f"Failed to load workflow: {e}")
        return 1

    history_dir = None if args.no_history else (args.history_dir or settings.history_dir)
    engine = ExecutorEngine(providers=build_providers(settings, args.vault, history_dir))

    is_valid, errors = validate_dependencies(workflow, engine.dispatcher.registry)
    if not is_valid:
        print("Validation errors:")
        for err in errors:
            print(f"  - {err}")
        return 1

    print(f"Running workflow '{workflow.name}' from {args.workflow_path}...")
    record = asyncio.run(_run_cli(engine, workflow, variables))

    print(f"\nWorkflow {record.status} ({len(record.steps)} steps)")
    if record.error_node_id:
        print(f"Failed at node '{record.error_node_id}'")
    return 0 if record.status == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
