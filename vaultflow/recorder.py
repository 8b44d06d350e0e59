"""
Execution Recorder

Collects the append-only trace of one top-level run. Steps are opened as
``pending`` when a node starts (and stay open while it is suspended), and
are appended to the record when closed. The recorder does no I/O; persisting
finished records is the history sink's job.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from vaultflow.core.models import ExecutionRecord, ExecutionStep

logger = logging.getLogger(__name__)

StepListener = Callable[[ExecutionStep], None]


class ExecutionRecorder:
    def __init__(self, workflow_name: str = "", workflow_path: Optional[str] = None, record_id: Optional[str] = None):
        self.record = ExecutionRecord(
            id=record_id or uuid.uuid4().hex,
            workflow_name=workflow_name,
            workflow_path=workflow_path,
            start_time=_now(),
        )
        self._listeners: List[StepListener] = []
        self._open: Dict[int, ExecutionStep] = {}

    def add_listener(self, listener: StepListener):
        self._listeners.append(listener)

    def begin(self, node_id: str, node_type: str, input: Optional[Dict[str, Any]] = None) -> ExecutionStep:
        """Open a pending step for a node visit."""
        step = ExecutionStep(node_id=node_id, node_type=node_type, timestamp=_now(), input=dict(input or {}))
        self._open[id(step)] = step
        return step

    def close(
        self,
        step: ExecutionStep,
        status: str,
        output: Any = None,
        error: Optional[str] = None,
        input: Optional[Dict[str, Any]] = None,
    ) -> ExecutionStep:
        """
        Finalize a pending step, append it and notify listeners.

        Args:
            step: The step returned by ``begin``
            status: success, error or skipped
            output: Node output
            error: Error message, if any
            input: Replaces the opening input (e.g. with resolved properties)

        Returns:
            The closed, immutable step

        Raises:
            ValueError: If the step is not open
        """
        if self._open.pop(id(step), None) is None:
            raise ValueError(f"Step for node '{step.node_id}' is not open")

        update: Dict[str, Any] = {"status": status, "output": output, "error": error}
        if input is not None:
            update["input"] = dict(input)
        closed = step.model_copy(update=update)
        self.record.steps.append(closed)

        for listener in self._listeners:
            try:
                listener(closed)
            except Exception:
                logger.exception(f"Step listener failed for node '{closed.node_id}'")
        return closed

    @property
    def open_steps(self) -> List[ExecutionStep]:
        return list(self._open.values())

    def finish(self, status: str, variables: Optional[Dict[str, Any]] = None, error_node_id: Optional[str] = None) -> ExecutionRecord:
        """Close the record with its final status and scope snapshot."""
        self.record.status = status
        self.record.end_time = _now()
        self.record.variables = dict(variables or {})
        self.record.error_node_id = error_node_id
        return self.record


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()
