"""
Interaction Port

Interactive node kinds (dialogs, confirmations, file and note pickers) never
block on a UI. They send an ``InteractionRequest`` to the injected port and
await the matching ``InteractionResponse``; a ``None`` response means the
user cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

InteractionKind = Literal["dialog", "confirm", "select-file", "create-file", "select-note", "selection"]


@dataclass
class InteractionRequest:
    kind: InteractionKind
    node_id: str = ""
    title: str = ""
    message: str = ""
    options: List[str] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InteractionResponse:
    """
    The user's answer.

    ``value`` carries the primary result (a path, a selection, or True for an
    accepted confirmation); dialogs also fill ``button``, ``selected`` and ``input``.
    """
    value: Any = None
    button: Optional[str] = None
    selected: List[str] = field(default_factory=list)
    input: Optional[str] = None


@runtime_checkable
class InteractionPort(Protocol):
    async def request(self, request: InteractionRequest) -> Optional[InteractionResponse]: ...


@dataclass
class PendingInteraction:
    """A request waiting for an answer from whoever drains the queue."""
    request: InteractionRequest
    future: "asyncio.Future[Optional[InteractionResponse]]"

    def respond(self, response: Optional[InteractionResponse]) -> bool:
        """
        Deliver the answer to the suspended node.

        Returns:
            False if the node stopped waiting (for example the run was cancelled)
        """
        if self.future.done():
            return False
        self.future.set_result(response)
        return True

    def cancel(self) -> bool:
        return self.respond(None)


class QueueInteractionPort:
    """
    Message-passing port: requests are queued and each one is resolved
    through its own future.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[PendingInteraction]" = asyncio.Queue()

    async def request(self, request: InteractionRequest) -> Optional[InteractionResponse]:
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(PendingInteraction(request=request, future=future))
        logger.debug(f"Queued {request.kind} request for node '{request.node_id}'")
        return await future

    async def next_request(self) -> PendingInteraction:
        """Wait for the next request that needs an answer."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()
