import importlib
from typing import Awaitable, Callable, Dict, List, Optional

NodeHandler = Callable[..., Awaitable]


class HandlerRegistry:
    def __init__(self):
        self._handlers: Dict[str, NodeHandler] = {}
        # Built-in node kinds live in vaultflow.handlers.*; each module
        # exports a HANDLERS dict of node type -> coroutine function.
        self._register_defaults()

    def _register_defaults(self):
        for source in (
            "vaultflow.handlers.control_flow",
            "vaultflow.handlers.command",
            "vaultflow.handlers.http",
            "vaultflow.handlers.notes",
            "vaultflow.handlers.files",
            "vaultflow.handlers.prompts",
            "vaultflow.handlers.integration",
        ):
            self.register_module(source)

    def register_handler(self, node_type: str, handler: NodeHandler):
        self._handlers[node_type] = handler

    def register_module(self, source: str):
        """Import ``source`` and register every entry of its HANDLERS dict."""
        try:
            module = importlib.import_module(source)
        except ImportError as e:
            raise ValueError(f"Failed to import handlers from '{source}': {e}")

        handlers = getattr(module, "HANDLERS", None)
        if handlers is None:
            raise ValueError(f"Module '{source}' has no HANDLERS")
        for node_type, handler in handlers.items():
            self.register_handler(node_type, handler)

    def discover(self) -> List[str]:
        return sorted(self._handlers)

    def get_handler(self, node_type: str) -> Optional[NodeHandler]:
        return self._handlers.get(node_type)

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._handlers
