"""
Capability Providers

Interfaces the node handlers call for every external effect: model calls,
HTTP, MCP tools, the note vault, host commands, indexing and history.
Handlers never touch the outside world directly; concrete implementations
live in ``vaultflow.extensions`` and are injected through ``Providers``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING, runtime_checkable

from vaultflow.core.errors import ProviderUnavailableError

if TYPE_CHECKING:
    from vaultflow.core.models import ExecutionRecord, Workflow
    from vaultflow.interaction import InteractionPort


@dataclass
class Attachment:
    """Binary or text payload passed to a model alongside the prompt."""
    mime_type: str
    data: str  # base64 for binary content
    name: str = ""


@dataclass
class ModelRequest:
    prompt: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    rag_setting: Optional[str] = None
    vault_tools: Optional[str] = None
    mcp_servers: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


@dataclass
class ModelResult:
    """Standardized result from a model call."""
    text: str = ""
    model: str = ""
    images: List[Attachment] = field(default_factory=list)
    usage: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HttpRequest:
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None
    files: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, str]] = None


@dataclass
class HttpResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def is_error(self) -> bool:
        return self.status >= 400


@dataclass
class McpToolResult:
    """Tool call result; ``content`` follows the MCP content-block shape."""
    content: List[Dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(block.get("text", "") for block in self.content if block.get("type") == "text")


@dataclass
class FileStat:
    ctime: float
    mtime: float
    size: int


@runtime_checkable
class ModelProvider(Protocol):
    async def generate(self, request: ModelRequest) -> ModelResult: ...


@runtime_checkable
class HttpClient(Protocol):
    async def request(self, request: HttpRequest) -> HttpResponse: ...


@runtime_checkable
class McpClient(Protocol):
    async def call_tool(
        self, url: str, tool: str, args: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> McpToolResult: ...


@runtime_checkable
class Vault(Protocol):
    async def read_text(self, path: str) -> str: ...
    async def read_bytes(self, path: str) -> bytes: ...
    async def write_text(self, path: str, content: str) -> None: ...
    async def write_bytes(self, path: str, content: bytes) -> None: ...
    async def exists(self, path: str) -> bool: ...
    async def delete(self, path: str) -> None: ...
    async def list_files(self, folder: str = "", recursive: bool = True) -> List[str]: ...
    async def list_folders(self, folder: str = "") -> List[str]: ...
    async def stat(self, path: str) -> FileStat: ...
    async def tags(self, path: str) -> List[str]: ...


@runtime_checkable
class WorkflowResolver(Protocol):
    def resolve(self, path: str, name: Optional[str] = None) -> "Workflow": ...


@runtime_checkable
class HostCommands(Protocol):
    async def open_file(self, path: str) -> None: ...
    async def execute(self, command_id: str, path: Optional[str] = None) -> Any: ...
    async def write_clipboard(self, text: str) -> None: ...


@runtime_checkable
class RagIndexer(Protocol):
    async def upload(self, setting: str, path: str, content: str) -> str: ...
    async def delete(self, setting: str, path: str) -> None: ...


@runtime_checkable
class HistorySink(Protocol):
    def save(self, record: "ExecutionRecord") -> None: ...


@dataclass
class Providers:
    """Bundle of injected capabilities; any of them may be absent."""
    model: Optional[ModelProvider] = None
    http: Optional[HttpClient] = None
    mcp: Optional[McpClient] = None
    vault: Optional[Vault] = None
    workflows: Optional[WorkflowResolver] = None
    interaction: Optional["InteractionPort"] = None
    host: Optional[HostCommands] = None
    rag: Optional[RagIndexer] = None
    history: Optional[HistorySink] = None
    # Last selection made in the editor, used by prompt-selection.
    selection: Optional[str] = None

    def require(self, name: str) -> Any:
        """
        Return the named provider or fail the node.

        Raises:
            ProviderUnavailableError: If the provider was not injected
        """
        provider = getattr(self, name, None)
        if provider is None:
            raise ProviderUnavailableError(f"No '{name}' provider configured")
        return provider
