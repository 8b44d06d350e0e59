import sys
import os

# Add the project root directory to sys.path to allow imports from 'vaultflow'
# This mimics setting PYTHONPATH=. when running from the project root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import time

import pytest

from vaultflow.core.errors import NodeExecutionError, WorkflowLoadError
from vaultflow.core.scope import VariableScope
from vaultflow.dispatcher import NodeDispatcher
from vaultflow.executor import ExecutorEngine
from vaultflow.interaction import InteractionResponse
from vaultflow.providers import FileStat, HttpResponse, McpToolResult, ModelResult, Providers
from vaultflow.workflow_loader import workflow_from_dict


def make_workflow(nodes, name="test"):
    """Build a validated workflow from plain node dicts."""
    return workflow_from_dict({"name": name, "nodes": nodes})


async def run_node(providers, node, variables=None):
    """Dispatch a single node outside a run and return its StepOutcome."""
    workflow = make_workflow([node])
    return await NodeDispatcher().execute(workflow.nodes[0], VariableScope(variables), providers)


class FakeVault:
    """In-memory vault: path -> str (text) or bytes (binary)."""

    def __init__(self, files=None, tags=None):
        self.files = dict(files or {})
        self.file_tags = dict(tags or {})
        self.times = {}

    def touch(self, path, ctime, mtime):
        self.times[path] = (ctime, mtime)

    async def read_text(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        value = self.files[path]
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def read_bytes(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        value = self.files[path]
        return value if isinstance(value, bytes) else value.encode("utf-8")

    async def write_text(self, path, content):
        self.files[path] = content

    async def write_bytes(self, path, content):
        self.files[path] = content

    async def exists(self, path):
        return path in self.files

    async def delete(self, path):
        del self.files[path]

    async def list_files(self, folder="", recursive=True):
        prefix = folder.rstrip("/") + "/" if folder else ""
        paths = [p for p in self.files if p.startswith(prefix)]
        if not recursive:
            paths = [p for p in paths if "/" not in p[len(prefix):]]
        return sorted(paths)

    async def list_folders(self, folder=""):
        folders = set()
        for path in self.files:
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                folders.add("/".join(parts[:i]))
        return sorted(folders)

    async def stat(self, path):
        now = time.time()
        ctime, mtime = self.times.get(path, (now, now))
        data = self.files[path]
        return FileStat(ctime=ctime, mtime=mtime, size=len(data))

    async def tags(self, path):
        return list(self.file_tags.get(path, []))


class FakeModel:
    def __init__(self, text="model reply", images=None):
        self.text = text
        self.images = images or []
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        return ModelResult(text=self.text, model=request.model or "fake-model", images=self.images)


class FakeHttp:
    def __init__(self, status=200, content=b"", headers=None, error=None):
        self.response = HttpResponse(status=status, headers=headers or {}, content=content)
        self.error = error
        self.requests = []

    async def request(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.response


class FakeMcp:
    def __init__(self, text="tool result", is_error=False):
        self.result = McpToolResult(content=[{"type": "text", "text": text}], is_error=is_error)
        self.calls = []

    async def call_tool(self, url, tool, args, headers=None):
        self.calls.append((url, tool, args, headers))
        return self.result


class FakeHost:
    def __init__(self, known=("editor:save-file",), clipboard_error=None):
        self.known = set(known)
        self.opened = []
        self.executed = []
        self.clipboard = []
        self.clipboard_error = clipboard_error

    async def open_file(self, path):
        self.opened.append(path)

    async def execute(self, command_id, path=None):
        if command_id not in self.known:
            raise NodeExecutionError(f"Command not found: {command_id}")
        self.executed.append((command_id, path))

    async def write_clipboard(self, text):
        if self.clipboard_error:
            raise self.clipboard_error
        self.clipboard.append(text)


class FakeRag:
    def __init__(self, delete_error=None):
        self.uploads = []
        self.deletes = []
        self.delete_error = delete_error

    async def upload(self, setting, path, content):
        self.uploads.append((setting, path, content))
        return f"files/{len(self.uploads)}"

    async def delete(self, setting, path):
        if self.delete_error:
            raise self.delete_error
        self.deletes.append((setting, path))


class FakeResolver:
    def __init__(self, workflows=None):
        self.workflows = dict(workflows or {})

    def resolve(self, path, name=None):
        if path not in self.workflows:
            raise WorkflowLoadError(f"Sub-workflow not found: {path}")
        return self.workflows[path]


class ScriptedInteractionPort:
    """Answers interaction requests from a queue; None means the user cancelled."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    async def request(self, request):
        self.requests.append(request)
        if not self.responses:
            return None
        return self.responses.pop(0)


class FakeHistory:
    def __init__(self):
        self.saved = []

    def save(self, record):
        self.saved.append(record)


@pytest.fixture
def vault():
    return FakeVault()


@pytest.fixture
def providers(vault):
    return Providers(
        model=FakeModel(),
        http=FakeHttp(),
        mcp=FakeMcp(),
        vault=vault,
        workflows=FakeResolver(),
        interaction=ScriptedInteractionPort(),
        host=FakeHost(),
        rag=FakeRag(),
        history=FakeHistory(),
    )


@pytest.fixture
def engine(providers):
    return ExecutorEngine(providers=providers)


def confirm():
    return InteractionResponse(value=True)
