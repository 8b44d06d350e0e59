import asyncio
import logging
import shlex
from typing import Any, Dict, Optional

from vaultflow.core.errors import NodeExecutionError

logger = logging.getLogger(__name__)


class ShellHostCommands:
    """
    Host-command provider that maps command ids to shell commands.

    A command template may use ``{path}``, which is replaced with the quoted
    note path. ``open_file`` runs ``opener`` the same way. ``write_clipboard``
    pipes its text into ``clipboard`` (for example ``pbcopy`` or
    ``xclip -selection clipboard``).
    """

    def __init__(self, commands: Optional[Dict[str, str]] = None, opener: str = "",
                 clipboard: str = "", timeout: float = 30):
        self.commands: Dict[str, str] = dict(commands or {})
        self.opener = opener
        self.clipboard = clipboard
        self.timeout = timeout

    def register(self, command_id: str, command: str):
        self.commands[command_id] = command

    async def run(self, command: str, input_text: Optional[str] = None) -> Dict[str, Any]:
        """
        Execute a shell command and return its exit code and output.

        Args:
            command: Shell command line
            input_text: Text written to the command's stdin

        Raises:
            NodeExecutionError: On timeout or a non-zero exit code
        """
        stdin_data = input_text.encode("utf-8") if input_text is not None else None
        # Running with a shell so command templates may use pipes.
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.PIPE if input_text is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(stdin_data), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise NodeExecutionError(f"Command timed out after {self.timeout}s: {command}")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        result = {
            "stdout": stdout.decode("utf-8", errors="replace").strip(),
            "stderr": stderr.decode("utf-8", errors="replace").strip(),
            "exit_code": process.returncode,
        }
        if process.returncode != 0:
            raise NodeExecutionError(
                f"Error (Exit Code {process.returncode}):\n{result['stderr']}\n{result['stdout']}".strip()
            )
        return result

    def _render(self, template: str, path: Optional[str]) -> str:
        return template.replace("{path}", shlex.quote(path or ""))

    async def execute(self, command_id: str, path: Optional[str] = None) -> Any:
        template = self.commands.get(command_id)
        if template is None:
            raise NodeExecutionError(f"Command not found: {command_id}")
        logger.debug(f"Running host command '{command_id}'")
        return await self.run(self._render(template, path))

    async def open_file(self, path: str) -> None:
        if not self.opener:
            logger.info(f"Open requested for {path}")
            return
        await self.run(self._render(self.opener, path))

    async def write_clipboard(self, text: str) -> None:
        if not self.clipboard:
            logger.info("No clipboard command configured; clipboard write skipped")
            return
        await self.run(self.clipboard, input_text=text)
