"""
Local Vault - Directory-Backed Note Store

Implements the Vault provider on a plain directory of markdown notes and
attachments. Paths are vault-relative with forward slashes; anything that
would resolve outside the root is rejected.
"""

import logging
import re
from pathlib import Path
from typing import List

import yaml

from vaultflow.core.errors import NodeExecutionError
from vaultflow.providers import FileStat

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n", re.DOTALL)
INLINE_TAG_RE = re.compile(r"(?<![\w#/&])#([A-Za-z_][\w/-]*)")
CODE_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)


def extract_tags(content: str) -> List[str]:
    """Frontmatter ``tags`` plus inline ``#tags``, each with a leading ``#``, deduplicated."""
    tags: List[str] = []
    body = content

    match = FRONTMATTER_RE.match(content)
    if match:
        body = content[match.end():]
        try:
            meta = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError:
            logger.warning("Ignoring unreadable frontmatter")
            meta = {}
        raw = meta.get("tags") if isinstance(meta, dict) else None
        if isinstance(raw, str):
            raw = [t for t in re.split(r"[,\s]+", raw) if t]
        for tag in raw or []:
            tag = str(tag)
            tags.append(tag if tag.startswith("#") else f"#{tag}")

    for tag in INLINE_TAG_RE.findall(CODE_FENCE_RE.sub("", body)):
        tags.append(f"#{tag}")

    return list(dict.fromkeys(tags))


class LocalVault:
    def __init__(self, root: str = "."):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise NodeExecutionError(f"Path escapes the vault: {path}")
        return target

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    async def read_text(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    async def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    async def write_text(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def write_bytes(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def delete(self, path: str) -> None:
        self._resolve(path).unlink()

    async def list_files(self, folder: str = "", recursive: bool = True) -> List[str]:
        base = self._resolve(folder) if folder else self.root
        if not base.is_dir():
            return []
        pattern = "**/*" if recursive else "*"
        return sorted(
            self._relative(p) for p in base.glob(pattern)
            if p.is_file() and not any(part.startswith(".") for part in p.relative_to(self.root).parts)
        )

    async def list_folders(self, folder: str = "") -> List[str]:
        base = self._resolve(folder) if folder else self.root
        if not base.is_dir():
            return []
        return sorted(
            self._relative(p) for p in base.glob("**/*")
            if p.is_dir() and not any(part.startswith(".") for part in p.relative_to(self.root).parts)
        )

    async def stat(self, path: str) -> FileStat:
        st = self._resolve(path).stat()
        return FileStat(ctime=st.st_ctime, mtime=st.st_mtime, size=st.st_size)

    async def tags(self, path: str) -> List[str]:
        if not path.endswith(".md"):
            return []
        return extract_tags(await self.read_text(path))
