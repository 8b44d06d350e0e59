"""
History Sink - Persisted Execution Records

Writes each finished ExecutionRecord to its own JSON file so past runs can be
listed, inspected and replayed step by step.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

from vaultflow.core.models import ExecutionRecord

logger = logging.getLogger(__name__)

# Base64 payloads longer than this are replaced by a size marker.
BINARY_DATA_LIMIT = 1000


def strip_binary(value: Any) -> Any:
    """Replace large binary FileExplorerData payloads with ``[Binary data: N chars]``."""
    if isinstance(value, dict):
        result = {key: strip_binary(item) for key, item in value.items()}
        data = value.get("data")
        if value.get("contentType") == "binary" and isinstance(data, str) and len(data) > BINARY_DATA_LIMIT:
            result["data"] = f"[Binary data: {len(data)} chars]"
        return result
    if isinstance(value, list):
        return [strip_binary(item) for item in value]
    if isinstance(value, str) and len(value) > BINARY_DATA_LIMIT and value.lstrip().startswith("{") and '"binary"' in value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return value
        if isinstance(parsed, dict):
            return json.dumps(strip_binary(parsed), ensure_ascii=False)
    return value


@dataclass
class JsonFileHistorySink:
    """One pretty-printed JSON file per run under ``directory``."""
    directory: Union[str, Path]

    def __post_init__(self):
        self.directory = Path(self.directory)

    def save(self, record: ExecutionRecord) -> Path:
        """Persist a record, creating the directory if needed."""
        self.directory.mkdir(parents=True, exist_ok=True)
        stamp = record.start_time.replace(":", "-").replace("+", "_")
        path = self._find(record.id) or self.directory / f"{stamp}_{record.id}.json"

        data = strip_binary(record.model_dump(by_alias=True))
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved execution record {record.id} to {path}")
        return path

    def load(self, record_id: str) -> Optional[ExecutionRecord]:
        path = self._find(record_id)
        if path is None:
            return None
        return self._read(path)

    def list_records(self, workflow_path: Optional[str] = None) -> List[ExecutionRecord]:
        """All saved records, newest first, optionally for one workflow file."""
        if not self.directory.exists():
            return []
        records = [self._read(path) for path in self.directory.glob("*.json")]
        if workflow_path is not None:
            records = [r for r in records if r.workflow_path == workflow_path]
        return sorted(records, key=lambda r: r.start_time, reverse=True)

    def delete(self, record_id: str) -> bool:
        path = self._find(record_id)
        if path is None:
            return False
        path.unlink()
        return True

    def clear(self) -> int:
        """Delete every saved record; returns how many were removed."""
        if not self.directory.exists():
            return 0
        count = 0
        for path in self.directory.glob("*.json"):
            path.unlink()
            count += 1
        return count

    def _find(self, record_id: str) -> Optional[Path]:
        if not self.directory.exists():
            return None
        matches = sorted(self.directory.glob(f"*_{record_id}.json"))
        return matches[0] if matches else None

    @staticmethod
    def _read(path: Path) -> ExecutionRecord:
        with open(path, 'r', encoding='utf-8') as f:
            return ExecutionRecord.model_validate(json.load(f))
