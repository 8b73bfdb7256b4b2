"""Sync activity logging to the Python logger with an optional JSONL trail."""
from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_LOG_PATH = Path(__file__).resolve().parents[2] / "sync_log.jsonl"


class SyncLog(Protocol):
    """Structured sink called at the start and end of every sync operation."""

    def __call__(self, operation: str, details: Dict[str, Any]) -> None: ...


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return str(value)


class LoggingSyncLog:
    """Writes each sync event to a stdlib logger."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.log = log or logging.getLogger("proposal_sync.sync")
        self.level = level

    def __call__(self, operation: str, details: Dict[str, Any]) -> None:
        self.log.log(self.level, "[SYNC] %s %s", operation, json.dumps(details, default=_json_default))


class JsonlSyncLog(LoggingSyncLog):
    """Logs like LoggingSyncLog and also appends entries to a JSONL file."""

    def __init__(self, path: Optional[Path] = None, log: Optional[logging.Logger] = None) -> None:
        super().__init__(log)
        self.path = Path(path) if path else _get_log_path()

    def __call__(self, operation: str, details: Dict[str, Any]) -> None:
        super().__call__(operation, details)
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "operation": operation,
            **details,
        }
        try:
            _write_file(self.path, entry)
        except OSError as exc:
            # The trail is observability only; the sync itself already happened.
            self.log.warning("[SYNC] Could not append to %s: %s", self.path, exc)


def fetch_sync_entries(limit: int = 50, path: Optional[Path] = None) -> list[Dict[str, Any]]:
    """Return recent sync log entries, newest first."""

    log_path = Path(path) if path else _get_log_path()
    if not log_path.exists():
        return []
    lines = log_path.read_text(encoding="utf-8").splitlines()
    entries: list[Dict[str, Any]] = []
    for line in lines[-limit:]:
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return list(reversed(entries))


def _write_file(path: Path, entry: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(entry, default=_json_default))
        handle.write("\n")


def _get_log_path() -> Path:
    override = os.getenv("PSYNC_SYNC_LOG")
    if override:
        return Path(override)
    return DEFAULT_LOG_PATH
