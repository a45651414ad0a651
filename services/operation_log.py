"""
Operation log: the operator-facing record of print activity.

A fixed-capacity ring buffer of LogEntry records. When full, the oldest
entry is evicted. Every append rewrites the JSON file so the last N
entries survive a restart, and is mirrored to the Python logger.

Persistence is best effort: a failed write is logged and the in-memory
buffer stays authoritative.

File format:
    {"logs": [LogEntry...], "lastUpdated": "<iso timestamp>"}
"""

from __future__ import annotations

import json
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from logging_config import get_logger
from models.log_entry import LogEntry, LogLevel

logger = get_logger(__name__)


class OperationLog:
    """
    Thread-safe bounded log of print operations.

    Attributes:
        capacity: Maximum number of entries retained
    """

    def __init__(
        self,
        file_path: Optional[Path] = None,
        capacity: int = 100,
        clock: Callable[[], datetime] = None,
    ):
        """
        Args:
            file_path: JSON file to persist to; None keeps the log in memory only
            capacity: Maximum entries kept (oldest evicted first)
            clock: Returns the current time; injectable for tests
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._file_path = Path(file_path) if file_path else None
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._entries: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._load()

    # =========================================================================
    # Public API
    # =========================================================================

    def append(
        self,
        level: LogLevel,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> LogEntry:
        """Record an entry, evicting the oldest one if the buffer is full."""
        entry = LogEntry(
            timestamp=self._clock(),
            level=level,
            message=message,
            data=dict(data or {}),
        )
        with self._lock:
            self._entries.append(entry)
            snapshot = list(self._entries)
            self._persist(snapshot)

        logger.log(level.python_level, f"[{level.value}] {message}")
        return entry

    def info(self, message: str, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.append(LogLevel.INFO, message, data)

    def warn(self, message: str, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.append(LogLevel.WARN, message, data)

    def error(self, message: str, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.append(LogLevel.ERROR, message, data)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.append(LogLevel.SUCCESS, message, data)

    def entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """
        Return entries, oldest first.

        Args:
            limit: If given, only the newest ``limit`` entries
        """
        with self._lock:
            items = list(self._entries)
        if limit is not None and limit >= 0:
            items = items[-limit:] if limit else []
        return items

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._persist([])
        logger.info("Operation log cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist(self, entries: List[LogEntry]) -> None:
        """Write the buffer to disk. Caller holds the lock."""
        if self._file_path is None:
            return
        document = {
            "logs": [entry.to_dict() for entry in entries],
            "lastUpdated": self._clock().isoformat(),
        }
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(self._file_path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not persist operation log to {self._file_path}: {e}")

    def _load(self) -> None:
        if self._file_path is None or not self._file_path.exists():
            return
        try:
            document = json.loads(self._file_path.read_text(encoding="utf-8"))
            raw_entries = document.get("logs", [])
            loaded = [LogEntry.from_dict(item) for item in raw_entries]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable operation log {self._file_path}: {e}")
            return
        # deque(maxlen) keeps only the newest entries if the file is larger
        self._entries.extend(loaded)
        logger.info(f"Loaded {len(self._entries)} operation log entries")
