"""
Operation log entry model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any


class LogLevel(Enum):
    """Operator-facing severity. SUCCESS has no stdlib logging equivalent."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    SUCCESS = "success"

    @property
    def python_level(self) -> int:
        return {
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.SUCCESS: logging.INFO,
        }[self]


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            level=LogLevel(data.get("level", "info")),
            message=data.get("message", ""),
            data=data.get("data") or {},
        )
