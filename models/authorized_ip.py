"""
IP allow-list entry model.

Entries are created the first time an unknown IP tries to print through
the relay and are persisted to a JSON file by the IP gate.

Lifecycle:
    (none) -> PENDING -> (APPROVED | REJECTED)
    APPROVED <-> REJECTED   (operator revoke / re-approve)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class IPStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class AuthorizedIPEntry:
    """
    One IP known to the relay.

    Mutable: the gate updates entries in place while holding its lock,
    and hands out copies to callers.
    """

    ip: str
    label: str
    status: IPStatus
    first_seen_at: datetime
    last_activity_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape stored on disk and served by the API."""
        return {
            "ip": self.ip,
            "name": self.label,
            "status": self.status.value,
            "firstRequest": _iso(self.first_seen_at),
            "lastActivity": _iso(self.last_activity_at),
            "approvedAt": _iso(self.approved_at),
            "rejectedAt": _iso(self.rejected_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthorizedIPEntry":
        """
        Create from the stored JSON shape.

        Raises:
            KeyError: If ``ip`` or ``status`` is missing
            ValueError: If status or a timestamp is malformed
        """
        first_seen = _from_iso(data.get("firstRequest"))
        last_activity = _from_iso(data.get("lastActivity")) or first_seen
        if first_seen is None:
            first_seen = last_activity or datetime.now().astimezone()
            last_activity = last_activity or first_seen
        return cls(
            ip=data["ip"],
            label=data.get("name") or "",
            status=IPStatus(data["status"]),
            first_seen_at=first_seen,
            last_activity_at=last_activity,
            approved_at=_from_iso(data.get("approvedAt")),
            rejected_at=_from_iso(data.get("rejectedAt")),
        )
