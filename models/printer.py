"""
Printer data models.

A PrinterDevice is one entry in a discovery snapshot. Snapshots are
rebuilt on every discovery call; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional


class PrinterKind(Enum):
    """Where a printer was found."""

    SYSTEM = "system"
    """Registered with the OS print spooler (CUPS)."""

    USB = "usb"
    """Raw USB line-printer character device."""


class PrinterStatus(Enum):
    """
    Printer availability as reported by discovery.

    Only SYSTEM printers can be INACTIVE; a raw device is either
    writable (ONLINE) or not (ERROR).
    """

    ONLINE = "online"
    OFFLINE = "offline"
    INACTIVE = "inactive"
    """Disabled in the spooler. Needs an explicit activation."""
    ERROR = "error"


def make_printer_id(kind: PrinterKind, name: str) -> str:
    """Stable id for a printer, e.g. ``system_5808L-V2024`` or ``usb_lp0``."""
    return f"{kind.value}_{name}"


def strip_printer_id(printer_id: str) -> str:
    """Recover the OS-level name from a printer id."""
    for kind in PrinterKind:
        prefix = f"{kind.value}_"
        if printer_id.startswith(prefix):
            return printer_id[len(prefix):]
    return printer_id


@dataclass(frozen=True)
class PrinterDevice:
    """
    A printer visible to this machine.

    Frozen so that a snapshot handed to a route or to the dispatcher
    cannot be changed underneath another thread.
    """

    id: str
    """Stable key derived from kind and name."""

    display_name: str
    """Spooler queue name or device file name."""

    kind: PrinterKind

    status: PrinterStatus

    is_default: bool = False
    """True for the spooler's default destination."""

    device_path: Optional[str] = None
    """Absolute device path, USB printers only."""

    can_activate: bool = False
    """True only for INACTIVE system printers."""

    @classmethod
    def system(cls, name: str, status: PrinterStatus, is_default: bool = False) -> "PrinterDevice":
        return cls(
            id=make_printer_id(PrinterKind.SYSTEM, name),
            display_name=name,
            kind=PrinterKind.SYSTEM,
            status=status,
            is_default=is_default,
            can_activate=status == PrinterStatus.INACTIVE,
        )

    @classmethod
    def usb(cls, name: str, device_path: str, status: PrinterStatus) -> "PrinterDevice":
        return cls(
            id=make_printer_id(PrinterKind.USB, name),
            display_name=name,
            kind=PrinterKind.USB,
            status=status,
            device_path=device_path,
        )

    @property
    def dedup_key(self) -> tuple:
        return (self.display_name, self.kind)

    @property
    def is_online(self) -> bool:
        return self.status == PrinterStatus.ONLINE

    @property
    def is_inactive(self) -> bool:
        return self.status == PrinterStatus.INACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape used by the HTTP API."""
        return {
            "id": self.id,
            "displayName": self.display_name,
            "kind": self.kind.value,
            "status": self.status.value,
            "isDefault": self.is_default,
            "devicePath": self.device_path,
            "canActivate": self.can_activate,
        }
