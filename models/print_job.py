"""
Print job data models.

These models carry a single print request through the dispatch cascade
and report what happened:

    PrintJob            - the request (immutable)
    PrintAttemptResult  - one cascade step
    PrintResult         - the final outcome plus the full attempt trace
    ActivationResult    - outcome of re-enabling a disabled printer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class ErrorCode(Enum):
    """Machine-readable failure reasons surfaced through the HTTP API."""

    PRINTER_INACTIVE = "PRINTER_INACTIVE"
    """Target printer is disabled and must be activated by an operator."""

    PRINTER_NOT_FOUND = "PRINTER_NOT_FOUND"

    PRINT_COMMAND_FAILED = "PRINT_COMMAND_FAILED"
    """The print command exited non-zero or could not be started."""

    PRINT_TIMEOUT = "PRINT_TIMEOUT"
    """The print command outlived its timeout. The spooler may still have the job."""

    DEVICE_WRITE_FAILED = "DEVICE_WRITE_FAILED"

    RELAY_UNREACHABLE = "RELAY_UNREACHABLE"

    RELAY_REJECTED = "RELAY_REJECTED"
    """A relay answered with a status other than 200 or 403."""

    IP_NOT_AUTHORIZED = "IP_NOT_AUTHORIZED"

    NO_PRINTERS = "NO_PRINTERS"

    FALLBACK_WRITE_FAILED = "FALLBACK_WRITE_FAILED"

    PRINTER_CONFIGURATION_ISSUE = "PRINTER_CONFIGURATION_ISSUE"
    """Spooler says enabled, printer still reports disabled (driver-level problem)."""

    ACTIVATION_COMMAND_FAILED = "ACTIVATION_COMMAND_FAILED"

    NOT_ACTIVATABLE = "NOT_ACTIVATABLE"
    """Activation requested for a printer that is not a system printer."""


class Strategy(Enum):
    """Dispatch cascade steps, in the order they are tried."""

    RELAY = "relay"
    TARGET_PRINTER = "target_printer"
    THERMAL = "thermal"
    SYSTEM_DEFAULT = "system_default"
    DETECTED = "detected"
    FILE_FALLBACK = "file_fallback"


@dataclass(frozen=True)
class PrintJob:
    """A single print request."""

    order_id: Optional[int]
    """Order being printed; None for test pages."""

    rendered_text: str
    """Receipt text. Sanitized again by the dispatcher before printing."""

    target_printer_id: Optional[str] = None
    """Printer to try first, if the caller has a preference."""

    client_ip: Optional[str] = None
    """Originating IP, forwarded to the relay for authorization."""

    order_data: Optional[Dict[str, Any]] = None
    """Raw order payload, forwarded to the relay unchanged."""

    user_name: Optional[str] = None
    """Label the relay records if the client IP is unknown."""


@dataclass(frozen=True)
class PrintAttemptResult:
    """One step of the dispatch cascade."""

    strategy: Strategy
    success: bool
    message: str
    printer_id: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategyName": self.strategy.value,
            "printerId": self.printer_id,
            "success": self.success,
            "message": self.message,
            "errorCode": self.error_code.value if self.error_code else None,
        }


@dataclass
class PrintResult:
    """
    Final outcome of a dispatch.

    ``attempts`` holds the ordered trace of every strategy tried. A file
    fallback counts as success, with ``fallback`` and ``filepath`` set.
    """

    success: bool
    message: str
    printer_id: Optional[str] = None
    error: Optional[ErrorCode] = None
    auth_url: Optional[str] = None
    fallback: bool = False
    filepath: Optional[str] = None
    attempts: List[PrintAttemptResult] = field(default_factory=list)

    @property
    def strategy_trace(self) -> List[str]:
        return [attempt.strategy.value for attempt in self.attempts]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.printer_id:
            data["printerId"] = self.printer_id
        if self.error:
            data["error"] = self.error.value
        if self.auth_url:
            data["authUrl"] = self.auth_url
        if self.fallback:
            data["fallback"] = True
            data["filepath"] = self.filepath
        data["attempts"] = [attempt.to_dict() for attempt in self.attempts]
        return data


@dataclass(frozen=True)
class ActivationResult:
    """Outcome of re-enabling a disabled system printer."""

    success: bool
    message: str
    printer_id: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "printerId": self.printer_id,
        }
        if self.error_code:
            data["errorCode"] = self.error_code.value
        return data
