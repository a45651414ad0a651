"""
Data models for the Comanda print pipeline.

This module contains dataclasses for:
- Order: Customer order as returned by the orders API
- PrinterDevice: One printer in a discovery snapshot
- PrintJob / PrintResult: A print request and its outcome
- AuthorizedIPEntry: Relay allow-list entry
- LogEntry: Operation log record

Snapshots handed across threads (Order, PrinterDevice, PrintJob,
LogEntry) are frozen.
"""

from .order import Order
from .printer import PrinterDevice, PrinterKind, PrinterStatus, make_printer_id, strip_printer_id
from .print_job import (
    PrintJob,
    PrintAttemptResult,
    PrintResult,
    ActivationResult,
    ErrorCode,
    Strategy,
)
from .authorized_ip import AuthorizedIPEntry, IPStatus
from .log_entry import LogEntry, LogLevel

__all__ = [
    # Order models
    "Order",
    # Printer models
    "PrinterDevice",
    "PrinterKind",
    "PrinterStatus",
    "make_printer_id",
    "strip_printer_id",
    # Print job models
    "PrintJob",
    "PrintAttemptResult",
    "PrintResult",
    "ActivationResult",
    "ErrorCode",
    "Strategy",
    # Relay allow-list
    "AuthorizedIPEntry",
    "IPStatus",
    # Operation log
    "LogEntry",
    "LogLevel",
]
