"""
Services layer for the Comanda print pipeline.

This module contains the business logic services:
- PrinterDiscovery: System and USB printer catalog
- PrinterActivator: Re-enables disabled spooler queues
- ReceiptRenderer: Order -> receipt text, plus thermal sanitization
- PrintDispatcher: Delivery cascade with file fallback
- IPGate: Relay allow-list
- OperationLog: Bounded operator-facing log
- AutoPrintMonitor: Background polling of new orders
- PrinterService: Facade used by the routes

Thread Model:
    Main Thread (Flask request threads)
    └── AutoPrintMonitor thread (fixed-interval poll, dashboard server only)

PrintDispatcher serializes all printing across threads.
"""

from .operation_log import OperationLog
from .discovery import PrinterDiscovery
from .activation import PrinterActivator
from .renderer import ReceiptRenderer, sanitize_for_thermal
from .dispatcher import PrintDispatcher
from .ip_gate import IPGate
from .autoprint_service import AutoPrintMonitor
from .printer_service import PrinterService

__all__ = [
    "OperationLog",
    "PrinterDiscovery",
    "PrinterActivator",
    "ReceiptRenderer",
    "sanitize_for_thermal",
    "PrintDispatcher",
    "IPGate",
    "AutoPrintMonitor",
    "PrinterService",
]
