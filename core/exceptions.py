"""
Custom exceptions for the Comanda print pipeline.

Exception Hierarchy:
    ComandaError (base)
    ├── ConfigurationError      - Invalid configuration (startup failure)
    ├── OrdersUnavailableError  - Orders API unreachable or malformed (runtime, graceful)
    ├── PrinterNotFoundError    - Unknown printer id (runtime, 404)
    ├── IPNotFoundError         - Approve/reject of an IP with no entry (runtime, 404)
    └── FallbackWriteError      - Unprinted-orders file could not be written (runtime, hard failure)

Usage:
    Components return structured results (PrintResult, ActivationResult)
    instead of raising across their boundaries. These exceptions cover the
    cases a caller is expected to handle explicitly; routes translate them
    into JSON error bodies.
"""

from typing import Optional, Dict, Any


class ComandaError(Exception):
    """
    Base exception for all Comanda errors.

    Callers can catch every application-specific error with a single
    except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# STARTUP ERRORS - Application will not start if these occur
# =============================================================================

class ConfigurationError(ComandaError):
    """
    A configuration value is missing or unusable.

    Raised by the app factories when a required setting cannot be
    satisfied (e.g. the unprinted-orders directory cannot be created).
    """

    def __init__(self, setting: str, reason: str):
        message = f"Invalid configuration for {setting}: {reason}"
        details = {
            "setting": setting,
            "resolution": f"Check {setting} in .env",
        }
        super().__init__(message, details)
        self.setting = setting


# =============================================================================
# RUNTIME ERRORS - Application continues, but operation fails gracefully
# =============================================================================

class OrdersUnavailableError(ComandaError):
    """
    The orders API could not be reached or returned something unusable.

    The auto-print monitor logs this and tries again on the next tick.
    """

    def __init__(self, message: str = "Orders API is not available", url: Optional[str] = None):
        details = {"resolution": "Check ORDERS_API_URL and that the orders API is running"}
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.url = url


class PrinterNotFoundError(ComandaError):
    """No printer with the given id was found by discovery."""

    def __init__(self, printer_id: str):
        super().__init__(
            f"Printer not found: {printer_id}",
            {"printer_id": printer_id, "resolution": "Run printer detection again"},
        )
        self.printer_id = printer_id


class IPNotFoundError(ComandaError):
    """
    Approve/reject was requested for an IP the gate has never seen.

    Entries are only created when an unauthorized client tries to print,
    so an operator cannot pre-approve an arbitrary address.
    """

    def __init__(self, ip: str):
        super().__init__("IP not found", {"ip": ip})
        self.ip = ip


class FallbackWriteError(ComandaError):
    """
    Every print strategy failed and the unprinted-orders file could not
    be written either. This is the only dispatch outcome reported to the
    caller as a hard failure.
    """

    def __init__(self, directory: str, reason: str):
        message = f"Could not save unprinted order to {directory}: {reason}"
        details = {
            "directory": directory,
            "resolution": "Check free disk space and permissions on UNPRINTED_ORDERS_DIR",
        }
        super().__init__(message, details)
        self.directory = directory
