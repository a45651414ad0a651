"""
Core module for the Comanda print pipeline.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- command_runner: Argument-vector wrapper around subprocess with timeouts
- relay_client: HTTP forwarding of print jobs to operator-side relays
- orders_client: Orders API collaborator used by the auto-print monitor
"""

from .exceptions import (
    ComandaError,
    ConfigurationError,
    OrdersUnavailableError,
    PrinterNotFoundError,
    IPNotFoundError,
    FallbackWriteError,
)
from .command_runner import CommandRunner, CommandResult
from .relay_client import RelayClient, RelayOutcome, RelayResponse
from .orders_client import OrdersCollaborator, HttpOrdersClient

__all__ = [
    "ComandaError",
    "ConfigurationError",
    "OrdersUnavailableError",
    "PrinterNotFoundError",
    "IPNotFoundError",
    "FallbackWriteError",
    "CommandRunner",
    "CommandResult",
    "RelayClient",
    "RelayOutcome",
    "RelayResponse",
    "OrdersCollaborator",
    "HttpOrdersClient",
]
