"""
Test doubles shared by the test modules.

FakeSpooler stands in for CommandRunner and behaves like a small CUPS
install: lpstat reports its queues, lp "prints" by reading the temp file
it is handed, and cupsenable flips a queue back on.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from core.command_runner import CommandResult
from core.exceptions import OrdersUnavailableError
from core.orders_client import OrdersCollaborator


def ok(argv, stdout: str = "") -> CommandResult:
    return CommandResult(argv=tuple(argv), returncode=0, stdout=stdout)


def failed(argv, stderr: str = "error", returncode: int = 1) -> CommandResult:
    return CommandResult(argv=tuple(argv), returncode=returncode, stderr=stderr)


def timed_out(argv) -> CommandResult:
    return CommandResult(argv=tuple(argv), returncode=None, timed_out=True)


def not_found(argv) -> CommandResult:
    return CommandResult(argv=tuple(argv), returncode=None, not_found=True)


class FakeSpooler:
    """
    In-memory print spooler.

    Args:
        printers: queue name -> True (enabled) / False (disabled)
        default: default destination name
        failing: queue names whose `lp -d` fails
        timing_out: queue names whose `lp -d` times out
        default_fails: `lp` without destination fails
        stuck: queue names cupsenable cannot revive (still disabled afterwards)
        enable_fails: cupsenable itself exits non-zero
        installed: False simulates a machine without CUPS
    """

    def __init__(
        self,
        printers: Optional[Dict[str, bool]] = None,
        default: Optional[str] = None,
        failing=(),
        timing_out=(),
        default_fails: bool = False,
        stuck=(),
        enable_fails: bool = False,
        installed: bool = True,
    ):
        self.printers = dict(printers or {})
        self.default = default
        self.failing = set(failing)
        self.timing_out = set(timing_out)
        self.default_fails = default_fails
        self.stuck = set(stuck)
        self.enable_fails = enable_fails
        self.installed = installed

        self.calls: List[Tuple[str, ...]] = []
        self.printed: List[Tuple[Optional[str], str]] = []
        self.temp_files: List[str] = []

    def run(self, argv, timeout):
        argv = tuple(argv)
        self.calls.append(argv)
        if not self.installed:
            return not_found(argv)

        command = argv[0]
        if command == "lpstat":
            return self._lpstat(argv)
        if command == "lp":
            return self._lp(argv)
        if command == "cupsenable":
            return self._cupsenable(argv)
        return not_found(argv)

    def lp_destinations(self) -> List[Optional[str]]:
        """Destination of every lp call, None for the default printer."""
        return [
            call[2] if len(call) > 3 and call[1] == "-d" else None
            for call in self.calls
            if call[0] == "lp"
        ]

    # -- commands ------------------------------------------------------------

    def _status_line(self, name: str) -> str:
        if self.printers[name]:
            return f"printer {name} is idle.  enabled since Mon 02 Mar 2026 10:00:00"
        return f"printer {name} disabled since Mon 02 Mar 2026 10:00:00 -\n\treason unknown"

    def _lpstat(self, argv):
        if argv[1] == "-d":
            if self.default:
                return ok(argv, f"system default destination: {self.default}\n")
            return ok(argv, "no system default destination\n")

        names = list(argv[2:]) or list(self.printers)
        if not self.printers or any(n not in self.printers for n in names):
            return failed(argv, "lpstat: No destinations added.")
        return ok(argv, "\n".join(self._status_line(n) for n in names) + "\n")

    def _lp(self, argv):
        path = argv[-1]
        destination = argv[2] if argv[1] == "-d" else None
        self.temp_files.append(path)
        content = Path(path).read_text(encoding="utf-8")

        if destination is None:
            if self.default_fails or not self.default:
                return failed(argv, "lp: Error - no default destination available.")
        elif destination in self.timing_out:
            return timed_out(argv)
        elif destination in self.failing or destination not in self.printers:
            return failed(argv, "lp: The printer or class does not exist.")

        self.printed.append((destination, content))
        return ok(argv, "request id is queue-1 (1 file(s))\n")

    def _cupsenable(self, argv):
        name = argv[1]
        if self.enable_fails or name not in self.printers:
            return failed(argv, "cupsenable: Unauthorized")
        if name not in self.stuck:
            self.printers[name] = True
        return ok(argv)


class InMemoryOrders(OrdersCollaborator):
    """Orders store backed by a dict. Records every print-status update."""

    def __init__(self, orders=()):
        self.orders = {order.id: order for order in orders}
        self.flagged = []
        self.fail_fetch = False
        self.fail_update = False

    def add(self, order):
        self.orders[order.id] = order

    def get_all_orders(self):
        if self.fail_fetch:
            raise OrdersUnavailableError("connection refused", url="http://orders")
        return list(self.orders.values())

    def update_print_status(self, order_id, printed):
        if self.fail_update:
            raise OrdersUnavailableError("HTTP 500", url="http://orders")
        self.flagged.append((order_id, printed))
