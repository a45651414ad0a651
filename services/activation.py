"""
Printer activation.

Re-enables a spooler queue that CUPS has disabled (typically after the
printer was unplugged mid-job). Activation changes shared system state,
so it only ever happens on explicit operator request, never as a side
effect of printing.

Outcomes:
    enabled and now reported active    -> success
    enable succeeded, still disabled   -> PRINTER_CONFIGURATION_ISSUE
                                          (spooler accepted it, driver/device did not)
    enable command failed or missing   -> ACTIVATION_COMMAND_FAILED
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from core.command_runner import CommandRunner
from logging_config import get_logger
from models.print_job import ActivationResult, ErrorCode
from models.printer import PrinterKind, PrinterStatus, strip_printer_id
from services.discovery import PrinterDiscovery
from services.operation_log import OperationLog

logger = get_logger(__name__)


class PrinterActivator:

    def __init__(
        self,
        runner: CommandRunner,
        discovery: PrinterDiscovery,
        operation_log: Optional[OperationLog] = None,
        settle_delay: float = 2.0,
        command_timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            runner: Executes cupsenable
            discovery: Used to re-query the queue after enabling
            operation_log: Receives one entry per activation
            settle_delay: Seconds to wait before re-querying
            command_timeout: Timeout for the enable command
            sleep: Injectable for tests
        """
        self._runner = runner
        self._discovery = discovery
        self._log = operation_log
        self._settle_delay = settle_delay
        self._timeout = command_timeout
        self._sleep = sleep

    def activate(self, printer_id: str) -> ActivationResult:
        """
        Enable a disabled system printer and verify it came back.

        Args:
            printer_id: Discovery id, e.g. "system_5808L-V2024"

        Returns:
            ActivationResult (never raises)
        """
        if not printer_id.startswith(f"{PrinterKind.SYSTEM.value}_"):
            return self._finish(ActivationResult(
                success=False,
                message="Only system printers can be activated",
                printer_id=printer_id,
                error_code=ErrorCode.NOT_ACTIVATABLE,
            ))

        name = strip_printer_id(printer_id)
        logger.info(f"Activating printer {name}")

        result = self._runner.run(["cupsenable", name], timeout=self._timeout)
        if not result.ok:
            return self._finish(ActivationResult(
                success=False,
                message=f"Enable command failed for {name}: {result.error_text}",
                printer_id=printer_id,
                error_code=ErrorCode.ACTIVATION_COMMAND_FAILED,
            ))

        self._sleep(self._settle_delay)

        status = self._discovery.query_system_status(name)
        if status == PrinterStatus.ONLINE:
            return self._finish(ActivationResult(
                success=True,
                message=f"Printer {name} activated",
                printer_id=printer_id,
            ))

        if status == PrinterStatus.INACTIVE:
            return self._finish(ActivationResult(
                success=False,
                message=(
                    f"Printer {name} was enabled in the spooler but still reports disabled. "
                    "Check the cable, power and driver."
                ),
                printer_id=printer_id,
                error_code=ErrorCode.PRINTER_CONFIGURATION_ISSUE,
            ))

        return self._finish(ActivationResult(
            success=False,
            message=f"Enable command had no effect on {name} (status: "
                    f"{status.value if status else 'unknown'})",
            printer_id=printer_id,
            error_code=ErrorCode.ACTIVATION_COMMAND_FAILED,
        ))

    def _finish(self, result: ActivationResult) -> ActivationResult:
        if self._log is not None:
            if result.success:
                self._log.success(result.message, {"printerId": result.printer_id})
            else:
                self._log.error(result.message, result.to_dict())
        else:
            logger.info(result.message)
        return result
