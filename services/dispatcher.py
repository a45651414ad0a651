"""
Print dispatcher: the delivery cascade.

A job is tried against each strategy in turn until one succeeds:

    1. relay           - forward to an operator-side relay over HTTP
    2. target_printer  - the printer the caller asked for
    3. thermal         - printers whose name matches a thermal identifier
    4. system_default  - `lp` with no destination
    5. detected        - every other discovered printer, in discovery order
    6. file_fallback   - save the text under the unprinted-orders directory

Terminal outcomes that stop the cascade early:
    - a relay answers 403 (IP not authorized); the caller gets the relay's authUrl
    - the target printer is disabled; an operator has to activate it first

Any other disabled printer met along the way is recorded as a failed
attempt and skipped. Activation is never attempted here.

Only one job prints at a time. The spooler and raw USB devices are not
safe for concurrent writers, so dispatch() holds a lock for the whole
cascade.

Every attempt is appended to the operation log.
"""

from __future__ import annotations

import os
import select
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from core.command_runner import CommandRunner
from core.exceptions import FallbackWriteError
from core.relay_client import RelayClient, RelayOutcome
from logging_config import get_logger
from models.print_job import (
    ErrorCode,
    PrintAttemptResult,
    PrintJob,
    PrintResult,
    Strategy,
)
from models.printer import PrinterDevice, PrinterKind
from services.discovery import PrinterDiscovery
from services.operation_log import OperationLog
from services.renderer import sanitize_for_thermal

logger = get_logger(__name__)

INACTIVE_MESSAGE = "Printer {name} is disabled. Activate it manually before printing."

_DEVICE_OPEN_FLAGS = os.O_WRONLY | getattr(os, "O_NONBLOCK", 0)


class PrintDispatcher:
    """
    Runs print jobs through the delivery cascade.

    Attributes:
        unprinted_dir: Where file fallbacks are written
        thermal_names: Lower-cased identifiers matched against printer names
    """

    def __init__(
        self,
        runner: CommandRunner,
        discovery: PrinterDiscovery,
        operation_log: OperationLog,
        unprinted_dir: Path,
        relay_client: Optional[RelayClient] = None,
        thermal_names: Optional[List[str]] = None,
        print_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
        temp_dir: Optional[str] = None,
    ):
        """
        Args:
            runner: Executes `lp`
            discovery: Supplies the printer catalog for strategies 2-5
            operation_log: Receives one entry per attempt
            unprinted_dir: Directory for file fallbacks
            relay_client: Relay forwarding; None (or no URLs) skips strategy 1
            thermal_names: Case-insensitive substrings identifying thermal printers
            print_timeout: Hard timeout for each `lp` invocation
            clock: Epoch seconds; used for fallback file names
            temp_dir: Where temporary print files go (default: system temp)
        """
        self._runner = runner
        self._discovery = discovery
        self._log = operation_log
        self.unprinted_dir = Path(unprinted_dir)
        self._relay = relay_client
        self.thermal_names = [n.lower() for n in (thermal_names or []) if n]
        self._print_timeout = print_timeout
        self._clock = clock
        self._temp_dir = temp_dir
        self._print_lock = threading.Lock()

    # =========================================================================
    # Public API
    # =========================================================================

    def dispatch(self, job: PrintJob) -> PrintResult:
        """
        Print a job, falling back through every strategy.

        Args:
            job: The job to print

        Returns:
            PrintResult with the full attempt trace. success is False only
            for the terminal cases above or when even the file fallback
            could not be written.
        """
        text = sanitize_for_thermal(job.rendered_text)
        attempts: List[PrintAttemptResult] = []

        with self._print_lock:
            logger.info(f"Dispatching order {job.order_id}")

            # 1. Relay
            if self._relay is not None and self._relay.enabled:
                result = self._try_relay(job, text, attempts)
                if result is not None:
                    return result

            printers = self._discovery.detect_all_printers()
            attempted: Set[str] = set()

            # 2. Target printer
            if job.target_printer_id:
                result = self._try_target(job, text, printers, attempts, attempted)
                if result is not None:
                    return result

            # 3. Thermal printers
            for printer in self._thermal_printers(printers):
                if printer.id in attempted:
                    continue
                attempt = self._try_printer(job, Strategy.THERMAL, printer, text, attempts, attempted)
                if attempt.success:
                    return self._succeed(attempt, attempts)

            # 4. System default
            default = next((p for p in printers if p.is_default), None)
            if default is not None and default.id not in attempted:
                attempted.add(default.id)
                if default.is_inactive:
                    self._record(job, attempts, self._inactive_attempt(Strategy.SYSTEM_DEFAULT, default))
                else:
                    attempt = self._print_system(Strategy.SYSTEM_DEFAULT, None, text, default.id)
                    self._record(job, attempts, attempt)
                    if attempt.success:
                        return self._succeed(attempt, attempts)

            # 5. Every remaining printer
            for printer in printers:
                if printer.id in attempted:
                    continue
                attempt = self._try_printer(job, Strategy.DETECTED, printer, text, attempts, attempted)
                if attempt.success:
                    return self._succeed(attempt, attempts)

            # 6. File fallback
            return self._fallback(job, text, attempts)

    def print_to_printer(self, printer: PrinterDevice, text: str, order_id: Optional[int] = None) -> PrintResult:
        """
        Print to one specific printer without falling back.

        Used for test pages, where falling back to another printer or to a
        file would hide the problem being tested.
        """
        job = PrintJob(order_id=order_id, rendered_text=text, target_printer_id=printer.id)
        attempts: List[PrintAttemptResult] = []
        with self._print_lock:
            if printer.is_inactive:
                attempt = self._inactive_attempt(Strategy.TARGET_PRINTER, printer)
                self._record(job, attempts, attempt)
                return self._fail(attempt, attempts)
            attempt = self._try_printer(
                job, Strategy.TARGET_PRINTER, printer, sanitize_for_thermal(text), attempts, set()
            )
        if attempt.success:
            return self._succeed(attempt, attempts)
        return self._fail(attempt, attempts)

    # =========================================================================
    # Strategies
    # =========================================================================

    def _try_relay(self, job: PrintJob, text: str, attempts: List[PrintAttemptResult]) -> Optional[PrintResult]:
        payload = {
            "orderData": job.order_data or {},
            "printText": text,
            "orderId": job.order_id,
            "clientIP": job.client_ip,
            "userName": job.user_name,
        }
        responses = self._relay.forward(payload)

        for response in responses:
            if response.outcome == RelayOutcome.DELIVERED:
                attempt = PrintAttemptResult(
                    strategy=Strategy.RELAY,
                    success=True,
                    message=f"Printed through relay {response.url}",
                )
                self._record(job, attempts, attempt)
                return self._succeed(attempt, attempts)

            if response.outcome == RelayOutcome.UNAUTHORIZED:
                attempt = PrintAttemptResult(
                    strategy=Strategy.RELAY,
                    success=False,
                    message=response.message,
                    error_code=ErrorCode.IP_NOT_AUTHORIZED,
                )
                self._record(job, attempts, attempt, terminal=True)
                return PrintResult(
                    success=False,
                    message=response.message,
                    error=ErrorCode.IP_NOT_AUTHORIZED,
                    auth_url=response.auth_url,
                    attempts=attempts,
                )

            code = (
                ErrorCode.RELAY_UNREACHABLE
                if response.outcome == RelayOutcome.UNREACHABLE
                else ErrorCode.RELAY_REJECTED
            )
            self._record(job, attempts, PrintAttemptResult(
                strategy=Strategy.RELAY,
                success=False,
                message=f"{response.url}: {response.message}",
                error_code=code,
            ))
        return None

    def _try_target(
        self,
        job: PrintJob,
        text: str,
        printers: List[PrinterDevice],
        attempts: List[PrintAttemptResult],
        attempted: Set[str],
    ) -> Optional[PrintResult]:
        printer = next((p for p in printers if p.id == job.target_printer_id), None)
        if printer is None:
            self._record(job, attempts, PrintAttemptResult(
                strategy=Strategy.TARGET_PRINTER,
                success=False,
                message=f"Printer {job.target_printer_id} not found",
                printer_id=job.target_printer_id,
                error_code=ErrorCode.PRINTER_NOT_FOUND,
            ))
            return None

        if printer.is_inactive:
            attempt = self._inactive_attempt(Strategy.TARGET_PRINTER, printer)
            self._record(job, attempts, attempt, terminal=True)
            return self._fail(attempt, attempts)

        attempt = self._try_printer(job, Strategy.TARGET_PRINTER, printer, text, attempts, attempted)
        if attempt.success:
            return self._succeed(attempt, attempts)
        return None

    def _try_printer(
        self,
        job: PrintJob,
        strategy: Strategy,
        printer: PrinterDevice,
        text: str,
        attempts: List[PrintAttemptResult],
        attempted: Set[str],
    ) -> PrintAttemptResult:
        attempted.add(printer.id)
        if printer.is_inactive:
            attempt = self._inactive_attempt(strategy, printer)
        elif printer.kind == PrinterKind.USB:
            attempt = self._print_usb(strategy, printer, text)
        else:
            attempt = self._print_system(strategy, printer.display_name, text, printer.id)
        self._record(job, attempts, attempt)
        return attempt

    def _thermal_printers(self, printers: List[PrinterDevice]) -> List[PrinterDevice]:
        """Printers matching a thermal identifier, in identifier priority order."""
        matches: List[PrinterDevice] = []
        for name in self.thermal_names:
            for printer in printers:
                if name in printer.display_name.lower() and printer not in matches:
                    matches.append(printer)
        return matches

    # =========================================================================
    # Transports
    # =========================================================================

    def _print_system(
        self,
        strategy: Strategy,
        destination: Optional[str],
        text: str,
        printer_id: Optional[str],
    ) -> PrintAttemptResult:
        """
        Print through the spooler.

        The text goes to a temporary file that is removed on every exit path.
        A destination of None prints to the spooler default.
        """
        fd, path = tempfile.mkstemp(prefix="temp_print_", suffix=".txt", dir=self._temp_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)

            argv = ["lp", "-d", destination, path] if destination else ["lp", path]
            result = self._runner.run(argv, timeout=self._print_timeout)
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

        label = destination or "default printer"
        if result.timed_out:
            return PrintAttemptResult(
                strategy=strategy,
                success=False,
                message=f"Print command for {label} timed out; the spooler may still print it",
                printer_id=printer_id,
                error_code=ErrorCode.PRINT_TIMEOUT,
            )
        if not result.ok:
            return PrintAttemptResult(
                strategy=strategy,
                success=False,
                message=f"Print command for {label} failed: {result.error_text}",
                printer_id=printer_id,
                error_code=ErrorCode.PRINT_COMMAND_FAILED,
            )
        return PrintAttemptResult(
            strategy=strategy,
            success=True,
            message=f"Sent to {label}",
            printer_id=printer_id,
        )

    def _print_usb(self, strategy: Strategy, printer: PrinterDevice, text: str) -> PrintAttemptResult:
        try:
            self._write_device(printer.device_path, text.encode("ascii", errors="replace"))
        except TimeoutError:
            return PrintAttemptResult(
                strategy=strategy,
                success=False,
                message=(
                    f"Write to {printer.device_path} timed out after "
                    f"{self._print_timeout:g}s; the device stopped accepting data"
                ),
                printer_id=printer.id,
                error_code=ErrorCode.PRINT_TIMEOUT,
            )
        except OSError as e:
            return PrintAttemptResult(
                strategy=strategy,
                success=False,
                message=f"Could not write to {printer.device_path}: {e}",
                printer_id=printer.id,
                error_code=ErrorCode.DEVICE_WRITE_FAILED,
            )
        return PrintAttemptResult(
            strategy=strategy,
            success=True,
            message=f"Written to {printer.device_path}",
            printer_id=printer.id,
        )

    def _write_device(self, path: str, data: bytes) -> None:
        """
        Write raw bytes to a device node, giving up at the print timeout.

        The device is opened non-blocking. A printer that is out of paper,
        or a node with no reader attached, fails instead of blocking.

        Raises:
            TimeoutError: If the device stops accepting data before the deadline
            OSError: If the device cannot be opened or written
        """
        deadline = time.monotonic() + self._print_timeout
        fd = os.open(path, _DEVICE_OPEN_FLAGS)
        try:
            pending = memoryview(data)
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"{path} stopped accepting data")
                _, writable, _ = select.select([], [fd], [], remaining)
                if not writable:
                    continue
                try:
                    written = os.write(fd, pending)
                except BlockingIOError:
                    continue
                pending = pending[written:]
        finally:
            os.close(fd)

    def _fallback(self, job: PrintJob, text: str, attempts: List[PrintAttemptResult]) -> PrintResult:
        try:
            filepath = self._write_fallback_file(text)
        except FallbackWriteError as e:
            attempt = PrintAttemptResult(
                strategy=Strategy.FILE_FALLBACK,
                success=False,
                message=e.message,
                error_code=ErrorCode.FALLBACK_WRITE_FAILED,
            )
            self._record(job, attempts, attempt, terminal=True)
            return self._fail(attempt, attempts)

        attempt = PrintAttemptResult(
            strategy=Strategy.FILE_FALLBACK,
            success=True,
            message=f"No printer available. Order saved to {filepath}",
        )
        self._record(job, attempts, attempt)
        return PrintResult(
            success=True,
            message=attempt.message,
            fallback=True,
            filepath=str(filepath),
            attempts=attempts,
        )

    def _write_fallback_file(self, text: str) -> Path:
        """
        Write ``pedido_<epoch ms>.txt``, never overwriting an existing file.

        Raises:
            FallbackWriteError: If the directory or file cannot be written
        """
        stamp = int(self._clock() * 1000)
        try:
            self.unprinted_dir.mkdir(parents=True, exist_ok=True)
            for suffix in range(1000):
                name = f"pedido_{stamp}.txt" if suffix == 0 else f"pedido_{stamp}_{suffix}.txt"
                path = self.unprinted_dir / name
                try:
                    with open(path, "x", encoding="utf-8") as handle:
                        handle.write(text)
                    return path
                except FileExistsError:
                    continue
        except OSError as e:
            raise FallbackWriteError(str(self.unprinted_dir), str(e)) from e
        raise FallbackWriteError(str(self.unprinted_dir), "too many files with the same timestamp")

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    @staticmethod
    def _inactive_attempt(strategy: Strategy, printer: PrinterDevice) -> PrintAttemptResult:
        return PrintAttemptResult(
            strategy=strategy,
            success=False,
            message=INACTIVE_MESSAGE.format(name=printer.display_name),
            printer_id=printer.id,
            error_code=ErrorCode.PRINTER_INACTIVE,
        )

    def _record(
        self,
        job: PrintJob,
        attempts: List[PrintAttemptResult],
        attempt: PrintAttemptResult,
        terminal: bool = False,
    ) -> None:
        attempts.append(attempt)
        data = {"orderId": job.order_id, **attempt.to_dict()}
        if attempt.success and attempt.strategy == Strategy.FILE_FALLBACK:
            self._log.warn(attempt.message, data)
        elif attempt.success:
            self._log.success(attempt.message, data)
        elif terminal:
            self._log.error(attempt.message, data)
        else:
            self._log.warn(attempt.message, data)

    @staticmethod
    def _succeed(attempt: PrintAttemptResult, attempts: List[PrintAttemptResult]) -> PrintResult:
        return PrintResult(
            success=True,
            message=attempt.message,
            printer_id=attempt.printer_id,
            attempts=attempts,
        )

    @staticmethod
    def _fail(attempt: PrintAttemptResult, attempts: List[PrintAttemptResult]) -> PrintResult:
        return PrintResult(
            success=False,
            message=attempt.message,
            printer_id=attempt.printer_id,
            error=attempt.error_code,
            attempts=attempts,
        )
