"""
Printer discovery.

Builds a catalog of every printer this machine can reach, from two
independent probes:

    System probe - `lpstat -p` lists spooler queues and whether each is
                   enabled; `lpstat -d` names the default destination.
                   English and Portuguese CUPS output are both understood.
    USB probe    - raw line-printer character devices (/dev/usb/lp*,
                   /dev/usblp*). Classified by a write-permission check;
                   no bytes are ever written.

System results come first and a (display name, kind) pair appears at
most once, first one wins.

detect_all_printers() never raises. A failing probe contributes nothing
and the other probe's results are still returned.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, List, Optional

from core.command_runner import CommandRunner
from logging_config import get_logger
from models.printer import PrinterDevice, PrinterStatus

logger = get_logger(__name__)

# "printer 5808L-V2024 is idle.  enabled since ..."
# "impressora 5808L-V2024 está desabilitada desde ..."
_PRINTER_LINE = re.compile(r"^(?:printer|impressora)\s+(\S+)\s*(.*)$", re.IGNORECASE)

# "system default destination: 5808L-V2024"
# "destino padrão do sistema: 5808L-V2024"
_DEFAULT_LINE = re.compile(
    r"^(?:system default destination|destino padr[ãa]o do sistema)\s*:\s*(\S+)",
    re.IGNORECASE,
)

_DISABLED_MARKERS = ("disabled", "desabilitad", "inativ")
_OFFLINE_MARKERS = ("offline", "not connected", "desconectad")

_USB_DIR_DEVICE = re.compile(r"^(?:usb)?lp\d+$")
_DEV_DIR_DEVICE = re.compile(r"^usblp\d+$")


def parse_printer_status(output: str) -> List[tuple]:
    """
    Parse `lpstat -p` output.

    Returns:
        List of (name, PrinterStatus) in output order
    """
    printers = []
    for line in output.splitlines():
        match = _PRINTER_LINE.match(line.strip())
        if not match:
            continue
        name, rest = match.group(1), match.group(2).lower()
        if any(marker in rest for marker in _DISABLED_MARKERS):
            status = PrinterStatus.INACTIVE
        elif any(marker in rest for marker in _OFFLINE_MARKERS):
            status = PrinterStatus.OFFLINE
        else:
            status = PrinterStatus.ONLINE
        printers.append((name, status))
    return printers


def parse_default_printer(output: str) -> Optional[str]:
    """Parse `lpstat -d` output. Returns None when no default is configured."""
    for line in output.splitlines():
        match = _DEFAULT_LINE.match(line.strip())
        if match:
            return match.group(1)
    return None


def dedupe_printers(printers: Iterable[PrinterDevice]) -> List[PrinterDevice]:
    """Keep the first printer for each (display name, kind) pair."""
    seen = set()
    unique = []
    for printer in printers:
        if printer.dedup_key in seen:
            continue
        seen.add(printer.dedup_key)
        unique.append(printer)
    return unique


class PrinterDiscovery:
    """
    Enumerates system and USB printers.

    Stateless apart from its configuration: every call re-probes.
    """

    def __init__(
        self,
        runner: CommandRunner,
        usb_device_dirs: Optional[List[str]] = None,
        command_timeout: float = 5.0,
    ):
        self._runner = runner
        if usb_device_dirs is None:
            usb_device_dirs = ["/dev/usb", "/dev"]
        self._usb_dirs = [Path(d) for d in usb_device_dirs]
        self._timeout = command_timeout

    def detect_all_printers(self) -> List[PrinterDevice]:
        """
        Run both probes and return the deduplicated catalog.

        Returns:
            Printers in discovery order (system first, then USB)
        """
        printers: List[PrinterDevice] = []

        try:
            printers.extend(self._probe_system())
        except Exception as e:
            logger.warning(f"System printer probe failed: {e}")

        try:
            printers.extend(self._probe_usb())
        except Exception as e:
            logger.warning(f"USB printer probe failed: {e}")

        catalog = dedupe_printers(printers)
        logger.debug(
            f"Discovery found {len(catalog)} printer(s): "
            f"{', '.join(p.id for p in catalog) or 'none'}"
        )
        return catalog

    def find(self, printer_id: str) -> Optional[PrinterDevice]:
        """Return the printer with this id from a fresh discovery, if any."""
        for printer in self.detect_all_printers():
            if printer.id == printer_id:
                return printer
        return None

    def query_system_status(self, name: str) -> Optional[PrinterStatus]:
        """
        Current spooler status of one queue.

        Returns:
            The status, or None if the queue is unknown or lpstat failed
        """
        result = self._runner.run(["lpstat", "-p", name], timeout=self._timeout)
        if not result.ok:
            return None
        for parsed_name, status in parse_printer_status(result.stdout):
            if parsed_name == name:
                return status
        return None

    # =========================================================================
    # Probes
    # =========================================================================

    def _probe_system(self) -> List[PrinterDevice]:
        result = self._runner.run(["lpstat", "-p"], timeout=self._timeout)
        if not result.ok:
            # lpstat exits non-zero when no queues exist
            logger.debug(f"lpstat -p unavailable: {result.error_text}")
            return []

        default_name = None
        default_result = self._runner.run(["lpstat", "-d"], timeout=self._timeout)
        if default_result.ok:
            default_name = parse_default_printer(default_result.stdout)

        return [
            PrinterDevice.system(name, status, is_default=(name == default_name))
            for name, status in parse_printer_status(result.stdout)
        ]

    def _probe_usb(self) -> List[PrinterDevice]:
        printers = []
        for directory in self._usb_dirs:
            if not directory.is_dir():
                continue
            pattern = _USB_DIR_DEVICE if directory.name == "usb" else _DEV_DIR_DEVICE
            try:
                names = sorted(os.listdir(directory))
            except OSError as e:
                logger.debug(f"Cannot list {directory}: {e}")
                continue
            for name in names:
                if not pattern.match(name):
                    continue
                path = directory / name
                status = PrinterStatus.ONLINE if os.access(path, os.W_OK) else PrinterStatus.ERROR
                printers.append(PrinterDevice.usb(name, str(path), status))
        return printers
