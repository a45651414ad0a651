"""
Printer service: the single entry point routes use for printing.

Wires discovery, activation, rendering and dispatch together so that
route handlers stay thin. Both Flask apps build one instance at startup
and store it in app.config["PRINTER_SERVICE"].
"""

from __future__ import annotations

import platform
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from core.command_runner import CommandRunner
from core.exceptions import ConfigurationError, PrinterNotFoundError
from core.relay_client import RelayClient
from logging_config import get_logger
from models.order import Order
from models.print_job import ActivationResult, PrintJob, PrintResult
from models.printer import PrinterDevice
from services.activation import PrinterActivator
from services.discovery import PrinterDiscovery
from services.dispatcher import PrintDispatcher
from services.operation_log import OperationLog
from services.renderer import ReceiptRenderer

logger = get_logger(__name__)


def system_info() -> Dict[str, Any]:
    return {
        "platform": platform.system().lower(),
        "osVersion": platform.release(),
        "arch": platform.machine(),
        "hostname": platform.node(),
        "timestamp": datetime.now().astimezone().isoformat(),
    }


class PrinterService:
    """Facade over the print pipeline components."""

    def __init__(
        self,
        discovery: PrinterDiscovery,
        activator: PrinterActivator,
        dispatcher: PrintDispatcher,
        renderer: ReceiptRenderer,
        operation_log: OperationLog,
    ):
        self.discovery = discovery
        self.activator = activator
        self.dispatcher = dispatcher
        self.renderer = renderer
        self.operation_log = operation_log

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        runner: CommandRunner,
        relay_client: Optional[RelayClient] = None,
    ) -> "PrinterService":
        """
        Build the whole pipeline from a Flask config mapping.

        Raises:
            ConfigurationError: If the unprinted-orders directory cannot be created
        """
        unprinted_dir = Path(config["UNPRINTED_ORDERS_DIR"])
        try:
            unprinted_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError("UNPRINTED_ORDERS_DIR", str(e)) from e

        log_file = config.get("PRINTER_LOG_FILE")
        operation_log = OperationLog(
            file_path=Path(log_file) if log_file else None,
            capacity=config.get("PRINTER_LOG_CAPACITY", 100),
        )
        discovery = PrinterDiscovery(
            runner,
            usb_device_dirs=config.get("USB_DEVICE_DIRS"),
            command_timeout=config.get("PROBE_COMMAND_TIMEOUT", 5.0),
        )
        activator = PrinterActivator(
            runner,
            discovery,
            operation_log=operation_log,
            settle_delay=config.get("ACTIVATION_DELAY_SECONDS", 2.0),
            command_timeout=config.get("PRINT_COMMAND_TIMEOUT", 10.0),
        )
        dispatcher = PrintDispatcher(
            runner,
            discovery,
            operation_log,
            unprinted_dir=unprinted_dir,
            relay_client=relay_client,
            thermal_names=config.get("THERMAL_PRINTER_NAMES"),
            print_timeout=config.get("PRINT_COMMAND_TIMEOUT", 10.0),
        )
        renderer = ReceiptRenderer(
            restaurant_name=config.get("RESTAURANT_NAME", "JYZE DELIVERY"),
            width=config.get("RECEIPT_WIDTH", 32),
        )
        return cls(discovery, activator, dispatcher, renderer, operation_log)

    def detect(self) -> List[PrinterDevice]:
        return self.discovery.detect_all_printers()

    def activate(self, printer_id: str) -> ActivationResult:
        """
        Raises:
            PrinterNotFoundError: If discovery does not know the printer
        """
        if self.discovery.find(printer_id) is None:
            raise PrinterNotFoundError(printer_id)
        return self.activator.activate(printer_id)

    def print_order(
        self,
        order_data: Optional[Dict[str, Any]] = None,
        print_text: Optional[str] = None,
        printer_id: Optional[str] = None,
        client_ip: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> PrintResult:
        """
        Print an order through the full cascade.

        Uses ``print_text`` as-is when given, otherwise renders
        ``order_data``.

        Raises:
            ValueError: If neither text nor a usable order is supplied
        """
        order = Order.from_dict(order_data) if order_data and "id" in order_data else None
        if not print_text:
            if order is None:
                raise ValueError("printText or orderData with an id is required")
            print_text = self.renderer.render(order)

        job = PrintJob(
            order_id=order.id if order else None,
            rendered_text=print_text,
            target_printer_id=printer_id or None,
            client_ip=client_ip,
            order_data=order_data,
            user_name=user_name,
        )
        return self.dispatcher.dispatch(job)

    def test_print(self, printer_id: str) -> PrintResult:
        """
        Print the canned test page on one printer, without fallback.

        Raises:
            PrinterNotFoundError: If discovery does not know the printer
        """
        printer = self.discovery.find(printer_id)
        if printer is None:
            raise PrinterNotFoundError(printer_id)
        logger.info(f"Test print on {printer.display_name}")
        return self.dispatcher.print_to_printer(
            printer, self.renderer.render_test_page(printer.display_name)
        )

    def get_status(self) -> Dict[str, Any]:
        printers = self.detect()
        default = next((p for p in printers if p.is_default), None)
        return {
            "success": True,
            "totalPrinters": len(printers),
            "activePrinters": sum(1 for p in printers if p.is_online),
            "defaultPrinter": default.to_dict() if default else None,
            "systemInfo": system_info(),
        }
