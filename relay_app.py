"""
Comanda print relay - Flask Application Entry Point.

Runs on the machine at the restaurant counter, next to the printer.
The dashboard server forwards print jobs here (POST /print); the relay
prints them through the same local cascade the server uses, minus the
relay step itself.

Client IPs other than TRUSTED_RELAY_IPS must be approved by an operator
on the management page (GET /) before they can print.

Run with:
    python relay_app.py
"""

from __future__ import annotations

import atexit
import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask

from app import configure_logging, load_environment, register_json_error_handlers
from core.command_runner import CommandRunner
from logging_config import get_logger
from services.ip_gate import IPGate
from services.printer_service import PrinterService
from routes import register_relay_blueprints


logger = get_logger(__name__)


def create_relay_app(
    config_object: str = "config.Config",
    config_overrides: Optional[Dict[str, Any]] = None,
    command_runner: Optional[CommandRunner] = None,
) -> Flask:
    """
    Application factory for the print relay.

    Args:
        config_object: Import path of the config class
        config_overrides: Values applied on top of the config class
        command_runner: Runs spooler commands (default: real subprocess runner)

    Returns:
        Configured Flask application
    """
    load_environment()

    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(config_overrides or {})
    app.config["APP_ROLE"] = "relay"

    configure_logging(app, log_file_stem="comanda_relay")
    logger.info(f"Starting Comanda print relay on port {app.config.get('RELAY_PORT')}")

    # No relay client: a relayed job must never be forwarded again
    printer_service = PrinterService.from_config(app.config, command_runner or CommandRunner())
    app.config["PRINTER_SERVICE"] = printer_service
    app.config["OPERATION_LOG"] = printer_service.operation_log

    store_path = app.config.get("AUTHORIZED_IPS_FILE")
    gate = IPGate(
        store_path=Path(store_path) if store_path else None,
        trusted_ips=app.config.get("TRUSTED_RELAY_IPS"),
    )
    app.config["IP_GATE"] = gate
    logger.info(f"IP gate ready: {gate.stats()}")

    printers = printer_service.detect()
    logger.info(f"{len(printers)} printer(s) detected at startup")

    atexit.register(lambda: logger.info("Print relay shutting down"))

    register_relay_blueprints(app)
    register_json_error_handlers(app)

    logger.info("Print relay initialized successfully")
    return app


if __name__ == "__main__":
    app = create_relay_app()
    app.run(
        host=app.config.get("RELAY_HOST", "0.0.0.0"),
        port=app.config.get("RELAY_PORT", 3003),
        debug=os.environ.get("FLASK_DEBUG", "0") == "1",
    )
