"""
Comanda dashboard server - Flask Application Entry Point.

This is a slim app factory that:
1. Builds the print pipeline (discovery, activation, dispatch, log)
2. Starts the auto-print monitor (separate thread) if the orders API is configured
3. Registers route blueprints
4. Sets up JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (/printer/*)
    └── Cleanup on shutdown (stop monitor)

    AutoPrint Thread (background)
    └── Fixed-interval poll of the orders API

Printing from request threads and from the monitor is serialized by
the dispatcher. Jobs are forwarded to the operator-side relay first
(RELAY_URLS) and fall back to printers attached to this machine.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask
from werkzeug.exceptions import HTTPException

from logging_config import setup_logging, get_logger
from core.command_runner import CommandRunner
from core.orders_client import HttpOrdersClient, OrdersCollaborator
from core.relay_client import RelayClient
from services.autoprint_service import AutoPrintMonitor
from services.printer_service import PrinterService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def load_environment() -> None:
    """Load .env from the base path, falling back to python-dotenv's search."""
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)


def configure_logging(app: Flask, log_file_stem: str) -> None:
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging,
        log_file_stem=log_file_stem,
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)


def register_json_error_handlers(app: Flask) -> None:
    """Every error leaves the API as JSON, never as an HTML page."""

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {"success": False, "message": e.description, "error": e.name}, e.code

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"success": False, "message": "Internal server error"}, 500


def create_app(
    config_object: str = "config.Config",
    config_overrides: Optional[Dict[str, Any]] = None,
    command_runner: Optional[CommandRunner] = None,
    orders_client: Optional[OrdersCollaborator] = None,
    start_monitor: bool = True,
) -> Flask:
    """
    Application factory - creates and configures the dashboard server.

    Args:
        config_object: Import path of the config class
        config_overrides: Values applied on top of the config class
        command_runner: Runs spooler commands (default: real subprocess runner)
        orders_client: Orders collaborator (default: HTTP client on ORDERS_API_URL)
        start_monitor: Start the auto-print thread

    Returns:
        Configured Flask application

    Raises:
        ConfigurationError: If the unprinted-orders directory is unusable
    """
    load_environment()

    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(config_overrides or {})
    app.config["APP_ROLE"] = "server"

    configure_logging(app, log_file_stem="comanda_server")
    logger.info(f"Starting Comanda dashboard server in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # PRINT PIPELINE
    # =========================================================================

    runner = command_runner or CommandRunner()

    relay_client = None
    if app.config.get("RELAY_URLS"):
        relay_client = RelayClient(
            app.config["RELAY_URLS"],
            timeout=app.config.get("RELAY_TIMEOUT_SECONDS", 5.0),
        )
        logger.info(f"Relay forwarding to: {', '.join(relay_client.urls)}")
    else:
        logger.info("No RELAY_URLS configured; printing locally only")

    printer_service = PrinterService.from_config(app.config, runner, relay_client)
    app.config["PRINTER_SERVICE"] = printer_service
    app.config["OPERATION_LOG"] = printer_service.operation_log

    # =========================================================================
    # AUTO-PRINT MONITOR
    # =========================================================================

    if orders_client is None and app.config.get("ORDERS_API_URL"):
        orders_client = HttpOrdersClient(
            app.config["ORDERS_API_URL"],
            timeout=app.config.get("ORDERS_API_TIMEOUT", 10.0),
        )

    monitor = None
    if orders_client is not None:
        monitor = AutoPrintMonitor(
            orders_client,
            printer_service.discovery,
            printer_service.renderer,
            printer_service.dispatcher,
            interval_seconds=app.config.get("AUTOPRINT_INTERVAL_SECONDS", 5.0),
            enabled=app.config.get("AUTOPRINT_ENABLED", False),
        )
        if start_monitor:
            monitor.start()
    else:
        logger.warning("ORDERS_API_URL not set; auto-print disabled")
    app.config["AUTOPRINT_MONITOR"] = monitor

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        if monitor:
            monitor.stop()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)
    register_json_error_handlers(app)

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second monitor thread
    app.run(debug=debug_mode, use_reloader=False)
