"""
Centralized logging configuration for the Comanda print pipeline.

Both the dashboard server and the operator-side print relay log through
this module. Every record carries the name of the thread that produced
it, which matters once the auto-print monitor and HTTP request threads
are printing at the same time.

Features:
    - Thread name in every log message
    - Console output (always enabled)
    - Rotating file logs (optional, for production)
    - Separate error log for ERROR/CRITICAL messages
    - get_logger() keeps every module under the "comanda" namespace

Log Format:
    2026-03-14 19:02:11 [INFO    ] [MainThread] comanda.app - Starting dashboard server
    2026-03-14 19:02:16 [INFO    ] [AutoPrint] comanda.services.autoprint_service - Order 42 printed
    2026-03-14 19:02:17 [WARNING ] [Thread-7] comanda.routes.relay - IP 203.0.113.9 not authorized

Usage:
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    logger = get_logger(__name__)
    logger.info("Printer detected")
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

APP_LOGGER_NAME = "comanda"


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Adds ``thread_name`` and ``thread_id`` to each log record.

    The format string references ``thread_name``, so every handler that
    uses the shared formatter must also carry this filter.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    thread_filter: logging.Filter,
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    return handler


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
    log_file_stem: Optional[str] = None,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    Sets up a console handler and, when ``enable_file_logging`` is true,
    a rotating main log plus a rotating error-only log.

    Args:
        app_name: Name of the root logger (default: "comanda")
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs relative to this file)
        enable_file_logging: Whether to write to log files
        log_file_stem: File name prefix; lets the server and the relay
            write separate files from the same checkout (default: app_name)

    Returns:
        Configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration when a second app factory runs in-process
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    thread_filter = ThreadContextFilter()

    # ---------------------------------------------------------------------
    # Console Handler (always enabled)
    # ---------------------------------------------------------------------
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    # ---------------------------------------------------------------------
    # File Handlers (optional)
    # ---------------------------------------------------------------------
    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        stem = log_file_stem or app_name
        app_log_file = log_dir / f"{stem}.log"
        logger.addHandler(
            _rotating_handler(app_log_file, log_level, formatter, thread_filter)
        )
        logger.addHandler(
            _rotating_handler(
                log_dir / f"{stem}_error.log", logging.ERROR, formatter, thread_filter
            )
        )
        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger named e.g. "comanda.services.dispatcher"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_thread_name(name: str) -> None:
    """
    Set the name of the current thread.

    This name appears in log messages in the [thread_name] field.

    Args:
        name: Thread name to display in logs (e.g. "AutoPrint")
    """
    threading.current_thread().name = name
