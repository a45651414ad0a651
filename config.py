"""
Configuration for the Comanda print pipeline.

The dashboard server (app.py) and the operator-side print relay
(relay_app.py) read the same settings. Everything can be overridden
from the environment or a .env file next to this module.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent

_logger = logging.getLogger("comanda.config")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        _logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


def _env_list(name: str, default: str = "") -> list:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for both Flask applications."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    JSON_SORT_KEYS = False

    # ==========================================================================
    # Receipt
    # ==========================================================================
    RESTAURANT_NAME = os.environ.get("RESTAURANT_NAME", "JYZE DELIVERY")
    RECEIPT_WIDTH = _env_int("RECEIPT_WIDTH", 32)

    # ==========================================================================
    # Printing
    # ==========================================================================
    # Names matched case-insensitively as substrings of the printer name.
    # The first entry is the model used at the restaurant counter.
    THERMAL_PRINTER_NAMES = _env_list(
        "THERMAL_PRINTER_NAMES", "5808L-V2024,termica,thermal,pos"
    )
    USB_DEVICE_DIRS = _env_list("USB_DEVICE_DIRS", "/dev/usb,/dev")
    PRINT_COMMAND_TIMEOUT = _env_float("PRINT_COMMAND_TIMEOUT", 10.0)
    PROBE_COMMAND_TIMEOUT = _env_float("PROBE_COMMAND_TIMEOUT", 5.0)
    ACTIVATION_DELAY_SECONDS = _env_float("ACTIVATION_DELAY_SECONDS", 2.0)
    UNPRINTED_ORDERS_DIR = os.environ.get(
        "UNPRINTED_ORDERS_DIR", str(BASE_DIR / "unprinted_orders")
    )

    # ==========================================================================
    # Operation log
    # ==========================================================================
    PRINTER_LOG_FILE = os.environ.get(
        "PRINTER_LOG_FILE", str(BASE_DIR / "printer-logs.json")
    )
    PRINTER_LOG_CAPACITY = _env_int("PRINTER_LOG_CAPACITY", 100)

    # ==========================================================================
    # Relay forwarding (dashboard server side)
    # ==========================================================================
    # Candidate relay base URLs, tried in order. Empty disables forwarding.
    RELAY_URLS = _env_list("RELAY_URLS")
    RELAY_TIMEOUT_SECONDS = _env_float("RELAY_TIMEOUT_SECONDS", 5.0)

    # ==========================================================================
    # Relay process (operator machine side)
    # ==========================================================================
    RELAY_HOST = os.environ.get("RELAY_HOST", "0.0.0.0")
    RELAY_PORT = _env_int("RELAY_PORT", 3003)
    RELAY_PUBLIC_URL = os.environ.get(
        "RELAY_PUBLIC_URL", f"http://localhost:{RELAY_PORT}"
    )
    AUTHORIZED_IPS_FILE = os.environ.get(
        "AUTHORIZED_IPS_FILE", str(BASE_DIR / "authorized-ips.json")
    )
    # Origin server addresses that may always print through the relay
    TRUSTED_RELAY_IPS = _env_list("TRUSTED_RELAY_IPS")
    # Socket addresses allowed to approve/reject IPs and clear logs
    RELAY_ADMIN_IPS = _env_list("RELAY_ADMIN_IPS", "127.0.0.1,::1")

    # ==========================================================================
    # Auto-print monitor
    # ==========================================================================
    ORDERS_API_URL = os.environ.get("ORDERS_API_URL", "").rstrip("/")
    ORDERS_API_TIMEOUT = _env_float("ORDERS_API_TIMEOUT", 10.0)
    AUTOPRINT_INTERVAL_SECONDS = _env_float("AUTOPRINT_INTERVAL_SECONDS", 5.0)
    AUTOPRINT_ENABLED = _env_bool("AUTOPRINT_ENABLED", False)


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    AUTOPRINT_ENABLED = False
    ACTIVATION_DELAY_SECONDS = 0.0
    RELAY_URLS = []
    TRUSTED_RELAY_IPS = []
