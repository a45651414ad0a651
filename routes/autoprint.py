"""
Auto-print routes (dashboard server).

Handles:
- /printer/autoprint/enable - Start printing new orders
- /printer/autoprint/disable - Stop printing new orders
- /printer/autoprint/status - Cursor and toggle state

The monitor only exists when ORDERS_API_URL is configured; otherwise
these endpoints answer 503.
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

autoprint_bp = Blueprint("autoprint", __name__, url_prefix="/printer/autoprint")


def _monitor():
    return current_app.config.get("AUTOPRINT_MONITOR")


def _unavailable():
    return {
        "success": False,
        "message": "Auto-print is not configured (set ORDERS_API_URL)",
    }, 503


@autoprint_bp.route("/enable", methods=["POST"])
def enable():
    monitor = _monitor()
    if monitor is None:
        return _unavailable()
    monitor.enable()
    return {"success": True, "message": "Auto-print enabled", **monitor.get_status()}


@autoprint_bp.route("/disable", methods=["POST"])
def disable():
    monitor = _monitor()
    if monitor is None:
        return _unavailable()
    monitor.disable()
    return {"success": True, "message": "Auto-print disabled", **monitor.get_status()}


@autoprint_bp.route("/status", methods=["GET"])
def status():
    monitor = _monitor()
    if monitor is None:
        return _unavailable()
    return {"success": True, **monitor.get_status()}
