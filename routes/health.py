"""
Health check route, registered on both apps.
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "role": current_app.config.get("APP_ROLE", "unknown"),
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {},
    }

    health_status["checks"]["printer_service"] = (
        "ready" if current_app.config.get("PRINTER_SERVICE") else "missing"
    )

    monitor = current_app.config.get("AUTOPRINT_MONITOR")
    if monitor is None:
        health_status["checks"]["autoprint"] = "not_configured"
    else:
        health_status["checks"]["autoprint"] = (
            "running" if monitor.is_running else "stopped"
        )
        if not monitor.is_running:
            health_status["status"] = "degraded"

    return health_status
