"""
Flask route blueprints for the Comanda print pipeline.

Dashboard server (app.py):
- printer: /printer/* detection, activation, printing, status, logs
- autoprint: /printer/autoprint/* monitor toggle and status
- health: /health

Print relay (relay_app.py):
- relay: /print, IP management, management page, status, logs
- health: /health
"""

from .printer import printer_bp
from .autoprint import autoprint_bp
from .relay import relay_bp
from .health import health_bp

__all__ = [
    "printer_bp",
    "autoprint_bp",
    "relay_bp",
    "health_bp",
]


def register_blueprints(app):
    """
    Register the dashboard server blueprints.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(printer_bp)
    app.register_blueprint(autoprint_bp)
    app.register_blueprint(health_bp)


def register_relay_blueprints(app):
    """
    Register the print relay blueprints.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(relay_bp)
    app.register_blueprint(health_bp)
