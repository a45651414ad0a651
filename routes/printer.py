"""
Printer routes (dashboard server).

Handles:
- /printer/detect - List printers visible to this machine
- /printer/activate/<printer_id> - Re-enable a disabled system printer
- /printer/print - Print an order through the delivery cascade
- /printer/test/<printer_id> - Print a test page on one printer
- /printer/status - Printer counts and system info
- /printer/logs - Operation log
"""

from flask import Blueprint, current_app, request

from core.exceptions import PrinterNotFoundError
from logging_config import get_logger
from models.print_job import ErrorCode
from routes.helpers import MAX_LABEL_LENGTH, get_client_ip, json_body, sanitize_text


# Module logger
logger = get_logger(__name__)

printer_bp = Blueprint("printer", __name__, url_prefix="/printer")

_ERROR_STATUS = {
    ErrorCode.IP_NOT_AUTHORIZED: 403,
    ErrorCode.PRINTER_INACTIVE: 409,
    ErrorCode.FALLBACK_WRITE_FAILED: 500,
}


def _printer_service():
    return current_app.config.get("PRINTER_SERVICE")


def _unavailable():
    return {"success": False, "message": "Printer service unavailable"}, 503


def print_result_response(result):
    """PrintResult -> (body, status). Shared with the relay blueprint."""
    if result.success:
        return result.to_dict(), 200
    return result.to_dict(), _ERROR_STATUS.get(result.error, 502)


@printer_bp.route("/detect", methods=["GET"])
def detect():
    service = _printer_service()
    if service is None:
        return _unavailable()

    printers = service.detect()
    return {
        "success": True,
        "printers": [p.to_dict() for p in printers],
        "message": f"{len(printers)} printer(s) found",
    }


@printer_bp.route("/activate/<path:printer_id>", methods=["POST"])
def activate(printer_id: str):
    """
    Re-enable a disabled system printer.

    Explicit operator action only; printing never activates a printer.
    """
    service = _printer_service()
    if service is None:
        return _unavailable()

    try:
        result = service.activate(printer_id)
    except PrinterNotFoundError as e:
        return {"success": False, "message": e.message, "printerId": printer_id}, 404

    return result.to_dict(), (200 if result.success else 400)


@printer_bp.route("/print", methods=["POST"])
def print_order():
    """
    Print an order.

    Body: {printerId?, orderData?, printText?, userName?}
    At least one of printText or orderData (with an id) is required.
    """
    service = _printer_service()
    if service is None:
        return _unavailable()

    body = json_body()
    order_data = body.get("orderData")
    print_text = body.get("printText")

    if order_data is not None and not isinstance(order_data, dict):
        return {"success": False, "message": "orderData must be an object"}, 400
    if print_text is not None and not isinstance(print_text, str):
        return {"success": False, "message": "printText must be a string"}, 400

    try:
        result = service.print_order(
            order_data=order_data,
            print_text=print_text,
            printer_id=body.get("printerId"),
            client_ip=get_client_ip(),
            user_name=sanitize_text(body.get("userName"), max_length=MAX_LABEL_LENGTH) or None,
        )
    except ValueError as e:
        return {"success": False, "message": str(e)}, 400

    return print_result_response(result)


@printer_bp.route("/test/<path:printer_id>", methods=["POST"])
def test_print(printer_id: str):
    service = _printer_service()
    if service is None:
        return _unavailable()

    try:
        result = service.test_print(printer_id)
    except PrinterNotFoundError as e:
        return {"success": False, "message": e.message, "printerId": printer_id}, 404

    return print_result_response(result)


@printer_bp.route("/status", methods=["GET"])
def status():
    service = _printer_service()
    if service is None:
        return _unavailable()
    return service.get_status()


@printer_bp.route("/logs", methods=["GET"])
def logs():
    """Newest operation log entries. ?limit=N (default 50)."""
    operation_log = current_app.config.get("OPERATION_LOG")
    if operation_log is None:
        return _unavailable()

    limit = request.args.get("limit", default=50, type=int)
    entries = operation_log.entries(limit=max(0, limit))
    return {
        "success": True,
        "logs": [entry.to_dict() for entry in entries],
        "capacity": operation_log.capacity,
    }


@printer_bp.route("/logs/clear", methods=["POST"])
def clear_logs():
    operation_log = current_app.config.get("OPERATION_LOG")
    if operation_log is None:
        return _unavailable()
    operation_log.clear()
    return {"success": True, "message": "Logs cleared"}
