"""
Print relay routes (operator machine).

Handles:
- POST /print - Print a job forwarded by the dashboard (IP-gated)
- POST /approve-ip, /reject-ip - Operator decisions on pending IPs
- GET /status - Relay health, printer count, IP counts
- GET /ips - All known IPs
- GET / - Management page (the authUrl handed out on 403)
- POST /test-print - Test page on one printer
- POST /refresh-printers - Re-run discovery
- GET /print-folder - Orders saved by the file fallback
- GET /logs, POST /clear-logs - Operation log

Only /print is subject to the IP gate. The management endpoints that
change state accept requests from RELAY_ADMIN_IPS only (loopback by
default), checked against the socket address rather than forwarding
headers.
"""

from datetime import datetime
from pathlib import Path

from flask import Blueprint, current_app, render_template, request

from core.exceptions import IPNotFoundError, PrinterNotFoundError
from logging_config import get_logger
from models.authorized_ip import IPStatus
from routes.helpers import MAX_LABEL_LENGTH, get_client_ip, json_body, sanitize_text
from routes.printer import print_result_response
from services.printer_service import system_info


# Module logger
logger = get_logger(__name__)

relay_bp = Blueprint("relay", __name__)


def _gate():
    return current_app.config["IP_GATE"]


def _printer_service():
    return current_app.config["PRINTER_SERVICE"]


def _auth_url() -> str:
    return current_app.config.get("RELAY_PUBLIC_URL") or request.host_url.rstrip("/")


def _is_admin_request() -> bool:
    admin_ips = current_app.config.get("RELAY_ADMIN_IPS") or []
    return request.remote_addr in admin_ips or _gate().is_trusted(request.remote_addr or "")


def _forbidden_admin():
    return {
        "success": False,
        "message": "Management actions are only allowed from the relay machine",
    }, 403


# =============================================================================
# Printing
# =============================================================================

@relay_bp.route("/print", methods=["POST"])
def relay_print():
    """
    Print a job on this machine.

    Body: {orderData?, printText, orderId?, clientIP?, userName?, printerId?}

    Unknown IPs are recorded as pending and refused with 403 plus the
    URL of the management page.
    """
    ip = get_client_ip()
    body = json_body()
    gate = _gate()

    if not gate.is_authorized(ip):
        label = sanitize_text(body.get("userName"), max_length=MAX_LABEL_LENGTH)
        gate.record_unknown(ip, label)
        auth_url = _auth_url()
        logger.warning(f"Print refused for unauthorized IP {ip}")
        return {
            "success": False,
            "message": f"IP {ip} is not authorized. Open {auth_url} to authorize it.",
            "error": "IP_NOT_AUTHORIZED",
            "authUrl": auth_url,
        }, 403

    print_text = body.get("printText")
    if not isinstance(print_text, str) or not print_text.strip():
        return {"success": False, "message": "printText is required"}, 400

    order_data = body.get("orderData")
    if not isinstance(order_data, dict):
        order_data = None
    if order_data is not None and "id" not in order_data and body.get("orderId") is not None:
        order_data = {**order_data, "id": body.get("orderId")}

    try:
        result = _printer_service().print_order(
            order_data=order_data,
            print_text=print_text,
            printer_id=body.get("printerId"),
            client_ip=ip,
        )
    except ValueError as e:
        return {"success": False, "message": str(e)}, 400

    return print_result_response(result)


@relay_bp.route("/test-print", methods=["POST"])
def test_print():
    """Test page on printerId, or on the first online printer."""
    service = _printer_service()
    printer_id = json_body().get("printerId")
    if not printer_id:
        online = [p for p in service.detect() if p.is_online]
        if not online:
            return {"success": False, "message": "No online printer found"}, 404
        printer_id = online[0].id

    try:
        result = service.test_print(printer_id)
    except PrinterNotFoundError as e:
        return {"success": False, "message": e.message, "printerId": printer_id}, 404
    return print_result_response(result)


@relay_bp.route("/refresh-printers", methods=["POST"])
def refresh_printers():
    printers = _printer_service().detect()
    return {
        "success": True,
        "printers": [p.to_dict() for p in printers],
        "message": f"{len(printers)} printer(s) found",
    }


@relay_bp.route("/print-folder", methods=["GET"])
def print_folder():
    """Files written by the file fallback, newest first."""
    folder = Path(current_app.config["UNPRINTED_ORDERS_DIR"])
    files = []
    if folder.is_dir():
        for path in folder.glob("pedido_*.txt"):
            stat = path.stat()
            files.append({
                "name": path.name,
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime).astimezone().isoformat(),
            })
    files.sort(key=lambda f: f["modified"], reverse=True)
    return {"success": True, "folder": str(folder), "files": files}


# =============================================================================
# IP management
# =============================================================================

def _change_ip_status(action: str):
    if not _is_admin_request():
        return _forbidden_admin()

    ip = sanitize_text(json_body().get("ip"))
    if not ip:
        return {"success": False, "message": "ip is required"}, 400

    gate = _gate()
    try:
        entry = gate.approve(ip) if action == "approve" else gate.reject(ip)
    except IPNotFoundError as e:
        return {"success": False, "message": e.message}, 404

    verb = "approved" if action == "approve" else "rejected"
    return {"success": True, "message": f"IP {ip} {verb}", "entry": entry.to_dict()}


@relay_bp.route("/approve-ip", methods=["POST"])
def approve_ip():
    return _change_ip_status("approve")


@relay_bp.route("/reject-ip", methods=["POST"])
def reject_ip():
    return _change_ip_status("reject")


@relay_bp.route("/ips", methods=["GET"])
def list_ips():
    status_filter = request.args.get("status")
    try:
        status = IPStatus(status_filter) if status_filter else None
    except ValueError:
        return {"success": False, "message": f"Unknown status: {status_filter}"}, 400
    entries = _gate().list_entries(status)
    return {"success": True, "ips": [e.to_dict() for e in entries]}


@relay_bp.route("/", methods=["GET"])
def management_page():
    gate = _gate()
    return render_template(
        "ip_admin.html",
        pending=gate.list_entries(IPStatus.PENDING),
        approved=gate.list_entries(IPStatus.APPROVED),
        rejected=gate.list_entries(IPStatus.REJECTED),
        stats=gate.stats(),
    )


# =============================================================================
# Status and logs
# =============================================================================

@relay_bp.route("/status", methods=["GET"])
def status():
    printers = _printer_service().detect()
    return {
        "success": True,
        "message": "Print relay running",
        "printers": len(printers),
        "activePrinters": sum(1 for p in printers if p.is_online),
        **_gate().stats(),
        "systemInfo": system_info(),
    }


@relay_bp.route("/logs", methods=["GET"])
def logs():
    operation_log = current_app.config["OPERATION_LOG"]
    limit = request.args.get("limit", default=50, type=int)
    return {
        "success": True,
        "logs": [entry.to_dict() for entry in operation_log.entries(limit=max(0, limit))],
    }


@relay_bp.route("/clear-logs", methods=["POST"])
def clear_logs():
    if not _is_admin_request():
        return _forbidden_admin()
    current_app.config["OPERATION_LOG"].clear()
    return {"success": True, "message": "Logs cleared"}
