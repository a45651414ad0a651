"""
Integration tests for the dashboard server routes.

The app is built with TestingConfig, a FakeSpooler instead of the real
print commands, and temporary directories for every file it writes.
"""

import os

import pytest

from app import create_app
from models.order import Order
from services.renderer import ReceiptRenderer, sanitize_for_thermal
from helpers import FakeSpooler, InMemoryOrders


# Fixtures

@pytest.fixture
def spooler():
    return FakeSpooler(printers={"Office": False, "Termica": True}, default="Termica")


@pytest.fixture
def overrides(tmp_path):
    return {
        "UNPRINTED_ORDERS_DIR": str(tmp_path / "unprinted_orders"),
        "PRINTER_LOG_FILE": str(tmp_path / "printer-logs.json"),
        "USB_DEVICE_DIRS": [],
        "ORDERS_API_URL": "",
        "RELAY_URLS": [],
    }


@pytest.fixture
def make_app(overrides):
    def factory(spooler, orders_client=None):
        return create_app(
            "config.TestingConfig",
            config_overrides=overrides,
            command_runner=spooler,
            orders_client=orders_client,
            start_monitor=False,
        )
    return factory


@pytest.fixture
def client(make_app, spooler):
    return make_app(spooler).test_client()


# Tests for detection and activation

class TestDetectAndActivate:
    """Test /printer/detect and /printer/activate."""

    def test_detect(self, client):
        response = client.get("/printer/detect")

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert [p["id"] for p in data["printers"]] == ["system_Office", "system_Termica"]

    def test_activate(self, client, spooler):
        response = client.post("/printer/activate/system_Office")

        assert response.status_code == 200
        assert response.get_json()["success"] is True
        assert ("cupsenable", "Office") in spooler.calls

    def test_activate_unknown_printer(self, client):
        response = client.post("/printer/activate/system_Nope")
        assert response.status_code == 404

    def test_activation_configuration_issue(self, make_app):
        spooler = FakeSpooler(printers={"Office": False}, stuck={"Office"})
        response = make_app(spooler).test_client().post("/printer/activate/system_Office")

        assert response.status_code == 400
        assert response.get_json()["errorCode"] == "PRINTER_CONFIGURATION_ISSUE"


# Tests for printing

class TestPrint:
    """Test /printer/print and /printer/test."""

    def test_print_rendered_order(self, client, spooler):
        response = client.post("/printer/print", json={
            "orderData": {"id": 42, "nome_cliente": "Ana", "valor": 35.90},
            "userName": "Caixa",
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["attempts"][0]["strategyName"] == "thermal"
        assert "PEDIDO #42" in spooler.printed[0][1]

    def test_print_text_as_is(self, client, spooler):
        response = client.post("/printer/print", json={"printText": "Pedido avulso"})
        assert response.status_code == 200
        assert spooler.printed[0][1] == sanitize_for_thermal("Pedido avulso")

    def test_no_printers_falls_back_to_file(self, make_app):
        response = make_app(FakeSpooler()).test_client().post("/printer/print", json={
            "orderData": {"id": 42, "nome_cliente": "Ana", "valor": 35.90, "status": "pendente"},
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["fallback"] is True
        expected = sanitize_for_thermal(ReceiptRenderer().render(
            Order(id=42, customer_name="Ana", total=35.90, status="pendente")
        ))
        with open(data["filepath"], encoding="utf-8") as handle:
            assert handle.read() == expected

    def test_inactive_target_is_conflict(self, client, spooler):
        response = client.post("/printer/print", json={
            "printText": "x",
            "printerId": "system_Office",
        })

        assert response.status_code == 409
        assert response.get_json()["error"] == "PRINTER_INACTIVE"
        assert spooler.printed == []

    @pytest.mark.parametrize("body", [
        {},
        {"orderData": {"nome_cliente": "sem id"}},
        {"orderData": "not an object"},
        {"printText": 42},
        {"orderData": {"id": "abc"}},
    ])
    def test_bad_requests(self, client, body):
        assert client.post("/printer/print", json=body).status_code == 400

    def test_test_page(self, client, spooler):
        response = client.post("/printer/test/system_Termica")

        assert response.status_code == 200
        assert "Impressora: Termica" in spooler.printed[0][1]

    def test_test_page_on_disabled_printer(self, client):
        response = client.post("/printer/test/system_Office")
        assert response.status_code == 409

    def test_test_page_unknown_printer(self, client):
        assert client.post("/printer/test/system_Nope").status_code == 404


# Tests for status and logs

class TestStatusAndLogs:
    """Test /printer/status and the operation log endpoints."""

    def test_status(self, client):
        data = client.get("/printer/status").get_json()

        assert data["totalPrinters"] == 2
        assert data["activePrinters"] == 1
        assert data["defaultPrinter"]["id"] == "system_Termica"
        assert "platform" in data["systemInfo"]

    def test_empty_log_can_be_read_and_cleared(self, client):
        response = client.get("/printer/logs")
        assert response.status_code == 200
        assert response.get_json()["logs"] == []

        assert client.post("/printer/logs/clear").status_code == 200
        assert client.post("/printer/logs/clear").status_code == 200
        assert client.get("/printer/logs").status_code == 200

    def test_logs_record_attempts(self, client):
        client.post("/printer/print", json={"printText": "one"})
        client.post("/printer/print", json={"printText": "two"})

        all_logs = client.get("/printer/logs").get_json()["logs"]
        newest = client.get("/printer/logs?limit=1").get_json()["logs"]

        assert len(all_logs) == 2
        assert newest == all_logs[-1:]
        assert all_logs[0]["level"] == "success"

    def test_clear_logs(self, client):
        client.post("/printer/print", json={"printText": "one"})
        assert client.post("/printer/logs/clear").status_code == 200
        assert client.get("/printer/logs").get_json()["logs"] == []

    def test_log_file_written(self, client, overrides):
        client.post("/printer/print", json={"printText": "one"})
        assert os.path.exists(overrides["PRINTER_LOG_FILE"])


# Tests for auto-print endpoints

class TestAutoPrintRoutes:
    """Test the monitor toggle endpoints."""

    def test_unconfigured_monitor(self, client):
        assert client.get("/printer/autoprint/status").status_code == 503
        assert client.post("/printer/autoprint/enable").status_code == 503

    def test_toggle(self, make_app, spooler):
        app = make_app(spooler, orders_client=InMemoryOrders([Order(id=1)]))
        client = app.test_client()

        assert client.get("/printer/autoprint/status").get_json()["enabled"] is False
        assert client.post("/printer/autoprint/enable").get_json()["enabled"] is True

        app.config["AUTOPRINT_MONITOR"].tick()
        status = client.get("/printer/autoprint/status").get_json()
        assert status["lastProcessedOrderId"] == 1

        assert client.post("/printer/autoprint/disable").get_json()["enabled"] is False


# Tests for health and errors

class TestHealthAndErrors:
    """Test /health and JSON error handling."""

    def test_health_without_monitor(self, client):
        data = client.get("/health").get_json()
        assert data["status"] == "ok"
        assert data["role"] == "server"
        assert data["checks"]["autoprint"] == "not_configured"

    def test_health_with_stopped_monitor(self, make_app, spooler):
        client = make_app(spooler, orders_client=InMemoryOrders()).test_client()
        assert client.get("/health").get_json()["status"] == "degraded"

    def test_unknown_route_is_json(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.get_json()["success"] is False
