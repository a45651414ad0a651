"""
Unit tests for the auto-print monitor.

The orders store is an in-memory OrdersCollaborator and the dispatcher
is a Mock, so each test controls exactly which prints succeed.
"""

import threading

import pytest
from unittest.mock import Mock

from models.order import Order
from models.print_job import ErrorCode, PrintResult
from models.printer import PrinterDevice, PrinterStatus
from services.autoprint_service import AutoPrintMonitor, pick_printer
from services.discovery import PrinterDiscovery
from services.renderer import ReceiptRenderer
from helpers import FakeSpooler, InMemoryOrders


def printed_ok(job):
    return PrintResult(success=True, message="Sent", printer_id=job.target_printer_id)


def print_failed(job):
    return PrintResult(success=False, message="Printer 5808L-V2024 is disabled", error=ErrorCode.PRINTER_INACTIVE)


# Fixtures

@pytest.fixture
def orders():
    return InMemoryOrders([
        Order(id=3, customer_name="Carla"),
        Order(id=1, customer_name="Ana"),
        Order(id=2, customer_name="Bruno"),
    ])


@pytest.fixture
def spooler():
    return FakeSpooler(printers={"Office": False, "5808L-V2024": True})


@pytest.fixture
def dispatcher():
    mock = Mock()
    mock.dispatch.side_effect = printed_ok
    return mock


@pytest.fixture
def monitor(orders, spooler, dispatcher):
    return AutoPrintMonitor(
        orders,
        PrinterDiscovery(spooler, usb_device_dirs=[]),
        ReceiptRenderer(),
        dispatcher,
        interval_seconds=0.05,
        enabled=True,
    )


def dispatched_ids(dispatcher):
    return [c.args[0].order_id for c in dispatcher.dispatch.call_args_list]


# Tests for printer choice

class TestPickPrinter:
    """Test the printer the monitor targets."""

    def test_first_online(self):
        off = PrinterDevice.system("Office", PrinterStatus.INACTIVE)
        on = PrinterDevice.system("Termica", PrinterStatus.ONLINE)
        assert pick_printer([off, on]) is on

    def test_first_when_none_online(self):
        off = PrinterDevice.system("Office", PrinterStatus.INACTIVE)
        assert pick_printer([off]) is off

    def test_none_when_empty(self):
        assert pick_printer([]) is None


# Tests for ticks

class TestTick:
    """Test order selection and at-most-once printing."""

    def test_prints_new_orders_in_ascending_order(self, monitor, dispatcher, orders):
        summary = monitor.tick()

        assert summary.printed == 3
        assert dispatched_ids(dispatcher) == [1, 2, 3]
        assert monitor.last_processed_id == 3
        assert orders.flagged == [(1, True), (2, True), (3, True)]

    def test_targets_first_online_printer(self, monitor, dispatcher):
        monitor.tick()
        job = dispatcher.dispatch.call_args_list[0].args[0]

        assert job.target_printer_id == "system_5808L-V2024"
        assert job.user_name == "auto-print"
        assert job.order_data["nome_cliente"] == "Ana"
        assert "PEDIDO #1" in job.rendered_text

    def test_inactive_printer_is_not_targeted(self, orders, dispatcher):
        monitor = AutoPrintMonitor(
            orders,
            PrinterDiscovery(FakeSpooler(printers={"Office": False}), usb_device_dirs=[]),
            ReceiptRenderer(),
            dispatcher,
            enabled=True,
        )
        monitor.tick()
        assert dispatcher.dispatch.call_args_list[0].args[0].target_printer_id is None

    def test_each_order_printed_once_across_ticks(self, monitor, dispatcher, orders):
        monitor.tick()
        monitor.tick()
        orders.add(Order(id=4))
        monitor.tick()
        monitor.tick()

        assert dispatched_ids(dispatcher) == [1, 2, 3, 4]
        assert monitor.printed_ids == {1, 2, 3, 4}

    def test_skips_cancelled_and_already_flagged(self, monitor, dispatcher, orders):
        orders.add(Order(id=4, status="cancelado"))
        orders.add(Order(id=5, status="Cancelled"))
        orders.add(Order(id=6, printed=True))

        monitor.tick()

        assert dispatched_ids(dispatcher) == [1, 2, 3]

    def test_orders_below_cursor_ignored(self, monitor, dispatcher, orders):
        monitor.tick()
        orders.add(Order(id=0))
        monitor.tick()
        assert 0 not in dispatched_ids(dispatcher)

    def test_failed_order_retried_next_tick(self, monitor, dispatcher, orders):
        outcomes = {2: [print_failed, printed_ok]}

        def dispatch(job):
            handlers = outcomes.get(job.order_id)
            return handlers.pop(0)(job) if handlers else printed_ok(job)

        dispatcher.dispatch.side_effect = dispatch

        first = monitor.tick()
        assert first.printed == 2 and first.failed == 1
        assert monitor.last_processed_id == 3
        assert (2, True) not in orders.flagged

        monitor.tick()
        assert dispatched_ids(dispatcher) == [1, 2, 3, 2]
        assert monitor.printed_ids == {1, 2, 3}
        assert monitor.get_status()["pendingRetries"] == []

    def test_flag_failure_does_not_cause_reprint(self, monitor, dispatcher, orders):
        orders.fail_update = True
        monitor.tick()
        monitor.tick()
        assert dispatched_ids(dispatcher) == [1, 2, 3]

    def test_dispatch_error_leaves_order_for_retry(self, monitor, dispatcher, orders):
        def dispatch(job):
            if job.order_id == 2:
                raise OSError("No space left on device")
            return printed_ok(job)

        dispatcher.dispatch.side_effect = dispatch

        summary = monitor.tick()

        assert summary.printed == 2 and summary.failed == 1
        assert monitor.get_status()["pendingRetries"] == [2]

        dispatcher.dispatch.side_effect = printed_ok
        monitor.tick()
        assert monitor.printed_ids == {1, 2, 3}

    def test_unexpected_fetch_error_is_survivable(self, monitor, orders):
        orders.get_all_orders = Mock(side_effect=ValueError("bad payload"))
        assert monitor.tick().candidates == 0

    def test_fetch_failure_is_survivable(self, monitor, dispatcher, orders):
        orders.fail_fetch = True
        assert monitor.tick().candidates == 0
        assert monitor.tick().candidates == 0

        orders.fail_fetch = False
        assert monitor.tick().printed == 3


# Tests for the enable/disable toggle

class TestToggle:
    """Test that a disabled monitor does nothing."""

    def test_disabled_tick_is_noop(self, monitor, dispatcher, orders):
        monitor.disable()
        summary = monitor.tick()

        assert summary.skipped is True
        dispatcher.dispatch.assert_not_called()
        assert orders.flagged == []

    def test_reenable_resumes(self, monitor, dispatcher):
        monitor.disable()
        monitor.tick()
        monitor.enable()
        monitor.tick()
        assert dispatched_ids(dispatcher) == [1, 2, 3]

    def test_status(self, monitor):
        monitor.tick()
        status = monitor.get_status()

        assert status["enabled"] is True
        assert status["running"] is False
        assert status["lastProcessedOrderId"] == 3
        assert status["printedOrdersCount"] == 3
        assert status["lastTickAt"] is not None


# Tests for tick overlap

class TestOverlap:
    """Test that ticks never run concurrently."""

    def test_tick_skipped_while_another_runs(self, monitor, dispatcher):
        entered = threading.Event()
        release = threading.Event()

        def slow_dispatch(job):
            entered.set()
            release.wait(timeout=5)
            return printed_ok(job)

        dispatcher.dispatch.side_effect = slow_dispatch

        worker = threading.Thread(target=monitor.tick)
        worker.start()
        assert entered.wait(timeout=5)

        assert monitor.tick().skipped is True

        release.set()
        worker.join(timeout=5)
        assert dispatched_ids(dispatcher) == [1, 2, 3]


# Tests for the polling thread

class TestThreadLifecycle:
    """Test start/stop of the background thread."""

    def test_start_polls_and_stop_joins(self, monitor, dispatcher):
        printed = threading.Event()
        dispatcher.dispatch.side_effect = lambda job: (printed.set(), printed_ok(job))[1]

        monitor.start()
        try:
            assert monitor.is_running is True
            assert printed.wait(timeout=5)
        finally:
            monitor.stop()

        assert monitor.is_running is False

    def test_thread_survives_dispatch_errors(self, monitor, dispatcher):
        calls = []
        polled_again = threading.Event()

        def failing_dispatch(job):
            calls.append(job.order_id)
            if len(calls) > 3:
                polled_again.set()
            raise OSError("No space left on device")

        dispatcher.dispatch.side_effect = failing_dispatch

        monitor.start()
        try:
            assert polled_again.wait(timeout=5)
            assert monitor._thread.is_alive()
        finally:
            monitor.stop()

        assert monitor.printed_ids == set()

    def test_start_twice_and_stop_twice(self, monitor):
        monitor.start()
        monitor.start()
        monitor.stop()
        monitor.stop()
        assert monitor.is_running is False
