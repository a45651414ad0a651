"""
Auto-print monitor with background polling thread.

Polls the orders API on a fixed interval and prints every new order
exactly once per process lifetime.

Each tick, while enabled:
    1. Fetch all orders.
    2. Keep orders above the cursor (or waiting for a retry) that are not
       cancelled, not already printed by us and not flagged printed in
       the orders store.
    3. In ascending id order: discover printers, pick the first online one
       (or the first one at all), render, dispatch.
    4. On success: remember the id, advance the cursor, flag the order
       printed in the orders store.
       On failure: keep the id in the retry set for the next tick.

The cursor lives in memory only. After a restart the "impresso" flag in
the orders store is what prevents reprinting.

Thread Safety:
    - Ticks never overlap. A tick that finds another one in flight
      returns immediately.
    - Dispatch itself is serialized by PrintDispatcher.

Usage:
    monitor = AutoPrintMonitor(orders_client, discovery, renderer, dispatcher)
    monitor.start()
    monitor.enable()
    ...
    monitor.stop()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from core.orders_client import OrdersCollaborator
from logging_config import get_logger, set_thread_name
from models.order import Order
from models.print_job import PrintJob
from models.printer import PrinterDevice
from services.discovery import PrinterDiscovery
from services.dispatcher import PrintDispatcher
from services.renderer import ReceiptRenderer

logger = get_logger(__name__)


@dataclass(frozen=True)
class TickSummary:
    """What one poll tick did."""

    skipped: bool = False
    """Another tick was in flight, or the monitor is disabled."""

    candidates: int = 0
    printed: int = 0
    failed: int = 0


def pick_printer(printers: List[PrinterDevice]) -> Optional[PrinterDevice]:
    """First online printer, else the first printer, else None."""
    for printer in printers:
        if printer.is_online:
            return printer
    return printers[0] if printers else None


class AutoPrintMonitor:
    """
    Background service that prints new orders.

    Attributes:
        interval_seconds: Time between polls
        is_running: Whether the polling thread is alive
        is_enabled: Whether ticks do anything
    """

    def __init__(
        self,
        orders: OrdersCollaborator,
        discovery: PrinterDiscovery,
        renderer: ReceiptRenderer,
        dispatcher: PrintDispatcher,
        interval_seconds: float = 5.0,
        enabled: bool = False,
    ):
        self._orders = orders
        self._discovery = discovery
        self._renderer = renderer
        self._dispatcher = dispatcher
        self._interval = interval_seconds

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        self._enabled = threading.Event()
        if enabled:
            self._enabled.set()

        # Held for the whole tick; acquired non-blocking
        self._tick_lock = threading.Lock()

        # Cursor, mutated only inside a tick
        self._last_processed_id = 0
        self._printed_ids: Set[int] = set()
        self._retry_ids: Set[int] = set()

        self._last_tick_at: Optional[datetime] = None
        self._consecutive_failures = 0

        logger.info(f"AutoPrintMonitor initialized (interval: {interval_seconds}s)")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_enabled(self) -> bool:
        return self._enabled.is_set()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_processed_id(self) -> int:
        return self._last_processed_id

    @property
    def printed_ids(self) -> Set[int]:
        return set(self._printed_ids)

    # =========================================================================
    # Toggle
    # =========================================================================

    def enable(self) -> None:
        self._enabled.set()
        logger.info("Auto-print enabled")

    def disable(self) -> None:
        """Stop printing. A tick already in progress finishes its current order."""
        self._enabled.clear()
        logger.info("Auto-print disabled")

    # =========================================================================
    # Thread lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Start the polling thread.

        Safe to call multiple times - only starts if not already running.
        """
        if self._is_running:
            logger.warning("AutoPrintMonitor already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            name="AutoPrint",
            daemon=True,
        )
        self._is_running = True
        self._thread.start()
        logger.info("Auto-print thread started")

    def stop(self) -> None:
        """Signal the thread to stop and wait for it. Safe to call multiple times."""
        if not self._is_running:
            return

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Auto-print thread did not stop cleanly")

        self._is_running = False
        self._thread = None
        logger.info("Auto-print thread stopped")

    def _poll_loop(self) -> None:
        set_thread_name("AutoPrint")
        logger.info("Auto-print loop starting")

        self.tick()
        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=self._interval):
                break
            self.tick()

        logger.info("Auto-print loop exiting")

    # =========================================================================
    # Polling
    # =========================================================================

    def tick(self) -> TickSummary:
        """
        Run one poll. Returns immediately if another tick is in flight.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous auto-print tick still running, skipping")
            return TickSummary(skipped=True)
        try:
            if not self.is_enabled:
                return TickSummary(skipped=True)
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> TickSummary:
        self._last_tick_at = datetime.now().astimezone()
        try:
            orders = self._orders.get_all_orders()
        except Exception as e:
            self._log_fetch_failure(e)
            return TickSummary()

        if self._consecutive_failures > 0:
            logger.info(f"Orders API recovered after {self._consecutive_failures} failures")
        self._consecutive_failures = 0

        candidates = self._select(orders)
        printed = failed = 0
        for order in candidates:
            if not self.is_enabled or self._stop_event.is_set():
                break
            try:
                ok = self._print_order(order)
            except Exception as e:
                self._retry_ids.add(order.id)
                logger.exception(f"Auto-print of order {order.id} raised: {e}")
                ok = False
            if ok:
                printed += 1
            else:
                failed += 1

        if candidates:
            logger.info(
                f"Auto-print tick: {printed} printed, {failed} failed "
                f"of {len(candidates)} new order(s)"
            )
        return TickSummary(candidates=len(candidates), printed=printed, failed=failed)

    def _select(self, orders: List[Order]) -> List[Order]:
        selected = {}
        for order in orders:
            if order.id in self._printed_ids or order.is_cancelled or order.printed:
                continue
            if order.id > self._last_processed_id or order.id in self._retry_ids:
                selected[order.id] = order
        return [selected[order_id] for order_id in sorted(selected)]

    def _print_order(self, order: Order) -> bool:
        printers = self._discovery.detect_all_printers()
        printer = pick_printer(printers)

        target_id = None
        if printer is not None and printer.is_inactive:
            logger.warning(
                f"Printer {printer.display_name} is disabled; order {order.id} "
                "goes through the fallback cascade"
            )
        elif printer is not None:
            target_id = printer.id

        job = PrintJob(
            order_id=order.id,
            rendered_text=self._renderer.render(order),
            target_printer_id=target_id,
            order_data=order.to_dict(),
            user_name="auto-print",
        )
        result = self._dispatcher.dispatch(job)

        if not result.success:
            self._retry_ids.add(order.id)
            logger.error(f"Auto-print of order {order.id} failed: {result.message}")
            return False

        self._printed_ids.add(order.id)
        self._retry_ids.discard(order.id)
        self._last_processed_id = max(self._last_processed_id, order.id)
        logger.info(f"Order {order.id} printed ({result.message})")

        try:
            self._orders.update_print_status(order.id, True)
        except Exception as e:
            logger.warning(f"Order {order.id} printed but could not be flagged: {e}")
        return True

    def _log_fetch_failure(self, error: Exception) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures == 1:
            logger.warning(f"Could not fetch orders: {error}")
        elif self._consecutive_failures <= 3:
            logger.error(f"Could not fetch orders ({self._consecutive_failures} consecutive): {error}")
        elif self._consecutive_failures % 5 == 0:
            logger.error(
                f"Orders API still failing ({self._consecutive_failures} consecutive): {error}"
            )

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        return {
            "enabled": self.is_enabled,
            "running": self._is_running,
            "lastProcessedOrderId": self._last_processed_id,
            "printedOrdersCount": len(self._printed_ids),
            "pendingRetries": sorted(self._retry_ids),
            "intervalSeconds": self._interval,
            "lastTickAt": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "timestamp": datetime.now().astimezone().isoformat(),
        }
