"""
Orders API collaborator.

The auto-print monitor only needs two things from the orders store:
the list of orders, and a way to flag one as printed. OrdersCollaborator
is that interface; HttpOrdersClient implements it against the
dashboard's REST API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from core.exceptions import OrdersUnavailableError
from logging_config import get_logger
from models.order import Order

logger = get_logger(__name__)


class OrdersCollaborator(ABC):
    """Interface to the orders store."""

    @abstractmethod
    def get_all_orders(self) -> List[Order]:
        """
        Raises:
            OrdersUnavailableError: If the store cannot be read
        """

    @abstractmethod
    def update_print_status(self, order_id: int, printed: bool) -> None:
        """
        Raises:
            OrdersUnavailableError: If the flag could not be stored
        """


class HttpOrdersClient(OrdersCollaborator):
    """
    Orders collaborator backed by the dashboard REST API.

    Endpoints:
        GET   {base_url}/orders                      -> list of order objects
        PATCH {base_url}/orders/{id}/print-status    {"impresso": bool}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_all_orders(self) -> List[Order]:
        url = f"{self.base_url}/orders"
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise OrdersUnavailableError(f"Could not fetch orders: {e}", url=url) from e
        except ValueError as e:
            raise OrdersUnavailableError("Orders API returned invalid JSON", url=url) from e

        # Accept both a bare list and the {"data": [...]} envelope
        if isinstance(payload, dict):
            payload = payload.get("data", payload.get("orders"))
        if not isinstance(payload, list):
            raise OrdersUnavailableError("Orders API returned an unexpected payload", url=url)

        orders: List[Order] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                orders.append(Order.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed order: {e}")
        return orders

    def update_print_status(self, order_id: int, printed: bool) -> None:
        url = f"{self.base_url}/orders/{order_id}/print-status"
        try:
            response = self._session.patch(
                url, json={"impresso": printed}, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise OrdersUnavailableError(
                f"Could not update print status of order {order_id}: {e}", url=url
            ) from e
        logger.debug(f"Order {order_id} print status set to {printed}")
