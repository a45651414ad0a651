"""
Order data model.

An Order is what the orders API hands us: one customer order placed
through the WhatsApp bot or the dashboard. The wire format uses the
restaurant's Portuguese field names; this model maps them onto typed
attributes with explicit defaults so the renderer and the auto-print
monitor never deal with missing keys.

Wire keys:
    id, nome_cliente, pedido, observacoes, valor, tipo_pagamento,
    endereco, created_at, status, impresso
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional

CANCELLED_STATUSES = frozenset({"cancelled", "cancelado"})


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        # fromisoformat() does not accept a trailing "Z" before 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_amount(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return 0.0


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "sim", "t")
    return bool(value)


@dataclass(frozen=True)
class Order:
    """
    A single customer order.

    Optional text fields default to an empty string; the renderer swaps
    in a placeholder for anything empty.
    """

    id: int
    """Numeric order id, monotonically increasing in the orders store."""

    customer_name: str = ""
    """Customer name (``nome_cliente``)."""

    items: str = ""
    """Free-text list of ordered items (``pedido``)."""

    notes: str = ""
    """Customer notes (``observacoes``)."""

    total: float = 0.0
    """Order total in BRL (``valor``)."""

    payment_method: str = ""
    """Payment method (``tipo_pagamento``)."""

    address: str = ""
    """Delivery address (``endereco``)."""

    created_at: Optional[datetime] = None
    """When the order was placed, if the store reported it."""

    status: str = ""
    """Workflow status, e.g. 'pendente', 'entregue', 'cancelado'."""

    printed: bool = False
    """Whether the orders store already flags this order as printed (``impresso``)."""

    @property
    def is_cancelled(self) -> bool:
        return self.status.strip().lower() in CANCELLED_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the orders API wire format."""
        return {
            "id": self.id,
            "nome_cliente": self.customer_name,
            "pedido": self.items,
            "observacoes": self.notes,
            "valor": self.total,
            "tipo_pagamento": self.payment_method,
            "endereco": self.address,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "status": self.status,
            "impresso": self.printed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Create from an orders API payload.

        Raises:
            ValueError: If ``id`` is missing or not an integer
        """
        raw_id = data.get("id")
        if raw_id is None or isinstance(raw_id, bool):
            raise ValueError(f"Order payload has no usable id: {raw_id!r}")
        try:
            order_id = int(raw_id)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Order payload has no usable id: {raw_id!r}") from e

        return cls(
            id=order_id,
            customer_name=str(data.get("nome_cliente") or ""),
            items=str(data.get("pedido") or ""),
            notes=str(data.get("observacoes") or ""),
            total=_parse_amount(data.get("valor")),
            payment_method=str(data.get("tipo_pagamento") or ""),
            address=str(data.get("endereco") or ""),
            created_at=_parse_datetime(data.get("created_at")),
            status=str(data.get("status") or ""),
            printed=_parse_flag(data.get("impresso", False)),
        )
