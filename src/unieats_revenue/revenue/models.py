"""Order value types and the order storage protocol.

Rows arrive from the database as loosely typed documents; ``Order.from_document``
is the single place where they are coerced into typed values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .calculator import RevenueBreakdown

FINANCIAL_FIELDS = (
    "user_service_fee",
    "cafeteria_commission",
    "admin_revenue",
    "total_amount",
)

CANCELLED_STATUS = "cancelled"


def to_float(value: Any) -> Optional[float]:
    """Coerce a stored numeric value; None, blanks and garbage become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    # bson Decimal128 and Decimal both round-trip through str
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0


def _normalize_id(obj_id: Any) -> str:
    """Normalize ObjectId / {'$oid': ...} / plain ids to a string."""
    if isinstance(obj_id, dict) and "$oid" in obj_id:
        return str(obj_id["$oid"])
    return str(obj_id)


@dataclass
class OrderItem:
    price: float
    quantity: int
    item_id: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "OrderItem":
        item_id = doc.get("item_id")
        return cls(
            price=to_float(doc.get("price")) or 0.0,
            quantity=_to_int(doc.get("quantity")),
            item_id=_normalize_id(item_id) if item_id is not None else None,
        )


@dataclass
class Order:
    """An order with its stored financial fields.

    Financial fields are None when the order has not had revenue computed yet.
    """

    id: str
    subtotal: Optional[float]
    user_service_fee: Optional[float] = None
    cafeteria_commission: Optional[float] = None
    admin_revenue: Optional[float] = None
    total_amount: Optional[float] = None
    service_fee_percentage: Optional[float] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItem] = field(default_factory=list)

    @property
    def has_revenue(self) -> bool:
        return self.admin_revenue is not None

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").lower() == CANCELLED_STATUS

    def calculated_subtotal(self) -> float:
        """Subtotal recomputed from the order's line items."""
        return sum(item.line_total for item in self.items)

    def stored_value(self, name: str) -> Optional[float]:
        return getattr(self, name)

    @classmethod
    def from_document(cls, doc: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> "Order":
        """
        Build an Order from a database document.

        Args:
            doc: Order document; ``id`` is preferred over ``_id``
            items: Item documents for this order; falls back to an embedded
                ``order_items`` array when not given

        Returns:
            Order instance
        """
        raw_id = doc.get("id", doc.get("_id"))
        if items is None:
            items = doc.get("order_items") or []
        created_at = doc.get("created_at")
        if isinstance(created_at, str):
            try:
                created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
            except ValueError:
                created_at = None
        elif not isinstance(created_at, datetime):
            created_at = None

        return cls(
            id=_normalize_id(raw_id),
            subtotal=to_float(doc.get("subtotal")),
            user_service_fee=to_float(doc.get("user_service_fee")),
            cafeteria_commission=to_float(doc.get("cafeteria_commission")),
            admin_revenue=to_float(doc.get("admin_revenue")),
            total_amount=to_float(doc.get("total_amount")),
            service_fee_percentage=to_float(doc.get("service_fee_percentage")),
            status=doc.get("status"),
            created_at=created_at,
            items=[OrderItem.from_document(item) for item in items],
        )


class OrderStore(Protocol):
    """Storage collaborator for reading orders and writing corrected financials."""

    def fetch_orders(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_cancelled: bool = False,
    ) -> List[Order]:
        ...

    def fetch_orders_with_items(self, missing_only: bool = False) -> List[Order]:
        ...

    def update_financials(self, order_id: str, breakdown: RevenueBreakdown) -> None:
        ...
