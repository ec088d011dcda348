"""Revenue calculation, reconciliation and consistency checking."""

from .calculator import RevenueBreakdown, calculate_revenue
from .consistency import AggregateSnapshot, ConsistencyValidator
from .models import Order, OrderItem
from .reconciliation import OrderReconciler
from .repository import OrderRepository
from .service import RevenueAuditService

__all__ = [
    "AggregateSnapshot",
    "ConsistencyValidator",
    "Order",
    "OrderItem",
    "OrderReconciler",
    "OrderRepository",
    "RevenueAuditService",
    "RevenueBreakdown",
    "calculate_revenue",
]
