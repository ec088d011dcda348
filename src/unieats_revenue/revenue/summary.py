"""Reporting periods and revenue totals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from .calculator import round_currency
from .models import Order

TIME_RANGES = ("Today", "This Week", "This Month", "This Quarter", "This Year", "All Time")
DEFAULT_TIME_RANGE = "This Month"


def resolve_time_range(
    name: str, now: Optional[datetime] = None
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Translate a dashboard time range name into (start, end) bounds.

    "This Year" has no upper bound and "All Time" has none at all, mirroring
    how the dashboard filters. Weeks start on Sunday. Unknown names fall back
    to "This Month".

    Bounds are timezone-aware in local time; a naive ``now`` is taken as local.
    """
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if name == "All Time":
        return None, None
    if name == "This Year":
        return midnight.replace(month=1, day=1), None
    if name == "Today":
        return midnight, now
    if name == "This Week":
        days_since_sunday = (now.weekday() + 1) % 7
        return midnight - timedelta(days=days_since_sunday), now
    if name == "This Quarter":
        quarter_month = (now.month - 1) // 3 * 3 + 1
        return midnight.replace(month=quarter_month, day=1), now
    return midnight.replace(day=1), now


@dataclass(frozen=True)
class RevenueSummary:
    total_orders: int
    total_subtotal: float
    total_service_fees: float
    total_commissions: float
    total_admin_revenue: float
    total_order_value: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalOrders": self.total_orders,
            "totalSubtotal": self.total_subtotal,
            "totalServiceFees": self.total_service_fees,
            "totalCommissions": self.total_commissions,
            "totalAdminRevenue": self.total_admin_revenue,
            "totalOrderValue": self.total_order_value,
        }


def summarize_revenue(orders: Iterable[Order], exclude_cancelled: bool = False) -> RevenueSummary:
    """Total the stored financial fields; missing values count as zero."""
    count = 0
    subtotal = fees = commissions = revenue = value = 0.0
    for order in orders:
        if exclude_cancelled and order.is_cancelled:
            continue
        count += 1
        subtotal += order.subtotal or 0.0
        fees += order.user_service_fee or 0.0
        commissions += order.cafeteria_commission or 0.0
        revenue += order.admin_revenue or 0.0
        value += order.total_amount or 0.0

    return RevenueSummary(
        total_orders=count,
        total_subtotal=round_currency(subtotal),
        total_service_fees=round_currency(fees),
        total_commissions=round_currency(commissions),
        total_admin_revenue=round_currency(revenue),
        total_order_value=round_currency(value),
    )
