"""Revenue audit service wiring storage, reconciliation and validation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import OrderNotFoundError
from ..utils.logging import get_logger
from .calculator import TOLERANCE
from .consistency import AggregateSnapshot, ConsistencyReport, ConsistencyValidator
from .dashboard import DashboardClient
from .reconciliation import AuditReport, FixReport, OrderReconciler
from .repository import OrderRepository
from .summary import RevenueSummary, resolve_time_range, summarize_revenue

logger = get_logger(__name__)


class RevenueAuditService:
    """High-level service for revenue audit operations.

    Store or dashboard outages raise UpstreamUnavailableError; an empty order
    table is a normal result with zero counts.
    """

    def __init__(
        self,
        repository: OrderRepository,
        dashboard: Optional[DashboardClient] = None,
        tolerance: float = TOLERANCE,
    ) -> None:
        self.repository = repository
        self.dashboard = dashboard
        self.reconciler = OrderReconciler(store=repository, tolerance=tolerance)
        self.validator = ConsistencyValidator(tolerance=tolerance)

    def audit_all_calculations(self) -> AuditReport:
        logger.info("Starting comprehensive calculation audit")
        orders = self.repository.fetch_orders()
        return self.reconciler.audit(orders)

    def fix_all_calculations(self, dry_run: bool = False) -> FixReport:
        logger.info("Starting comprehensive calculation fix")
        orders = self.repository.fetch_orders_with_items()
        return self.reconciler.fix(orders, dry_run=dry_run)

    def fix_missing_revenue(self, dry_run: bool = False) -> FixReport:
        """Compute revenue for orders that never had it stored."""
        orders = self.repository.fetch_orders_with_items(missing_only=True)
        logger.info(f"Found {len(orders)} orders needing revenue calculations")
        return self.reconciler.fix(orders, dry_run=dry_run)

    def fix_order(self, order_id: str, dry_run: bool = False) -> FixReport:
        order = self.repository.fetch_order_with_items(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order with ID {order_id} not found")
        return self.reconciler.fix([order], dry_run=dry_run)

    def validate_api_consistency(
        self,
        time_range: str = "This Year",
        snapshot: Optional[AggregateSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> ConsistencyReport:
        """
        Cross-check dashboard totals against the raw orders of the same period.

        Raw orders are filtered the way the dashboard filters them: same
        period bounds, cancelled orders excluded.

        Args:
            time_range: Dashboard time range name
            snapshot: Aggregate to check; fetched from the dashboard when omitted
            now: Reference time for resolving the period
        """
        logger.info(f"Validating API calculation consistency for {time_range}")
        if snapshot is None:
            if self.dashboard is None:
                raise ValueError("A dashboard client or an explicit snapshot is required")
            snapshot = self.dashboard.fetch_snapshot(time_range)
        start, end = resolve_time_range(time_range, now=now)
        orders = self.repository.fetch_orders(start=start, end=end, exclude_cancelled=True)
        return self.validator.validate(orders, snapshot)

    def revenue_summary(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> RevenueSummary:
        orders = self.repository.fetch_orders(start=start, end=end)
        return summarize_revenue(orders)
