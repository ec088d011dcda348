"""Order revenue reconciliation: audit stored financial fields and repair drift."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..errors import InvalidSubtotalError, OrderUpdateError
from ..utils.logging import get_logger
from .calculator import TOLERANCE, RevenueBreakdown, calculate_order_revenue, calculate_revenue, currency_difference
from .models import FINANCIAL_FIELDS, Order, OrderStore

logger = get_logger(__name__)

# Field name -> key in the audit summary
SUMMARY_KEYS = {
    "user_service_fee": "serviceFeeIssues",
    "cafeteria_commission": "commissionIssues",
    "admin_revenue": "adminRevenueIssues",
    "total_amount": "totalAmountIssues",
}

DEFAULT_PREVIEW = 10


@dataclass
class CalculationIssue:
    order_id: str
    field: str
    actual: Optional[float]
    expected: float

    @property
    def difference(self) -> Optional[float]:
        if self.actual is None:
            return None
        return round(self.actual - self.expected, 5)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "field": self.field,
            "actual": self.actual,
            "expected": self.expected,
            "difference": self.difference,
        }


@dataclass
class AuditReport:
    total_orders: int = 0
    issues: List[CalculationIssue] = field(default_factory=list)
    invalid_orders: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def inconsistent_orders(self) -> int:
        order_ids = {issue.order_id for issue in self.issues}
        order_ids.update(entry["orderId"] for entry in self.invalid_orders)
        return len(order_ids)

    @property
    def summary_by_field(self) -> Dict[str, int]:
        counts = {name: 0 for name in FINANCIAL_FIELDS}
        for issue in self.issues:
            counts[issue.field] += 1
        return counts

    @property
    def is_consistent(self) -> bool:
        return not self.issues and not self.invalid_orders

    def to_dict(self, preview: int = DEFAULT_PREVIEW) -> Dict[str, Any]:
        by_field = self.summary_by_field
        return {
            "totalOrders": self.total_orders,
            "inconsistentOrders": self.inconsistent_orders,
            "issuesFound": len(self.issues),
            "issues": [issue.to_dict() for issue in self.issues[:preview]],
            "summary": {SUMMARY_KEYS[name]: count for name, count in by_field.items()},
            "invalidOrders": list(self.invalid_orders),
        }


@dataclass
class FieldChange:
    order_id: str
    field: str
    before: Optional[float]
    after: float

    def to_dict(self) -> Dict[str, Any]:
        return {"orderId": self.order_id, "field": self.field, "before": self.before, "after": self.after}


@dataclass
class FixReport:
    total_orders: int = 0
    fixed_count: int = 0
    error_count: int = 0
    dry_run: bool = False
    changes: List[FieldChange] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def changed_orders(self) -> int:
        return len({change.order_id for change in self.changes})

    @property
    def message(self) -> str:
        if self.dry_run:
            return f"Dry run: {self.changed_orders} of {self.total_orders} orders would change"
        return f"Fixed calculations for {self.fixed_count} orders"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "details": {
                "totalOrders": self.total_orders,
                "fixedCount": self.fixed_count,
                "errorCount": self.error_count,
                "changedOrders": self.changed_orders,
            },
            "changes": [change.to_dict() for change in self.changes],
            "failures": list(self.failures),
        }


class OrderReconciler:
    """Detect and repair drift between stored and expected order financials.

    Per-order problems are accumulated in the returned reports; nothing here
    raises for a single bad order.
    """

    def __init__(self, store: Optional[OrderStore] = None, tolerance: float = TOLERANCE) -> None:
        self.store = store
        self.tolerance = tolerance
        self._tolerance = Decimal(str(tolerance))

    def audit(self, orders: Iterable[Order]) -> AuditReport:
        """Compare each order's stored fields with values recomputed from its subtotal."""
        report = AuditReport()
        for order in orders:
            if not order.has_revenue:
                # Not computed yet; that is not drift
                continue
            report.total_orders += 1
            try:
                expected = calculate_revenue(order.subtotal if order.subtotal is not None else 0.0)
            except InvalidSubtotalError as e:
                logger.warning(f"Order {order.id} has an invalid subtotal: {e}")
                report.invalid_orders.append({"orderId": order.id, "subtotal": order.subtotal, "error": str(e)})
                continue
            report.issues.extend(self._compare(order, expected))

        logger.info(
            f"Audit complete: {report.total_orders} orders, "
            f"{report.inconsistent_orders} inconsistent, {len(report.issues)} issues"
        )
        return report

    def _compare(self, order: Order, expected: RevenueBreakdown) -> List[CalculationIssue]:
        issues = []
        for name in FINANCIAL_FIELDS:
            actual = order.stored_value(name)
            target = getattr(expected, name)
            if actual is None or abs(currency_difference(actual, target)) > self._tolerance:
                logger.debug(f"Order {order.id}: {name} stored={actual} expected={target}")
                issues.append(CalculationIssue(order_id=order.id, field=name, actual=actual, expected=target))
        return issues

    def resolve_subtotal(self, order: Order) -> float:
        """Pick the subtotal a fix should trust.

        The item sum wins when positive; orders whose item rows are missing keep
        their stored subtotal, and an order with neither falls back to 0.
        """
        calculated = order.calculated_subtotal()
        if calculated > 0:
            return calculated
        if order.subtotal is None:
            logger.warning(f"Order {order.id} has no items and no stored subtotal; using 0")
            return 0.0
        return order.subtotal

    def recalculate(self, order: Order) -> RevenueBreakdown:
        """Breakdown a fix would write for this order.

        Line items are summed in Decimal so the item subtotal carries no float error.
        """
        if order.calculated_subtotal() > 0:
            return calculate_order_revenue(order.items)
        return calculate_revenue(self.resolve_subtotal(order))

    def fix(self, orders: Iterable[Order], dry_run: bool = False) -> FixReport:
        """
        Recompute and persist the financial fields of every order.

        Safe to re-run: a second pass writes identical values and reports no
        changes. A failure on one order is recorded and the batch continues;
        orders already written stay written.

        Args:
            orders: Orders carrying their line items
            dry_run: Compute the report without writing anything

        Returns:
            FixReport with counts, field-level changes and failures
        """
        if self.store is None and not dry_run:
            raise ValueError("An order store is required to persist fixes")

        report = FixReport(dry_run=dry_run)
        for order in orders:
            report.total_orders += 1
            try:
                breakdown = self.recalculate(order)
                changes = self._diff(order, breakdown)
                if not dry_run:
                    self.store.update_financials(order.id, breakdown)
            except (InvalidSubtotalError, OrderUpdateError) as e:
                logger.error(f"Error processing order {order.id}: {e}")
                report.error_count += 1
                report.failures.append({"orderId": order.id, "error": str(e)})
                continue
            except Exception as e:
                logger.exception(f"Unexpected error processing order {order.id}")
                report.error_count += 1
                report.failures.append({"orderId": order.id, "error": str(e) or type(e).__name__})
                continue
            report.changes.extend(changes)
            report.fixed_count += 1

        logger.info(
            f"Fix complete{' (dry run)' if dry_run else ''}: {report.fixed_count} fixed, "
            f"{report.error_count} errors, {report.changed_orders} orders changed"
        )
        return report

    def _diff(self, order: Order, breakdown: RevenueBreakdown) -> List[FieldChange]:
        changes = []
        for name in ("subtotal",) + FINANCIAL_FIELDS:
            before = order.stored_value(name)
            after = getattr(breakdown, name)
            if before != after:
                changes.append(FieldChange(order_id=order.id, field=name, before=before, after=after))
        return changes
