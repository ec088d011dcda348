"""Cross-check dashboard aggregates against sums over the raw orders."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

from ..utils.logging import get_logger
from .calculator import TOLERANCE, currency_difference, to_decimal
from .models import Order, to_float

logger = get_logger(__name__)


@dataclass(frozen=True)
class AggregateSnapshot:
    """Revenue totals reported by an aggregation endpoint for one period."""

    total_revenue: float
    user_service_fees: float
    cafeteria_commissions: float

    @classmethod
    def from_metrics(cls, payload: Mapping[str, Any]) -> "AggregateSnapshot":
        """Read the snapshot from a dashboard response (``{"metrics": {...}}``)."""
        metrics = payload.get("metrics") or {}
        return cls(
            total_revenue=to_float(metrics.get("totalRevenue")) or 0.0,
            user_service_fees=to_float(metrics.get("userServiceFees")) or 0.0,
            cafeteria_commissions=to_float(metrics.get("cafeteriaCommissions")) or 0.0,
        )


@dataclass(frozen=True)
class ConsistencyCheck:
    expected: float
    actual: float
    match: bool

    @property
    def difference(self) -> float:
        return float(currency_difference(self.actual, self.expected))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected": self.expected,
            "actual": self.actual,
            "match": self.match,
            "difference": self.difference,
        }


@dataclass(frozen=True)
class ConsistencyReport:
    revenue_calculation: ConsistencyCheck
    service_fees: ConsistencyCheck
    commissions: ConsistencyCheck

    @property
    def all_calculations_correct(self) -> bool:
        return self.revenue_calculation.match and self.service_fees.match and self.commissions.match

    def to_dict(self) -> Dict[str, Any]:
        return {
            "revenueCalculation": self.revenue_calculation.to_dict(),
            "serviceFees": self.service_fees.to_dict(),
            "commissions": self.commissions.to_dict(),
            "allCalculationsCorrect": self.all_calculations_correct,
        }


class ConsistencyValidator:
    """Compare an aggregate snapshot with totals recomputed from raw orders."""

    def __init__(self, tolerance: float = TOLERANCE) -> None:
        self.tolerance = tolerance

    def _check(self, expected: Decimal, actual: float) -> ConsistencyCheck:
        match = abs(currency_difference(actual, expected)) < Decimal(str(self.tolerance))
        return ConsistencyCheck(expected=float(expected), actual=actual, match=match)

    def validate(self, orders: Iterable[Order], snapshot: AggregateSnapshot) -> ConsistencyReport:
        revenue = fees = commissions = Decimal("0")
        count = 0
        for order in orders:
            count += 1
            revenue += to_decimal(order.admin_revenue or 0.0)
            fees += to_decimal(order.user_service_fee or 0.0)
            commissions += to_decimal(order.cafeteria_commission or 0.0)

        report = ConsistencyReport(
            revenue_calculation=self._check(revenue, snapshot.total_revenue),
            service_fees=self._check(fees, snapshot.user_service_fees),
            commissions=self._check(commissions, snapshot.cafeteria_commissions),
        )
        if report.all_calculations_correct:
            logger.info(f"Aggregates consistent across {count} orders")
        else:
            logger.warning(f"Aggregate drift detected across {count} orders: {report.to_dict()}")
        return report
