"""Order revenue calculation.

Revenue model:
    user_service_fee     = min(subtotal * 4%, 20.00)
    cafeteria_commission = subtotal * 10%
    admin_revenue        = user_service_fee + cafeteria_commission
    total_amount         = subtotal + user_service_fee

All outputs are rounded half-up to cents.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from numbers import Real
from typing import Any, Dict, Iterable

from ..errors import InvalidSubtotalError

SERVICE_FEE_RATE = Decimal("0.04")
SERVICE_FEE_CAP = Decimal("20.00")
COMMISSION_RATE = Decimal("0.10")
SERVICE_FEE_PERCENTAGE = 4.0

# One minor currency unit
TOLERANCE = 0.01

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class RevenueBreakdown:
    subtotal: float
    user_service_fee: float
    cafeteria_commission: float
    admin_revenue: float
    total_amount: float
    service_fee_percentage: float = SERVICE_FEE_PERCENTAGE

    @property
    def cafeteria_revenue(self) -> float:
        """What the cafeteria keeps after commission."""
        return round_currency(to_decimal(self.subtotal) - to_decimal(self.cafeteria_commission))

    def financial_fields(self) -> Dict[str, float]:
        """Order document fields owned by the revenue calculation."""
        return {
            "subtotal": self.subtotal,
            "user_service_fee": self.user_service_fee,
            "cafeteria_commission": self.cafeteria_commission,
            "admin_revenue": self.admin_revenue,
            "total_amount": self.total_amount,
            "service_fee_percentage": self.service_fee_percentage,
        }

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "userServiceFee": self.user_service_fee,
            "cafeteriaCommission": self.cafeteria_commission,
            "adminRevenue": self.admin_revenue,
            "totalAmount": self.total_amount,
            "cafeteriaRevenue": self.cafeteria_revenue,
            "serviceFeePercentage": self.service_fee_percentage,
        }


def to_decimal(value: Any) -> Decimal:
    """Convert an amount to Decimal using its shortest decimal form."""
    if isinstance(value, Decimal):
        return value
    # str() gives the shortest repr, so 0.1 becomes Decimal("0.1") rather than its binary expansion
    return Decimal(str(value))


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_currency(value: Any) -> float:
    """Round a monetary value half-up to 2 decimal places."""
    return float(_quantize(to_decimal(value)))


def currency_difference(actual: Any, expected: Any) -> Decimal:
    """Exact decimal difference between two amounts, free of binary float error."""
    return to_decimal(actual) - to_decimal(expected)


def validate_subtotal(subtotal: Any) -> Decimal:
    """Return the subtotal as a Decimal or raise InvalidSubtotalError.

    Negative values are rejected instead of clamped: a negative subtotal means
    the stored data is already corrupt and must surface to the caller.
    """
    if isinstance(subtotal, bool) or not isinstance(subtotal, (Real, Decimal)):
        raise InvalidSubtotalError(f"Subtotal must be a number, got {type(subtotal).__name__}")
    if isinstance(subtotal, Decimal):
        if not subtotal.is_finite():
            raise InvalidSubtotalError(f"Subtotal must be finite, got {subtotal}")
        value = subtotal
    else:
        if not math.isfinite(subtotal):
            raise InvalidSubtotalError(f"Subtotal must be finite, got {subtotal}")
        try:
            value = to_decimal(subtotal)
        except InvalidOperation as e:
            raise InvalidSubtotalError(f"Subtotal is not a valid amount: {subtotal!r}") from e
    if value < 0:
        raise InvalidSubtotalError(f"Subtotal must not be negative, got {subtotal}")
    return value


def calculate_revenue(subtotal: Any) -> RevenueBreakdown:
    """
    Compute the revenue breakdown for an order subtotal.

    Composite fields are built from the rounded components, so
    admin_revenue == user_service_fee + cafeteria_commission and
    total_amount == subtotal + user_service_fee hold exactly at cent level.

    Args:
        subtotal: Sum of item price * quantity, excluding platform fees

    Returns:
        RevenueBreakdown with every field rounded to cents

    Raises:
        InvalidSubtotalError: If subtotal is negative, non-finite or not a number
    """
    value = validate_subtotal(subtotal)

    rounded_subtotal = _quantize(value)
    service_fee = _quantize(min(value * SERVICE_FEE_RATE, SERVICE_FEE_CAP))
    commission = _quantize(value * COMMISSION_RATE)

    return RevenueBreakdown(
        subtotal=float(rounded_subtotal),
        user_service_fee=float(service_fee),
        cafeteria_commission=float(commission),
        admin_revenue=float(service_fee + commission),
        total_amount=float(rounded_subtotal + service_fee),
    )


def calculate_order_revenue(items: Iterable[Any]) -> RevenueBreakdown:
    """Compute the breakdown for a set of line items (anything with price and quantity)."""
    subtotal = sum((to_decimal(item.price) * int(item.quantity) for item in items), Decimal("0"))
    return calculate_revenue(subtotal)


def format_breakdown(breakdown: RevenueBreakdown, currency: str = "EGP") -> Dict[str, str]:
    """Render a breakdown as display strings."""
    rate = float(SERVICE_FEE_RATE * 100)
    cap = float(SERVICE_FEE_CAP)
    return {
        "subtotal": f"{breakdown.subtotal:.2f} {currency}",
        "serviceFee": f"{breakdown.user_service_fee:.2f} {currency} ({rate:.1f}%, max {cap:.2f} {currency})",
        "commission": f"{breakdown.cafeteria_commission:.2f} {currency} ({float(COMMISSION_RATE * 100):.1f}%)",
        "adminRevenue": f"{breakdown.admin_revenue:.2f} {currency}",
        "cafeteriaRevenue": f"{breakdown.cafeteria_revenue:.2f} {currency}",
        "totalAmount": f"{breakdown.total_amount:.2f} {currency}",
    }
