"""Exception hierarchy for revenue computation and reconciliation."""


class RevenueError(Exception):
    """Base class for all revenue audit errors."""


class InvalidSubtotalError(RevenueError, ValueError):
    """Raised when a subtotal is negative, non-finite or not a number."""


class OrderUpdateError(RevenueError):
    """Raised when corrected financial fields cannot be written for one order."""

    def __init__(self, order_id: str, reason: str) -> None:
        super().__init__(f"Failed to update order {order_id}: {reason}")
        self.order_id = order_id
        self.reason = reason


class UpstreamUnavailableError(RevenueError):
    """Raised when the order store or the dashboard endpoint cannot be reached."""


class OrderNotFoundError(RevenueError, LookupError):
    """Raised when a single order lookup finds nothing."""
