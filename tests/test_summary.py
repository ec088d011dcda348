"""Tests for reporting periods and revenue totals."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_order_doc
from unieats_revenue.revenue.models import Order
from unieats_revenue.revenue.summary import resolve_time_range, summarize_revenue

CAIRO = timezone(timedelta(hours=3))

# A Wednesday
NOW = datetime(2026, 5, 13, 15, 30, tzinfo=CAIRO)


def _day(year, month, day):
    return datetime(year, month, day, tzinfo=CAIRO)


class TestResolveTimeRange:
    def test_today(self):
        assert resolve_time_range("Today", now=NOW) == (_day(2026, 5, 13), NOW)

    def test_week_starts_on_sunday(self):
        assert resolve_time_range("This Week", now=NOW) == (_day(2026, 5, 10), NOW)

    def test_week_on_sunday_is_same_day(self):
        sunday = datetime(2026, 5, 10, 9, 0, tzinfo=CAIRO)
        assert resolve_time_range("This Week", now=sunday)[0] == _day(2026, 5, 10)

    def test_month(self):
        assert resolve_time_range("This Month", now=NOW) == (_day(2026, 5, 1), NOW)

    def test_quarter(self):
        assert resolve_time_range("This Quarter", now=NOW) == (_day(2026, 4, 1), NOW)

    def test_year_has_no_upper_bound(self):
        assert resolve_time_range("This Year", now=NOW) == (_day(2026, 1, 1), None)

    def test_all_time(self):
        assert resolve_time_range("All Time", now=NOW) == (None, None)

    def test_unknown_defaults_to_month(self):
        assert resolve_time_range("Last Decade", now=NOW) == (_day(2026, 5, 1), NOW)

    def test_bounds_keep_the_given_timezone(self):
        start, end = resolve_time_range("Today", now=NOW)
        assert start.utcoffset() == timedelta(hours=3)
        assert start.astimezone(timezone.utc) == datetime(2026, 5, 12, 21, 0, tzinfo=timezone.utc)
        assert end is NOW

    def test_default_bounds_are_timezone_aware(self):
        start, end = resolve_time_range("This Month")
        assert start.tzinfo is not None
        assert end.tzinfo is not None
        assert start <= end

    def test_naive_now_is_taken_as_local_time(self):
        naive = datetime(2026, 5, 13, 15, 30)
        start, end = resolve_time_range("This Year", now=naive)
        assert start.tzinfo is not None
        assert (start.year, start.month, start.day, start.hour) == (2026, 1, 1, 0)
        assert end is None


class TestSummarizeRevenue:
    @pytest.fixture
    def orders(self):
        return [
            Order.from_document(make_order_doc("a", 100.0)),
            Order.from_document(make_order_doc("b", 1000.0)),
            Order.from_document(make_order_doc("c", 50.0, status="cancelled")),
        ]

    def test_totals(self, orders):
        summary = summarize_revenue(orders)

        assert summary.total_orders == 3
        assert summary.total_subtotal == 1150.0
        assert summary.total_service_fees == 26.0
        assert summary.total_commissions == 115.0
        assert summary.total_admin_revenue == 141.0
        assert summary.total_order_value == 1176.0

    def test_excludes_cancelled(self, orders):
        summary = summarize_revenue(orders, exclude_cancelled=True)

        assert summary.total_orders == 2
        assert summary.total_admin_revenue == 134.0

    def test_to_dict(self, orders):
        data = summarize_revenue([]).to_dict()
        assert data == {
            "totalOrders": 0,
            "totalSubtotal": 0.0,
            "totalServiceFees": 0.0,
            "totalCommissions": 0.0,
            "totalAdminRevenue": 0.0,
            "totalOrderValue": 0.0,
        }
