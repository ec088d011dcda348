"""Tests for the MongoDB order repository."""

import os
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from pymongo.errors import InvalidOperation, PyMongoError, ServerSelectionTimeoutError

from unieats_revenue.errors import OrderUpdateError, UpstreamUnavailableError
from unieats_revenue.revenue.calculator import calculate_revenue
from unieats_revenue.revenue.repository import OrderRepository


@pytest.fixture
def collections():
    return {"orders": MagicMock(name="orders"), "order_items": MagicMock(name="order_items")}


@pytest.fixture
def repo(collections):
    client = MagicMock()
    client.__getitem__.return_value = collections
    return OrderRepository(
        url="mongodb://localhost:27017",
        db_name="test_db",
        orders_collection="orders",
        items_collection="order_items",
        client=client,
    )


class TestOrderRepository:
    """Test cases for order reads and writes."""

    def test_requires_connection_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError):
                OrderRepository(url="", db_name="test_db")

    def test_fetch_orders_filters_missing_revenue(self, repo, collections):
        collections["orders"].find.return_value = [{"id": "a", "subtotal": 100, "admin_revenue": 14}]

        orders = repo.fetch_orders()

        query = collections["orders"].find.call_args[0][0]
        assert query == {"admin_revenue": {"$ne": None}}
        assert [order.id for order in orders] == ["a"]

    def test_fetch_orders_with_period_and_status(self, repo, collections):
        collections["orders"].find.return_value = []
        start, end = object(), object()

        assert repo.fetch_orders(start=start, end=end, exclude_cancelled=True) == []

        query = collections["orders"].find.call_args[0][0]
        assert query["created_at"] == {"$gte": start, "$lte": end}
        status = query["status"]["$not"]
        assert status.match("cancelled")
        assert status.match("Cancelled")
        assert status.match("CANCELLED")
        assert not status.match("completed")
        assert not status.match("cancelled_by_user")

    def test_fetch_orders_with_items_joins_linked_rows(self, repo, collections):
        collections["orders"].find.return_value = [
            {"id": "a", "subtotal": 10},
            {"id": "b", "subtotal": 30, "order_items": [{"price": 15, "quantity": 2}]},
        ]
        collections["order_items"].find.return_value = [
            {"order_id": "a", "price": 5, "quantity": 3},
            {"order_id": "a", "price": 1, "quantity": 1},
        ]

        orders = {order.id: order for order in repo.fetch_orders_with_items()}

        assert orders["a"].calculated_subtotal() == 16.0
        # no linked rows: embedded items are used
        assert orders["b"].calculated_subtotal() == 30.0
        item_query = collections["order_items"].find.call_args[0][0]
        assert item_query == {"order_id": {"$in": ["a", "b"]}}

    def test_fetch_missing_only_query(self, repo, collections):
        collections["orders"].find.return_value = []

        repo.fetch_orders_with_items(missing_only=True)

        query = collections["orders"].find.call_args[0][0]
        assert {"admin_revenue": None} in query["$or"]
        collections["order_items"].find.assert_not_called()

    def test_fetch_single_order(self, repo, collections):
        collections["orders"].find_one.return_value = {"id": "a", "subtotal": 10}
        collections["order_items"].find.return_value = [{"order_id": "a", "price": 10, "quantity": 1}]

        order = repo.fetch_order_with_items("a")

        assert order.id == "a"
        assert order.calculated_subtotal() == 10.0

    def test_fetch_single_order_not_found(self, repo, collections):
        collections["orders"].find_one.return_value = None
        assert repo.fetch_order_with_items("missing") is None

    def test_read_failure_is_upstream_unavailable(self, repo, collections):
        collections["orders"].find.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(UpstreamUnavailableError):
            repo.fetch_orders()
        with pytest.raises(UpstreamUnavailableError):
            repo.fetch_orders_with_items()

    def test_update_sets_only_financial_fields(self, repo, collections):
        collections["orders"].update_one.return_value = MagicMock(matched_count=1)

        repo.update_financials("a", calculate_revenue(100))

        query, update = collections["orders"].update_one.call_args[0]
        assert query == {"id": "a"}
        assert set(update["$set"]) == {
            "subtotal",
            "user_service_fee",
            "cafeteria_commission",
            "admin_revenue",
            "total_amount",
            "service_fee_percentage",
            "updated_at",
        }
        assert update["$set"]["admin_revenue"] == 14.0

    def test_update_unmatched_order(self, repo, collections):
        collections["orders"].update_one.return_value = MagicMock(matched_count=0)

        with pytest.raises(OrderUpdateError):
            repo.update_financials("gone", calculate_revenue(100))

    def test_update_write_error(self, repo, collections):
        collections["orders"].update_one.side_effect = PyMongoError("write failed")

        with pytest.raises(OrderUpdateError) as exc_info:
            repo.update_financials("a", calculate_revenue(100))
        assert exc_info.value.order_id == "a"

    def test_update_unacknowledged_write(self, repo, collections):
        result = MagicMock()
        type(result).matched_count = PropertyMock(side_effect=InvalidOperation("unacknowledged write"))
        collections["orders"].update_one.return_value = result

        with pytest.raises(OrderUpdateError) as exc_info:
            repo.update_financials("a", calculate_revenue(100))
        assert exc_info.value.order_id == "a"

    def test_context_manager_closes_client(self, repo):
        client = repo._client
        with repo:
            pass
        client.close.assert_called_once()
