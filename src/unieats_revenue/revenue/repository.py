"""MongoDB repository for reading orders and writing corrected financials."""

from __future__ import annotations

import os
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..errors import OrderUpdateError, UpstreamUnavailableError
from ..utils.config import Config
from ..utils.logging import get_logger
from .calculator import RevenueBreakdown
from .models import CANCELLED_STATUS, Order

logger = get_logger(__name__)

ORDER_PROJECTION = {
    "_id": 0,
    "id": 1,
    "subtotal": 1,
    "user_service_fee": 1,
    "cafeteria_commission": 1,
    "admin_revenue": 1,
    "total_amount": 1,
    "service_fee_percentage": 1,
    "status": 1,
    "created_at": 1,
    "order_items": 1,
}

ITEM_PROJECTION = {"_id": 0, "order_id": 1, "item_id": 1, "quantity": 1, "price": 1}


class OrderRepository:
    """Order store backed by the ``orders`` and ``order_items`` collections.

    Orders are addressed by their ``id`` field; items link back through
    ``order_id``. Orders that embed an ``order_items`` array use it when no
    linked item rows exist.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        db_name: Optional[str] = None,
        orders_collection: Optional[str] = None,
        items_collection: Optional[str] = None,
        connection_url_env_key: Optional[str] = None,
        client: Optional[MongoClient] = None,
    ) -> None:
        config = Config(".env")

        if connection_url_env_key:
            self._url = os.getenv(connection_url_env_key) or url or config.get("mongo_url")
        else:
            self._url = url or config.get("mongo_url")

        self._db = db_name or config.get("mongo_db")
        self._orders = orders_collection or config.get("orders_collection")
        self._items = items_collection or config.get("order_items_collection")
        if not self._url and client is None:
            raise ValueError("DB_CONNECTION_URL is required")
        self._client: Optional[MongoClient] = client

    def __enter__(self) -> "OrderRepository":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        if self._client is None:
            self._client = MongoClient(self._url, serverSelectionTimeoutMS=5000)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _collection(self, name: str):
        if self._client is None:
            self.connect()
        return self._client[self._db][name]

    def fetch_orders(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        exclude_cancelled: bool = False,
    ) -> List[Order]:
        """Fetch orders that already carry revenue fields, optionally within a period."""
        query: Dict[str, Any] = {"admin_revenue": {"$ne": None}}
        created: Dict[str, datetime] = {}
        if start is not None:
            created["$gte"] = start
        if end is not None:
            created["$lte"] = end
        if created:
            query["created_at"] = created
        if exclude_cancelled:
            # Same case-insensitive match as Order.is_cancelled
            query["status"] = {"$not": re.compile(f"^{re.escape(CANCELLED_STATUS)}$", re.IGNORECASE)}

        try:
            docs = list(self._collection(self._orders).find(query, ORDER_PROJECTION))
        except PyMongoError as e:
            raise UpstreamUnavailableError(f"Could not read orders: {e}") from e
        logger.debug(f"Fetched {len(docs)} orders with revenue")
        return [Order.from_document(doc) for doc in docs]

    def fetch_orders_with_items(self, missing_only: bool = False) -> List[Order]:
        """Fetch orders together with their line items.

        Args:
            missing_only: Only orders lacking subtotal, service fee or admin revenue
        """
        query: Dict[str, Any] = {}
        if missing_only:
            query = {"$or": [{"subtotal": None}, {"user_service_fee": None}, {"admin_revenue": None}]}
        try:
            docs = list(self._collection(self._orders).find(query, ORDER_PROJECTION))
            items_by_order = self._items_for([doc.get("id") for doc in docs])
        except PyMongoError as e:
            raise UpstreamUnavailableError(f"Could not read orders: {e}") from e
        logger.debug(f"Fetched {len(docs)} orders with items (missing_only={missing_only})")
        return [self._to_order(doc, items_by_order) for doc in docs]

    def fetch_order_with_items(self, order_id: str) -> Optional[Order]:
        try:
            doc = self._collection(self._orders).find_one({"id": order_id}, ORDER_PROJECTION)
            if not doc:
                return None
            items_by_order = self._items_for([order_id])
        except PyMongoError as e:
            raise UpstreamUnavailableError(f"Could not read order {order_id}: {e}") from e
        return self._to_order(doc, items_by_order)

    def _items_for(self, order_ids: List[Any]) -> Dict[Any, List[Dict[str, Any]]]:
        ids = [order_id for order_id in order_ids if order_id is not None]
        grouped: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
        if not ids:
            return grouped
        for item in self._collection(self._items).find({"order_id": {"$in": ids}}, ITEM_PROJECTION):
            grouped[item.get("order_id")].append(item)
        return grouped

    @staticmethod
    def _to_order(doc: Dict[str, Any], items_by_order: Dict[Any, List[Dict[str, Any]]]) -> Order:
        linked = items_by_order.get(doc.get("id"))
        # Fall back to embedded items when no linked rows exist
        return Order.from_document(doc, items=linked or None)

    def update_financials(self, order_id: str, breakdown: RevenueBreakdown) -> None:
        """Write the revenue fields of one order; nothing else on the document changes."""
        update = dict(breakdown.financial_fields())
        update["updated_at"] = datetime.now(timezone.utc)
        try:
            result = self._collection(self._orders).update_one({"id": order_id}, {"$set": update})
            # matched_count raises InvalidOperation on unacknowledged writes
            matched = result.matched_count
        except PyMongoError as e:
            raise OrderUpdateError(order_id, str(e)) from e
        if matched == 0:
            raise OrderUpdateError(order_id, "order no longer exists")
