"""HTTP client for the admin dashboard aggregate endpoint."""

from __future__ import annotations

from typing import Optional

import httpx

from ..errors import UpstreamUnavailableError
from ..utils.logging import get_logger
from .consistency import AggregateSnapshot

logger = get_logger(__name__)

DASHBOARD_PATH = "/api/dashboard"


class DashboardClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None) -> None:
        if not base_url:
            raise ValueError("Dashboard base URL is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def fetch_snapshot(self, time_range: str) -> AggregateSnapshot:
        """
        Fetch the dashboard's revenue totals for a time range.

        Raises:
            UpstreamUnavailableError: On connection errors, non-2xx responses
                or a body that is not JSON
        """
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
                response = client.get(DASHBOARD_PATH, params={"timeRange": time_range})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:500]
            logger.error(f"Dashboard returned status {e.response.status_code}: {body}")
            raise UpstreamUnavailableError(f"Dashboard returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Could not connect to dashboard ({e.request.url}): {e}")
            raise UpstreamUnavailableError(f"Could not connect to dashboard: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailableError(f"Dashboard response is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise UpstreamUnavailableError("Dashboard response has no metrics")
        snapshot = AggregateSnapshot.from_metrics(payload)
        logger.debug(f"Dashboard snapshot for {time_range}: {snapshot}")
        return snapshot
