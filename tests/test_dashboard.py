"""Tests for the dashboard aggregate client."""

import httpx
import pytest

from unieats_revenue.errors import UpstreamUnavailableError
from unieats_revenue.revenue.consistency import AggregateSnapshot
from unieats_revenue.revenue.dashboard import DashboardClient


def _client(handler):
    return DashboardClient("http://dashboard.test/", transport=httpx.MockTransport(handler))


def test_fetch_snapshot():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["time_range"] = request.url.params["timeRange"]
        return httpx.Response(200, json={"metrics": {
            "totalRevenue": 169.0,
            "userServiceFees": 34.0,
            "cafeteriaCommissions": 135.0,
        }})

    snapshot = _client(handler).fetch_snapshot("This Year")

    assert snapshot == AggregateSnapshot(169.0, 34.0, 135.0)
    assert seen == {"path": "/api/dashboard", "time_range": "This Year"}


def test_error_status_is_upstream_unavailable():
    client = _client(lambda request: httpx.Response(500, json={"error": "Failed to fetch orders"}))
    with pytest.raises(UpstreamUnavailableError, match="500"):
        client.fetch_snapshot("Today")


def test_connection_error_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailableError):
        _client(handler).fetch_snapshot("Today")


def test_non_json_body():
    client = _client(lambda request: httpx.Response(200, text="<html>login</html>"))
    with pytest.raises(UpstreamUnavailableError):
        client.fetch_snapshot("Today")


def test_non_object_body():
    client = _client(lambda request: httpx.Response(200, json=[1, 2, 3]))
    with pytest.raises(UpstreamUnavailableError):
        client.fetch_snapshot("Today")


def test_requires_base_url():
    with pytest.raises(ValueError):
        DashboardClient("")
