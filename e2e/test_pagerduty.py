"""Tests for the PagerDuty integration client.

Every request goes through httpx.MockTransport, so these run without a token
or network access. They pin down the request shapes PagerDuty expects and the
soft/hard failure split.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from sre.integrations.pagerduty import (
    PagerDutyClient,
    PagerDutyContractError,
    PagerDutyUnavailableError,
    format_timestamp,
    seconds_to_minutes,
)

NOW = datetime(2024, 11, 15, 9, 30, 0, tzinfo=timezone.utc)


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_incident(**overrides) -> dict:
    """Minimal PagerDuty incident record."""
    base = {
        "id": "PT4KHLK",
        "title": "DB connection pool exhausted",
        "description": "DB connection pool exhausted",
        "html_url": "https://acme.pagerduty.com/incidents/PT4KHLK",
        "status": "triggered",
        "last_status_change_at": "2024-11-15T08:00:00Z",
    }
    base.update(overrides)
    return base


def make_client(responses: list[httpx.Response | Exception]):
    """PagerDutyClient whose requests are answered from a list, in order."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        answer = responses[len(requests) - 1]
        if isinstance(answer, Exception):
            raise answer
        return answer

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = PagerDutyClient("test-token", base_url="https://pd.example.test", http_client=http_client)
    return client, requests


# ── Helpers under test ────────────────────────────────────────────────────────

class TestFormatting:
    def test_timestamp_is_utc_with_z_suffix(self):
        assert format_timestamp(NOW) == "2024-11-15T09:30:00Z"

    def test_naive_timestamp_is_treated_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05Z"

    def test_seconds_to_minutes_truncates(self):
        assert seconds_to_minutes(1800) == 30
        assert seconds_to_minutes(119) == 1
        assert seconds_to_minutes(59.9) == 0

    def test_seconds_to_minutes_treats_none_as_zero(self):
        assert seconds_to_minutes(None) == 0


# ── fetch_analytics ───────────────────────────────────────────────────────────

class TestFetchAnalytics:
    async def test_returns_first_bucket(self):
        client, _ = make_client([
            httpx.Response(200, json={"data": [
                {"mean_seconds_to_resolve": 1800},
                {"mean_seconds_to_resolve": 60},
            ]}),
        ])
        aggregate = await client.fetch_analytics("PABC123", NOW)
        assert aggregate.mean_seconds_to_resolve == 1800

    async def test_request_shape(self):
        client, requests = make_client([
            httpx.Response(200, json={"data": [{"mean_seconds_to_resolve": 0}]}),
        ])
        await client.fetch_analytics("PABC123", NOW)

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://pd.example.test/analytics/metrics/incidents/services"
        assert request.headers["Authorization"] == "Token token=test-token"
        assert request.headers["X-EARLY-ACCESS"] == "analytics-v2"
        assert request.headers["Accept"] == "application/vnd.pagerduty+json;version=2"

        body = json.loads(request.content)
        assert body == {
            "filters": {
                "created_at_start": "2024-10-18T09:30:00Z",
                "created_at_end": "2024-11-15T09:30:00Z",
                "service_ids": ["PABC123"],
                "urgency": "high",
            },
            "aggregate_unit": "month",
        }

    async def test_missing_mean_is_none(self):
        client, _ = make_client([httpx.Response(200, json={"data": [{}]})])
        aggregate = await client.fetch_analytics("PABC123", NOW)
        assert aggregate.mean_seconds_to_resolve is None

    async def test_http_error_is_soft_failure(self):
        client, _ = make_client([httpx.Response(429, json={"error": "rate limited"})])
        with pytest.raises(PagerDutyUnavailableError) as excinfo:
            await client.fetch_analytics("PABC123", NOW)
        assert excinfo.value.status_code == 429

    async def test_transport_error_is_soft_failure(self):
        client, _ = make_client([httpx.ConnectError("connection refused")])
        with pytest.raises(PagerDutyUnavailableError) as excinfo:
            await client.fetch_analytics("PABC123", NOW)
        assert excinfo.value.status_code is None

    @pytest.mark.parametrize("payload", [
        {},
        {"data": None},
        {"data": "not a list"},
        {"data": []},
        [1, 2, 3],
    ])
    async def test_malformed_body_is_hard_failure(self, payload):
        client, _ = make_client([httpx.Response(200, json=payload)])
        with pytest.raises(PagerDutyContractError):
            await client.fetch_analytics("PABC123", NOW)

    async def test_non_json_body_is_hard_failure(self):
        client, _ = make_client([httpx.Response(200, text="<html>oops</html>")])
        with pytest.raises(PagerDutyContractError):
            await client.fetch_analytics("PABC123", NOW)


# ── fetch_incidents ───────────────────────────────────────────────────────────

class TestFetchIncidents:
    async def test_returns_incidents_in_order(self):
        client, _ = make_client([
            httpx.Response(200, json={"incidents": [
                make_incident(id="P1"),
                make_incident(id="P2", status="resolved"),
            ]}),
        ])
        incidents = await client.fetch_incidents("PABC123")
        assert [i.id for i in incidents] == ["P1", "P2"]
        assert incidents[1].status == "resolved"

    async def test_request_shape(self):
        client, requests = make_client([httpx.Response(200, json={"incidents": []})])
        await client.fetch_incidents("PABC123")

        request = requests[0]
        assert request.method == "GET"
        assert request.url.path == "/incidents"
        assert request.url.params["limit"] == "100"
        assert request.url.params["service_ids[]"] == "PABC123"
        assert request.headers["Authorization"] == "Token token=test-token"
        assert "X-EARLY-ACCESS" not in request.headers

    async def test_null_description_is_accepted(self):
        client, _ = make_client([
            httpx.Response(200, json={"incidents": [make_incident(description=None)]}),
        ])
        incidents = await client.fetch_incidents("PABC123")
        assert incidents[0].description is None

    async def test_http_error_is_soft_failure(self):
        client, _ = make_client([httpx.Response(503, text="unavailable")])
        with pytest.raises(PagerDutyUnavailableError):
            await client.fetch_incidents("PABC123")

    async def test_missing_incidents_field_is_hard_failure(self):
        client, _ = make_client([httpx.Response(200, json={"limit": 100})])
        with pytest.raises(PagerDutyContractError):
            await client.fetch_incidents("PABC123")

    async def test_incident_missing_required_field_is_hard_failure(self):
        broken = make_incident()
        del broken["html_url"]
        client, _ = make_client([httpx.Response(200, json={"incidents": [broken]})])
        with pytest.raises(PagerDutyContractError):
            await client.fetch_incidents("PABC123")
