"""Tests for the sync trigger and the Compass gateway client.

Context validation is tested as a pure function. trigger_sync() runs against
stub gateways; GraphQLCompassGateway runs against httpx.MockTransport.
"""

import json

import httpx
import pytest

from core.sync import InvalidContextError, get_site_id, parse_install_context, trigger_sync
from schemas.sync import InvalidContext, SyncResult, ValidContext
from sre.integrations.compass import CompassGateway, CompassGatewayError, GraphQLCompassGateway

VALID_CONTEXT = {"installContext": "ari:cloud:compass::site/ABC"}


# ── Helpers ───────────────────────────────────────────────────────────────────

class StubGateway(CompassGateway):
    """Records calls and answers with a fixed result, or raises."""

    def __init__(self, result: SyncResult | None = None, error: Exception | None = None):
        self.result = result or SyncResult(success=True)
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def synchronize_link_associations(self, cloud_id, app_id):
        self.calls.append((cloud_id, app_id))
        if self.error is not None:
            raise self.error
        return self.result


def make_gateway(payload: dict, status: int = 200):
    return make_raw_gateway(lambda: httpx.Response(status, json=payload))


def make_raw_gateway(respond):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return respond()

    gateway = GraphQLCompassGateway(
        endpoint="https://gateway.example.test/graphql",
        token="compass-token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return gateway, requests


# ── parse_install_context / get_site_id ───────────────────────────────────────

class TestParseInstallContext:
    def test_extracts_site_id(self):
        assert parse_install_context(VALID_CONTEXT) == ValidContext(site_id="ABC")
        assert get_site_id(VALID_CONTEXT) == "ABC"

    def test_extra_context_fields_are_ignored(self):
        context = {**VALID_CONTEXT, "principal": {"accountId": "123"}}
        assert get_site_id(context) == "ABC"

    @pytest.mark.parametrize("context", [None, "ari:cloud:compass::site/ABC", 42, ["installContext"]])
    def test_non_mapping_context_is_invalid(self, context):
        assert parse_install_context(context) == InvalidContext(reason="Invalid context.")

    @pytest.mark.parametrize("context", [{}, {"installContext": None}, {"installContext": 7}])
    def test_missing_install_context_is_invalid(self, context):
        parsed = parse_install_context(context)
        assert isinstance(parsed, InvalidContext)
        assert "installContext" in parsed.reason

    @pytest.mark.parametrize("value", [
        "ari:cloud:jira::site/ABC",
        "site/ABC",
        "",
    ])
    def test_wrong_prefix_is_invalid(self, value):
        parsed = parse_install_context({"installContext": value})
        assert isinstance(parsed, InvalidContext)
        assert parsed.reason.startswith("Got invalid site id")

    def test_get_site_id_raises_on_invalid_context(self):
        with pytest.raises(InvalidContextError, match="installContext"):
            get_site_id({"other": "value"})


# ── trigger_sync ──────────────────────────────────────────────────────────────

class TestTriggerSync:
    async def test_success_returns_200(self):
        gateway = StubGateway(SyncResult(success=True, data={"ok": 1}))
        response = await trigger_sync(VALID_CONTEXT, gateway, "app-1")

        assert response.status_code == 200
        assert response.status_text == "OK"
        assert response.headers == {"Content-Type": ["application/json"]}
        assert response.body.endswith("\n")
        assert json.loads(response.body) == {"success": True, "errors": [], "data": {"ok": 1}}
        assert gateway.calls == [("ABC", "app-1")]

    async def test_unsuccessful_sync_returns_500_with_same_body_shape(self):
        gateway = StubGateway(SyncResult(success=False, errors=[{"message": "nope"}]))
        response = await trigger_sync(VALID_CONTEXT, gateway, "app-1")

        assert response.status_code == 500
        assert response.status_text == "Server Error"
        assert json.loads(response.body)["errors"] == [{"message": "nope"}]

    async def test_invalid_context_returns_500_without_calling_gateway(self):
        gateway = StubGateway()
        response = await trigger_sync({"installContext": "ari:cloud:jira::site/ABC"}, gateway, "app-1")

        assert response.status_code == 500
        assert json.loads(response.body)["error"] == "InvalidContextError"
        assert gateway.calls == []

    async def test_missing_context_returns_500(self):
        response = await trigger_sync(None, StubGateway(), "app-1")
        assert response.status_code == 500

    async def test_gateway_exception_is_converted_to_500(self):
        gateway = StubGateway(error=CompassGatewayError("Compass gateway returned HTTP 503."))
        response = await trigger_sync(VALID_CONTEXT, gateway, "app-1")

        body = json.loads(response.body)
        assert response.status_code == 500
        assert body == {
            "error": "CompassGatewayError",
            "message": "Compass gateway returned HTTP 503.",
        }


# ── GraphQLCompassGateway ─────────────────────────────────────────────────────

class TestGraphQLCompassGateway:
    async def test_sends_mutation_with_site_and_app_id(self):
        gateway, requests = make_gateway({
            "data": {"compass": {"synchronizeLinkAssociations": {"success": True, "errors": []}}},
        })
        result = await gateway.synchronize_link_associations("ABC", "app-1")

        assert result.success is True
        body = json.loads(requests[0].content)
        assert "synchronizeLinkAssociations" in body["query"]
        assert body["variables"] == {"input": {"cloudId": "ABC", "forgeAppId": "app-1"}}
        assert requests[0].headers["Authorization"] == "Bearer compass-token"

    async def test_reported_failure_is_unsuccessful(self):
        gateway, _ = make_gateway({
            "data": {"compass": {"synchronizeLinkAssociations": {
                "success": False, "errors": [{"message": "Link not found"}],
            }}},
        })
        result = await gateway.synchronize_link_associations("ABC", "app-1")
        assert result.success is False
        assert result.errors == [{"message": "Link not found"}]

    async def test_graphql_errors_are_unsuccessful(self):
        gateway, _ = make_gateway({"data": None, "errors": [{"message": "Unauthorized"}]})
        result = await gateway.synchronize_link_associations("ABC", None)
        assert result.success is False
        assert result.errors == [{"message": "Unauthorized"}]

    async def test_http_error_raises(self):
        gateway, _ = make_gateway({"message": "down"}, status=503)
        with pytest.raises(CompassGatewayError):
            await gateway.synchronize_link_associations("ABC", "app-1")

    @pytest.mark.parametrize("respond", [
        lambda: httpx.Response(200, text="<html>maintenance</html>"),
        lambda: httpx.Response(200, json=["not", "an", "object"]),
        lambda: httpx.Response(200, text="null"),
    ])
    async def test_unreadable_body_raises(self, respond):
        gateway, _ = make_raw_gateway(respond)
        with pytest.raises(CompassGatewayError):
            await gateway.synchronize_link_associations("ABC", "app-1")

    async def test_unreadable_body_becomes_500_at_the_trigger(self):
        gateway, _ = make_raw_gateway(lambda: httpx.Response(200, text="oops"))
        result = await trigger_sync(VALID_CONTEXT, gateway, "app-1")
        assert result.status_code == 500
        assert json.loads(result.body)["error"] == "CompassGatewayError"
