"""PagerDuty integration client.

Responsible for the two upstream calls the data provider makes:
1. Aggregate analytics: mean time to resolve over the last 28 days
2. Incident listing: up to 100 incidents for the service

Both calls split failures into two kinds, and callers must keep them apart:

- PagerDutyUnavailableError: non-2xx status or no response at all. PagerDuty
  is down, rate limiting us, or the token was revoked. Try again later.
- PagerDutyContractError: 2xx with a body that does not match the documented
  shape. Something changed upstream; retrying will not fix it.

No retries are made here. Every failure surfaces on first occurrence.

PagerDuty API reference: https://developer.pagerduty.com/api-reference/
"""

import contextlib
import logging
import math
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import httpx
from pydantic import ValidationError

from schemas.pagerduty import AnalyticsAggregate, AnalyticsResponse, IncidentListResponse, RawIncident

logger = logging.getLogger(__name__)

PAGERDUTY_API_BASE = "https://api.pagerduty.com"
PAGERDUTY_ACCEPT = "application/vnd.pagerduty+json;version=2"
ANALYTICS_EARLY_ACCESS = "analytics-v2"

ANALYTICS_WINDOW = timedelta(days=28)
ANALYTICS_URGENCY = "high"
ANALYTICS_AGGREGATE_UNIT = "month"
INCIDENT_PAGE_LIMIT = 100

# How much of a failing response body ends up in the logs.
_LOG_BODY_LIMIT = 500


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PagerDutyError(Exception):
    """Base class for PagerDuty client failures."""


class PagerDutyUnavailableError(PagerDutyError):
    """PagerDuty did not give a usable answer this time.

    Attributes:
        status_code: HTTP status returned, or None if the request failed
            before a response arrived.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PagerDutyContractError(PagerDutyError):
    """PagerDuty answered 2xx with a body that breaks its documented shape."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def format_timestamp(moment: datetime) -> str:
    """Format a datetime the way the analytics filters expect.

    Always UTC, second precision, with a literal Z suffix
    (e.g. "2024-11-15T09:30:00Z"). Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def seconds_to_minutes(seconds: float | None) -> int:
    """Convert a duration in seconds to whole minutes, truncating.

    None counts as 0, which is what PagerDuty sends for a window with no
    resolved incidents.
    """
    return math.trunc((seconds or 0) / 60)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class PagerDutyClient:
    """Async client for the two PagerDuty endpoints the provider needs.

    A new client is created per data provider invocation, bound to the token
    read for that invocation. Tests pass an httpx.AsyncClient built on
    httpx.MockTransport; in production the client opens its own connection
    per call.

    Attributes:
        base_url: PagerDuty REST base URL, without trailing slash.
        timeout: Timeout in seconds for each request.
    """

    def __init__(
        self,
        token: str,
        base_url: str = PAGERDUTY_API_BASE,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": PAGERDUTY_ACCEPT,
            "Authorization": f"Token token={self._token}",
        }

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def fetch_analytics(self, service_id: str, now: datetime) -> AnalyticsAggregate:
        """Fetch the high-urgency MTTR aggregate for the trailing 28 days.

        Args:
            service_id: PagerDuty service id to filter on.
            now: End of the window. The start is now - 28 days.

        Returns:
            The first aggregate bucket returned by PagerDuty.

        Raises:
            PagerDutyUnavailableError: Non-2xx status or transport failure.
            PagerDutyContractError: 2xx but the body has no non-empty data
                array of aggregates.
        """
        body = {
            "filters": {
                "created_at_start": format_timestamp(now - ANALYTICS_WINDOW),
                "created_at_end": format_timestamp(now),
                "service_ids": [service_id],
                "urgency": ANALYTICS_URGENCY,
            },
            "aggregate_unit": ANALYTICS_AGGREGATE_UNIT,
        }
        headers = {**self._headers(), "X-EARLY-ACCESS": ANALYTICS_EARLY_ACCESS}

        logger.info("Fetching PagerDuty analytics for service %s.", service_id)
        payload = await self._request(
            "POST",
            f"{self.base_url}/analytics/metrics/incidents/services",
            what=f"analytics for {service_id}",
            headers=headers,
            json=body,
        )

        try:
            analytics = AnalyticsResponse.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Invalid analytics payload for %s: %s", service_id, payload)
            raise PagerDutyContractError(
                "Got invalid response when trying to get analytics data for service."
            ) from exc

        return analytics.data[0]

    async def fetch_incidents(self, service_id: str) -> list[RawIncident]:
        """List up to 100 incidents for the service, in PagerDuty's order.

        Raises:
            PagerDutyUnavailableError: Non-2xx status or transport failure.
            PagerDutyContractError: 2xx but the body has no incidents array,
                or an incident is missing a required field.
        """
        logger.info("Fetching PagerDuty incidents for service %s.", service_id)
        payload = await self._request(
            "GET",
            f"{self.base_url}/incidents",
            what=f"incidents for {service_id}",
            headers=self._headers(),
            params={"limit": INCIDENT_PAGE_LIMIT, "service_ids[]": service_id},
        )

        try:
            listing = IncidentListResponse.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Invalid incidents payload for %s: %s", service_id, payload)
            raise PagerDutyContractError(
                "Got invalid response when trying to get incidents data for service."
            ) from exc

        logger.info("Got %d incidents for service %s.", len(listing.incidents), service_id)
        return listing.incidents

    async def _request(self, method: str, url: str, what: str, **kwargs) -> object:
        """Send one request and return the decoded JSON body.

        Raises:
            PagerDutyUnavailableError: On transport errors and non-2xx codes.
            PagerDutyContractError: If a 2xx body is not valid JSON.
        """
        try:
            async with self._session() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Failed to get %s: %s", what, exc)
            raise PagerDutyUnavailableError(f"Failed to get {what}: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Failed to get %s: HTTP %d %s",
                what,
                response.status_code,
                response.text[:_LOG_BODY_LIMIT],
            )
            raise PagerDutyUnavailableError(
                f"Failed to get {what}: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Non-JSON body for %s: %s", what, response.text[:_LOG_BODY_LIMIT])
            raise PagerDutyContractError(f"Got a non-JSON response for {what}.") from exc
