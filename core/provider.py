"""Data provider — the top-level pipeline orchestrator.

DataProvider is the single entry point for answering a Compass data provider
request. It is built once at startup and handles any number of invocations;
each one builds its own response from scratch, so concurrent invocations
share nothing but the secret store.

Pipeline order inside resolve():
    1. Resolve the URL to a PagerDuty service (or skip)
    2. Read the API token (or skip)
    3. Fetch the 28-day MTTR aggregate
    4. Fetch up to 100 incidents
    5. Normalize each incident
    6. Assemble the DataProviderResponse

Steps 3 and 4 run one after the other; an analytics failure means the
incident listing is never requested.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from core.assembler import ResponseAssembler
from core.credentials import read_api_token
from core.normalizer import build_incidents
from core.routing import resolve_service_path
from core.secrets import SecretStore
from schemas.compass import DataProviderResponse
from schemas.result import HardFailure, ProviderOk, ProviderResult, SoftFailure
from sre.integrations.pagerduty import (
    PagerDutyClient,
    PagerDutyContractError,
    PagerDutyUnavailableError,
    seconds_to_minutes,
)

logger = logging.getLogger(__name__)

PagerDutyClientFactory = Callable[[str], PagerDutyClient]


class UpstreamContractError(RuntimeError):
    """PagerDuty returned malformed data. Raised by data_provider()."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DataProvider:
    """Answers Compass data provider requests from PagerDuty data.

    Attributes:
        _secrets: Where the PagerDuty token is read from.
        _client_factory: Builds a PagerDutyClient for a given token. Called
            once per invocation that gets past the credential gate.
        _assembler: Builds the response variants.
        _clock: Returns "now" for the analytics window. Always tz-aware.
    """

    def __init__(
        self,
        secrets: SecretStore,
        client_factory: PagerDutyClientFactory = PagerDutyClient,
        assembler: ResponseAssembler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secrets = secrets
        self._client_factory = client_factory
        self._assembler = assembler or ResponseAssembler()
        self._clock = clock

    async def resolve(self, url: str) -> ProviderResult:
        """Run the pipeline for one link URL.

        Args:
            url: Absolute URL of the link Compass is asking about.

        Returns:
            ProviderOk with either the service response or the "pd:unknown"
            response, SoftFailure when PagerDuty was unavailable, or
            HardFailure when PagerDuty broke its response contract.

        Raises:
            InvalidRequestUrl: If the URL cannot be parsed at all.
        """
        logger.info("Data provider request for %s.", url)

        decision = resolve_service_path(url)
        if not decision.is_service:
            logger.info("Skipping %s: %s.", url, decision.reason)
            return ProviderOk(response=self._assembler.unknown())

        token = await read_api_token(self._secrets)
        if token is None:
            return ProviderOk(response=self._assembler.unknown())

        service_id = decision.service_id
        logger.info("Got service %s.", service_id)

        client = self._client_factory(token)
        try:
            aggregate = await client.fetch_analytics(service_id, self._clock())
            raw_incidents = await client.fetch_incidents(service_id)
        except PagerDutyUnavailableError as exc:
            logger.warning("PagerDuty unavailable for %s (%s): %s", service_id, url, exc)
            return SoftFailure(reason=str(exc), status_code=exc.status_code)
        except PagerDutyContractError as exc:
            logger.error("PagerDuty contract violation for %s (%s): %s", service_id, url, exc)
            return HardFailure(detail=str(exc))

        response = self._assembler.assemble(
            service_id,
            mttr_minutes=seconds_to_minutes(aggregate.mean_seconds_to_resolve),
            incidents=build_incidents(raw_incidents),
        )

        logger.info(
            "Built response for service %s: %d incidents.",
            service_id,
            len(response.incidents),
        )
        return ProviderOk(response=response)

    async def data_provider(self, url: str) -> DataProviderResponse | None:
        """Plain-call form of resolve().

        Returns:
            The built response, or None on soft failure ("try again later").

        Raises:
            UpstreamContractError: On hard failure.
            InvalidRequestUrl: If the URL cannot be parsed at all.
        """
        result = await self.resolve(url)
        if isinstance(result, SoftFailure):
            return None
        if isinstance(result, HardFailure):
            raise UpstreamContractError(result.detail)
        return result.response
