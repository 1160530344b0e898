"""Response assembler.

Turns a routing decision plus the fetched data into the DataProviderResponse
Compass receives. Custom metrics are configuration handed in at construction
time, so two assemblers with different metric sets can live side by side.
"""

from schemas.compass import (
    BuiltinMetricDefinition,
    CustomMetricDefinition,
    DataProviderEventType,
    DataProviderIncidentEvent,
    DataProviderResponse,
    DataProviderResponseBuilder,
)

PROVIDER_PREFIX = "pd"
UNKNOWN_PROVIDER_ID = f"{PROVIDER_PREFIX}:unknown"


def provider_id_for(service_id: str) -> str:
    return f"{PROVIDER_PREFIX}:{service_id}"


class ResponseAssembler:
    """Builds the two response variants the data provider can return.

    Attributes:
        custom_metrics: Custom metric definitions declared on every
            successful response. Their display format is stripped before
            it goes on the wire.
    """

    def __init__(self, custom_metrics: tuple[CustomMetricDefinition, ...] = ()) -> None:
        self.custom_metrics = tuple(custom_metrics)

    def unknown(self) -> DataProviderResponse:
        """The sentinel response for skipped URLs and missing tokens.

        Declares nothing and reports nothing. Built before any network call
        is attempted.
        """
        return DataProviderResponseBuilder(UNKNOWN_PROVIDER_ID).build()

    def assemble(
        self,
        service_id: str,
        mttr_minutes: float,
        incidents: list[DataProviderIncidentEvent],
    ) -> DataProviderResponse:
        """Build the response for a resolved PagerDuty service.

        Args:
            service_id: PagerDuty service id from the routing decision.
            mttr_minutes: Mean time to resolve over the last 28 days, in
                whole minutes.
            incidents: Normalized incident events, in upstream order.

        Returns:
            A frozen DataProviderResponse tagged "pd:<service_id>".
        """
        return (
            self.builder_for(service_id)
            .add_built_in_metric_value(BuiltinMetricDefinition.MTTR_28D, mttr_minutes)
            .add_incidents(incidents)
            .build()
        )

    def builder_for(self, service_id: str) -> DataProviderResponseBuilder:
        return DataProviderResponseBuilder(
            provider_id_for(service_id),
            built_in_metric_definitions=[BuiltinMetricDefinition.MTTR_28D],
            custom_metric_definitions=[m.without_format() for m in self.custom_metrics],
            event_types=[DataProviderEventType.INCIDENTS],
        )
