"""Compass data provider schema.

Defines the shapes Compass expects back from a data provider: metric
definitions, metric values, incident events, and the assembled
DataProviderResponse. All field names serialize in camelCase because that is
what Compass reads on the wire.

Responses are put together with DataProviderResponseBuilder and are frozen
once built. Nothing downstream is allowed to edit a response after build().
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CompassModel(BaseModel):
    """Base for every Compass-facing model.

    Accepts snake_case or camelCase on input, emits camelCase when dumped
    with by_alias=True (FastAPI does this for response models).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class BuiltinMetricDefinition(str, Enum):
    """Built-in Compass metrics this provider can report.

    Only one is declared today: mean time to resolve over a trailing
    28-day window, reported in minutes.
    """

    MTTR_28D = "MTTR_28D"


class DataProviderEventType(str, Enum):
    INCIDENTS = "INCIDENTS"


class IncidentEventState(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class MetricFormat(CompassModel):
    suffix: str


class CustomMetricDefinition(CompassModel):
    """A custom metric this provider declares to Compass.

    Custom metrics are configuration, handed to the ResponseAssembler at
    construction time. The format is a display hint used when the metric is
    created in Compass; it is never sent back in a data provider response.

    Attributes:
        name: Metric name, unique per provider. Also the key used when
            reporting a value for the metric.
        description: Optional human-readable description.
        format: Optional display format (e.g. {"suffix": "deploys"}).
    """

    name: str
    description: str | None = None
    format: MetricFormat | None = None

    def without_format(self) -> "CustomMetricDeclaration":
        return CustomMetricDeclaration(name=self.name, description=self.description)


class CustomMetricDeclaration(CompassModel):
    name: str
    description: str | None = None


class MetricValue(CompassModel):
    """One reported metric value.

    Attributes:
        metric_definition: Built-in metric id (e.g. "MTTR_28D") or the name
            of a declared custom metric.
        value: The measured value.
        built_in: True for built-in metrics, False for custom ones.
    """

    metric_definition: str
    value: float
    built_in: bool = True


class DataProviderIncidentEvent(CompassModel):
    """A single incident, normalized for Compass.

    Attributes:
        id: Upstream incident id.
        display_name: Incident title.
        description: Incident description. May be None upstream.
        url: Link back to the incident in PagerDuty.
        state: OPEN or RESOLVED.
        last_updated: Timestamp of the last upstream status change, passed
            through as the ISO-8601 string PagerDuty sent.
        update_sequence_number: Always "0". No incremental versioning is
            tracked, every call sends the full snapshot.
    """

    id: str
    display_name: str
    description: str | None = None
    url: str
    state: IncidentEventState
    last_updated: str
    update_sequence_number: str = "0"


class DataProviderResponse(CompassModel):
    """The payload returned to Compass for one data provider invocation.

    provider_id is either "pd:unknown" (route did not match, or no token is
    configured) or "pd:<service id>".
    """

    provider_id: str
    built_in_metric_definitions: list[BuiltinMetricDefinition] = []
    custom_metric_definitions: list[CustomMetricDeclaration] = []
    event_types: list[DataProviderEventType] = []
    metric_values: list[MetricValue] = []
    incidents: list[DataProviderIncidentEvent] = []


class DataProviderResponseBuilder:
    """Accumulates metric values and incidents, then builds a frozen response.

    The declared configuration (built-in definitions, custom definitions and
    event types) is fixed at construction. Values may only be added for
    metrics that were declared; anything else is a programming error.

    Example:
        response = (
            DataProviderResponseBuilder(
                "pd:P123",
                built_in_metric_definitions=[BuiltinMetricDefinition.MTTR_28D],
                event_types=[DataProviderEventType.INCIDENTS],
            )
            .add_built_in_metric_value(BuiltinMetricDefinition.MTTR_28D, 30)
            .add_incidents(incidents)
            .build()
        )
    """

    def __init__(
        self,
        provider_id: str,
        built_in_metric_definitions: list[BuiltinMetricDefinition] | None = None,
        custom_metric_definitions: list[CustomMetricDeclaration] | None = None,
        event_types: list[DataProviderEventType] | None = None,
    ) -> None:
        self._provider_id = provider_id
        self._built_in = list(built_in_metric_definitions or [])
        self._custom = list(custom_metric_definitions or [])
        self._event_types = list(event_types or [])
        self._metric_values: list[MetricValue] = []
        self._incidents: list[DataProviderIncidentEvent] = []

    def add_built_in_metric_value(
        self, metric: BuiltinMetricDefinition, value: float
    ) -> "DataProviderResponseBuilder":
        """Record a value for a declared built-in metric.

        Raises:
            ValueError: If the metric was not declared on this builder.
        """
        if metric not in self._built_in:
            raise ValueError(f"Built-in metric '{metric.value}' was not declared.")
        self._metric_values.append(
            MetricValue(metric_definition=metric.value, value=value, built_in=True)
        )
        return self

    def add_custom_metric_value(self, name: str, value: float) -> "DataProviderResponseBuilder":
        """Record a value for a declared custom metric, keyed by name.

        Raises:
            ValueError: If no custom metric with that name was declared.
        """
        if name not in {metric.name for metric in self._custom}:
            raise ValueError(f"Custom metric '{name}' was not declared.")
        self._metric_values.append(
            MetricValue(metric_definition=name, value=value, built_in=False)
        )
        return self

    def add_incidents(
        self, incidents: list[DataProviderIncidentEvent]
    ) -> "DataProviderResponseBuilder":
        if incidents and DataProviderEventType.INCIDENTS not in self._event_types:
            raise ValueError("Incidents added without declaring the INCIDENTS event type.")
        self._incidents.extend(incidents)
        return self

    def build(self) -> DataProviderResponse:
        return DataProviderResponse(
            provider_id=self._provider_id,
            built_in_metric_definitions=list(self._built_in),
            custom_metric_definitions=list(self._custom),
            event_types=list(self._event_types),
            metric_values=list(self._metric_values),
            incidents=list(self._incidents),
        )
