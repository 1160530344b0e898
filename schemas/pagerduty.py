"""PagerDuty response schema.

Only the fields this service reads are modelled. PagerDuty returns a lot
more; everything else is ignored on validation.

A 2xx response whose body does not validate against these models is an
upstream contract violation, not a transient failure. The PagerDuty client
turns the pydantic ValidationError into a PagerDutyContractError.
"""

from pydantic import BaseModel, Field


class AnalyticsAggregate(BaseModel):
    """One time bucket from the aggregate analytics endpoint.

    Attributes:
        mean_seconds_to_resolve: Mean time to resolve for the bucket, in
            seconds. PagerDuty sends null when nothing was resolved in the
            window; callers treat that as 0.
    """

    mean_seconds_to_resolve: float | None = None


class AnalyticsResponse(BaseModel):
    # An empty array means there is no first bucket to read.
    data: list[AnalyticsAggregate] = Field(min_length=1)


class RawIncident(BaseModel):
    """An incident record as returned by GET /incidents.

    Attributes:
        id: PagerDuty incident id (e.g. "PT4KHLK").
        title: Short incident summary.
        description: Longer description. PagerDuty may send null.
        html_url: Link to the incident in the PagerDuty web UI.
        status: "triggered", "acknowledged" or "resolved".
        last_status_change_at: ISO-8601 timestamp of the last status change.
    """

    id: str
    title: str
    description: str | None = None
    html_url: str
    status: str
    last_status_change_at: str


class IncidentListResponse(BaseModel):
    incidents: list[RawIncident]
