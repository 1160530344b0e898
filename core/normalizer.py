"""Incident normalizer: PagerDuty incident to Compass incident event."""

from schemas.compass import DataProviderIncidentEvent, IncidentEventState
from schemas.pagerduty import RawIncident

RESOLVED_STATUS = "resolved"


def build_incident(incident: RawIncident) -> DataProviderIncidentEvent:
    """Map one PagerDuty incident onto the Compass incident event shape.

    Only "resolved" maps to RESOLVED. "triggered", "acknowledged" and any
    status PagerDuty adds later are all still open from Compass's view.
    """
    state = (
        IncidentEventState.RESOLVED
        if incident.status == RESOLVED_STATUS
        else IncidentEventState.OPEN
    )
    return DataProviderIncidentEvent(
        id=incident.id,
        display_name=incident.title,
        description=incident.description,
        url=incident.html_url,
        state=state,
        last_updated=incident.last_status_change_at,
        update_sequence_number="0",
    )


def build_incidents(incidents: list[RawIncident]) -> list[DataProviderIncidentEvent]:
    # Upstream order is kept; no dedup, every call is a full snapshot.
    return [build_incident(incident) for incident in incidents]
