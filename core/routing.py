"""Service path resolver.

Compass calls the data provider with the URL of whatever link a user
attached to a component. Only PagerDuty service-directory links are ours to
answer:

    https://acme.pagerduty.com/service-directory/PABC123
                               ^ root            ^ service id

Every other URL resolves to a skip decision, and the pipeline answers it
with the "pd:unknown" response without touching the network.
"""

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

SERVICE_DIRECTORY_ROOT = "service-directory"

# Web schemes that cannot be parsed without a host. Others (file:, urn:,
# mailto:) are valid hostless URLs and just go through the path check.
HOST_REQUIRED_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})


class InvalidRequestUrl(ValueError):
    """Raised when the inbound URL cannot be parsed as an absolute URL."""


@dataclass(frozen=True)
class RoutingDecision:
    """Where one data provider invocation should go.

    Attributes:
        kind: "service" when the URL names a PagerDuty service, else "skip".
        service_id: The PagerDuty service id. Only set when kind="service".
        reason: Why the URL was skipped, for logging. Only set when
            kind="skip".
    """

    kind: Literal["skip", "service"]
    service_id: str | None = None
    reason: str | None = None

    @classmethod
    def skip(cls, reason: str) -> "RoutingDecision":
        return cls(kind="skip", reason=reason)

    @classmethod
    def service(cls, service_id: str) -> "RoutingDecision":
        return cls(kind="service", service_id=service_id)

    @property
    def is_service(self) -> bool:
        return self.kind == "service"


def resolve_service_path(url: str) -> RoutingDecision:
    """Turn an inbound link URL into a routing decision.

    The path is split on "/" after its leading separator; the first segment
    must be "service-directory" and the second a non-empty service id.
    Anything after the service id is ignored.

    Args:
        url: Absolute URL of the link Compass asked about.

    Returns:
        RoutingDecision.service(id) for service-directory links,
        RoutingDecision.skip(reason) for everything else.

    Raises:
        InvalidRequestUrl: If the URL has no scheme, is a web URL with no
            host, or is otherwise unparseable. There is nothing sensible to
            answer in that case.
    """
    try:
        parsed = urlsplit(url)
    except ValueError as exc:
        raise InvalidRequestUrl(f"Could not parse URL {url!r}: {exc}") from exc

    if not parsed.scheme:
        raise InvalidRequestUrl(f"Expected an absolute URL, got {url!r}.")
    if parsed.scheme.lower() in HOST_REQUIRED_SCHEMES and not parsed.hostname:
        raise InvalidRequestUrl(f"Expected a host in {url!r}.")

    segments = parsed.path[1:].split("/")
    root = segments[0]
    service = segments[1] if len(segments) > 1 else ""

    if root != SERVICE_DIRECTORY_ROOT:
        return RoutingDecision.skip("not a service directory path")
    if not service:
        return RoutingDecision.skip("missing service id")

    return RoutingDecision.service(service)
