"""Compass gateway client.

The sync trigger needs exactly one Compass operation:
synchronizeLinkAssociations, which asks Compass to re-scan component links
that point at this provider. CompassGateway is the interface; the GraphQL
implementation talks to the Atlassian GraphQL gateway over httpx.

Compass GraphQL reference:
https://developer.atlassian.com/cloud/compass/graphql/
"""

import logging
from abc import ABC, abstractmethod

import httpx

from schemas.sync import SyncResult

logger = logging.getLogger(__name__)

COMPASS_GRAPHQL_URL = "https://api.atlassian.com/graphql"

SYNCHRONIZE_LINK_ASSOCIATIONS = """
mutation synchronizeLinkAssociations($input: CompassSynchronizeLinkAssociationsInput!) {
  compass {
    synchronizeLinkAssociations(input: $input) {
      success
      errors {
        message
      }
    }
  }
}
"""


class CompassGatewayError(RuntimeError):
    """The Compass gateway could not be reached or gave an unusable answer."""


class CompassGateway(ABC):
    """Abstract Compass gateway.

    The sync trigger depends only on this interface. Tests supply a stub.
    """

    @abstractmethod
    async def synchronize_link_associations(
        self, cloud_id: str, app_id: str | None
    ) -> SyncResult:
        """Ask Compass to re-sync link associations for one site.

        Args:
            cloud_id: Site id the app is installed on.
            app_id: Id of this application, from FORGE_APP_ID.

        Returns:
            SyncResult with the success flag Compass reported.
        """
        ...


class GraphQLCompassGateway(CompassGateway):
    """CompassGateway backed by the Atlassian GraphQL API.

    Attributes:
        endpoint: GraphQL endpoint URL.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        endpoint: str = COMPASS_GRAPHQL_URL,
        token: str | None = None,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._token = token
        self._http_client = http_client

    async def synchronize_link_associations(
        self, cloud_id: str, app_id: str | None
    ) -> SyncResult:
        """Run the synchronizeLinkAssociations mutation.

        GraphQL-level errors come back as an unsuccessful SyncResult, the same
        as Compass reporting success=false.

        Raises:
            CompassGatewayError: Transport failure, non-2xx HTTP status, or a
                body that is not a JSON object.
        """
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        body = {
            "query": SYNCHRONIZE_LINK_ASSOCIATIONS,
            "variables": {"input": {"cloudId": cloud_id, "forgeAppId": app_id}},
        }

        logger.info("Synchronizing link associations for site %s.", cloud_id)
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.endpoint, headers=headers, json=body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, headers=headers, json=body)
        except httpx.TransportError as exc:
            raise CompassGatewayError(f"Compass gateway unreachable: {exc}") from exc

        if not response.is_success:
            raise CompassGatewayError(
                f"Compass gateway returned HTTP {response.status_code}."
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise CompassGatewayError("Compass gateway returned a non-JSON body.") from exc
        if not isinstance(payload, dict):
            raise CompassGatewayError("Compass gateway returned a non-object JSON body.")

        graphql_errors = payload.get("errors") or []
        compass = (payload.get("data") or {}).get("compass") or {}
        result = compass.get("synchronizeLinkAssociations")

        if graphql_errors or result is None:
            logger.error("Link sync failed for site %s: %s", cloud_id, graphql_errors)
            return SyncResult(success=False, errors=graphql_errors, data=payload.get("data"))

        return SyncResult(
            success=bool(result.get("success")),
            errors=result.get("errors") or [],
            data=payload.get("data"),
        )
