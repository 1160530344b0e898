"""Sync trigger.

Invoked through a web trigger when someone asks for link associations to be
re-synchronized. The invocation context names the site the app is installed
on as an ARI:

    ari:cloud:compass::site/<site id>

trigger_sync() is a boundary: whatever goes wrong (bad context, gateway
down, unexpected payload) comes back as a 500 WebTriggerResponse and never
as a raised exception.
"""

import json
import logging
from collections.abc import Mapping

from schemas.sync import InstallContext, InvalidContext, ValidContext, WebTriggerResponse
from sre.integrations.compass import CompassGateway

logger = logging.getLogger(__name__)

SITE_ARI_PREFIX = "ari:cloud:compass::site/"
INSTALL_CONTEXT_FIELD = "installContext"


class InvalidContextError(ValueError):
    """The invocation context does not identify an installation site."""


def parse_install_context(context: object) -> InstallContext:
    """Validate an untyped invocation context.

    Returns:
        ValidContext(site_id) when the context is a mapping whose
        installContext is a string of the form
        "ari:cloud:compass::site/<site id>", InvalidContext(reason) otherwise.
    """
    if not isinstance(context, Mapping):
        return InvalidContext(reason="Invalid context.")

    install_context = context.get(INSTALL_CONTEXT_FIELD)
    if not isinstance(install_context, str):
        return InvalidContext(
            reason="Missing installation information (installContext) from context."
        )

    if not install_context.startswith(SITE_ARI_PREFIX):
        return InvalidContext(reason=f"Got invalid site id: {install_context}")

    return ValidContext(site_id=install_context.removeprefix(SITE_ARI_PREFIX))


def get_site_id(context: object) -> str:
    """Return the site id from the context, or raise InvalidContextError."""
    parsed = parse_install_context(context)
    if isinstance(parsed, InvalidContext):
        raise InvalidContextError(parsed.reason)
    return parsed.site_id


async def trigger_sync(
    context: object, gateway: CompassGateway, app_id: str | None
) -> WebTriggerResponse:
    """Synchronize link associations for the site named in the context.

    Args:
        context: Raw invocation context.
        gateway: Compass gateway to call.
        app_id: This application's id, from FORGE_APP_ID.

    Returns:
        200 with the JSON sync result when Compass reports success, 500 with
        the same body shape when it does not, and 500 with a serialized error
        when anything raises along the way.
    """
    try:
        site_id = get_site_id(context)
        result = await gateway.synchronize_link_associations(site_id, app_id)
    except Exception as exc:
        logger.error("Link sync trigger failed: %s", exc)
        return WebTriggerResponse(
            body=f"{json.dumps({'error': type(exc).__name__, 'message': str(exc)})}\n",
            status_code=500,
        )

    if not result.success:
        logger.warning("Compass reported unsuccessful link sync for site %s.", site_id)

    return WebTriggerResponse(
        body=f"{result.model_dump_json()}\n",
        headers={"Content-Type": ["application/json"]},
        status_code=200 if result.success else 500,
        status_text="OK" if result.success else "Server Error",
    )
