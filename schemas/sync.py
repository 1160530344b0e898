"""Sync trigger schema.

Types for the link-association sync flow: the validated install context,
the result Compass returns, and the web-trigger style response handed back
to whoever invoked the trigger.
"""

from pydantic import BaseModel, ConfigDict, Field


class ValidContext(BaseModel):
    """Install context that passed validation.

    Attributes:
        site_id: Cloud/site id extracted from
            "ari:cloud:compass::site/<site_id>".
    """

    model_config = ConfigDict(frozen=True)

    site_id: str


class InvalidContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


InstallContext = ValidContext | InvalidContext


class SyncResult(BaseModel):
    """Outcome of synchronizeLinkAssociations.

    Attributes:
        success: Whether Compass reported the sync as successful.
        errors: Error objects from the gateway, usually {"message": ...}.
        data: Opaque payload from the gateway, passed through untouched.
    """

    success: bool
    errors: list[dict] = []
    data: dict | None = None


class WebTriggerResponse(BaseModel):
    """HTTP-style result of the sync trigger.

    Header values are lists because web triggers allow repeated headers.
    """

    model_config = ConfigDict(populate_by_name=True)

    body: str
    headers: dict[str, list[str]] | None = None
    status_code: int = Field(alias="statusCode")
    status_text: str | None = Field(default=None, alias="statusText")
