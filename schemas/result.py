"""Result schemas.

A data provider invocation ends in exactly one of three ways, and the caller
has to treat each one differently:

    ProviderOk:   a built DataProviderResponse (possibly the "pd:unknown"
                  response when there was nothing to fetch).
    SoftFailure:  PagerDuty was unreachable or returned a non-2xx status.
                  Compass should try again later.
    HardFailure:  PagerDuty returned 2xx with a body that breaks its own
                  contract. Retrying blindly will not help.

DataProvider.resolve() returns one of these. DataProvider.data_provider()
maps them onto the plain-call contract (response / None / raise).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from schemas.compass import DataProviderResponse


class ProviderOk(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ok"] = "ok"
    response: DataProviderResponse


class SoftFailure(BaseModel):
    """Upstream temporarily unavailable.

    Attributes:
        reason: Short description of what failed, for logs and the CLI.
        status_code: HTTP status PagerDuty returned, or None when the
            request never got a response (timeout, connection error).
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["soft_failure"] = "soft_failure"
    reason: str
    status_code: int | None = None


class HardFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["hard_failure"] = "hard_failure"
    detail: str


ProviderResult = ProviderOk | SoftFailure | HardFailure
