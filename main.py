"""PagerDuty for Compass — HTTP entry point.

This file exposes the operations Compass and the app's admins invoke:

1. Data provider: Compass posts the URL of a component link, we answer
   with MTTR and incidents for the PagerDuty service behind it.

2. Data provider callback: Compass reports whether it could apply the
   data we returned. Failures are logged.

3. Sync trigger: a web trigger that asks Compass to re-sync link
   associations for the installed site.

4. Settings: store the PagerDuty API token, show the sync trigger URL.

Flow for a data provider request:
    POST /data-provider {"url": ...}
        → resolve URL to a service (or return "pd:unknown")
        → read API token (or return "pd:unknown")
        → fetch analytics, then incidents
        → 200 + response JSON
        → 200 + null on soft failure (PagerDuty unavailable, try later)
        → 502 on hard failure (PagerDuty returned malformed data)

Run locally:
    uv run uvicorn main:app --reload
"""

import logging
import logging.handlers
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from core.bootstrap import build_compass_gateway, build_data_provider, build_secret_store
from core.config import Settings
from core.provider import DataProvider, UpstreamContractError
from core.routing import InvalidRequestUrl
from core.secrets import API_TOKEN_KEY, SecretStore
from core.sync import trigger_sync
from schemas.compass import DataProviderResponse
from sre.integrations.compass import CompassGateway

settings = Settings.from_env()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    settings.log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="PagerDuty for Compass")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

_secret_store = build_secret_store(settings)
_data_provider = build_data_provider(settings, _secret_store)
_compass_gateway = build_compass_gateway(settings)


def get_secret_store() -> SecretStore:
    return _secret_store


def get_data_provider() -> DataProvider:
    return _data_provider


def get_compass_gateway() -> CompassGateway:
    return _compass_gateway


def get_app_id() -> str | None:
    return settings.app_id

# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class DataProviderRequest(BaseModel):
    """Body Compass posts to the data provider.

    Attributes:
        url: The component link URL to answer for.
        context: Opaque invocation context. Accepted and ignored; the data
            provider does not depend on it.
    """
    url: str
    context: Any = None


class DataProviderCallback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    url: str
    error_message: str | None = Field(default=None, alias="errorMessage")


class SyncTriggerRequest(BaseModel):
    # Validated by core.sync.parse_install_context.
    context: Any = None


class ApiTokenUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_token: str = Field(alias="apiToken", min_length=1)

# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}

# ---------------------------------------------------------------------------
# Data provider
# ---------------------------------------------------------------------------

@app.post("/data-provider", response_model=DataProviderResponse | None)
async def data_provider(
    body: DataProviderRequest,
    provider: DataProvider = Depends(get_data_provider),
):
    """Answer one Compass data provider request.

    A null body means PagerDuty was unavailable and Compass should try again
    later. A 502 means PagerDuty answered with data we cannot read.
    """
    try:
        return await provider.data_provider(body.url)
    except InvalidRequestUrl as exc:
        logger.error("Rejected data provider request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except UpstreamContractError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@app.post("/data-provider/callback")
async def data_provider_callback(body: DataProviderCallback):
    """Receive Compass's verdict on a previous data provider response."""
    if not body.success:
        logger.error(
            "Compass failed to apply data for %s: %s",
            body.url,
            body.error_message or "no error message",
        )
    return {"status": "received"}

# ---------------------------------------------------------------------------
# Sync trigger
# ---------------------------------------------------------------------------

@app.post("/webtrigger/trigger-sync")
async def sync_trigger(
    body: SyncTriggerRequest,
    gateway: CompassGateway = Depends(get_compass_gateway),
    app_id: str | None = Depends(get_app_id),
) -> Response:
    """Re-sync link associations for the site named in the context.

    Always answers with the status trigger_sync() chose; never a raw 500
    from an unhandled exception.
    """
    result = await trigger_sync(body.context, gateway, app_id)
    headers = {name: ", ".join(values) for name, values in (result.headers or {}).items()}
    return Response(content=result.body, status_code=result.status_code, headers=headers)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@app.put("/settings/api-token", status_code=204)
async def set_api_token(
    body: ApiTokenUpdate,
    secrets: SecretStore = Depends(get_secret_store),
) -> Response:
    """Store the PagerDuty API token. The token is never echoed back."""
    await secrets.set_secret(API_TOKEN_KEY, body.api_token)
    logger.info("PagerDuty API token updated.")
    return Response(status_code=204)


@app.get("/settings/webhook-url")
def get_webhook_url(request: Request):
    """Return the absolute URL of the sync trigger, for pasting into PagerDuty."""
    return {"url": str(request.url_for("sync_trigger"))}
