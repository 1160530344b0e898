"""Runtime configuration.

All configuration comes from environment variables, optionally loaded from a
.env file in the working directory. Settings.from_env() reads them once and
returns a frozen snapshot that the rest of the service is wired from.

Variables:
    FORGE_APP_ID:          Application id sent to Compass on link sync.
    PAGERDUTY_API_BASE:    PagerDuty REST base URL.
    PAGERDUTY_API_TOKEN:   Seeds the in-memory secret store at startup.
    HTTP_TIMEOUT_SECONDS:  Timeout applied to every outbound request.
    SECRET_STORE_PATH:     Use a JSON file secret store at this path.
    CUSTOM_METRICS_PATH:   JSON list of custom metric definitions.
    COMPASS_GRAPHQL_URL:   Compass GraphQL gateway endpoint.
    COMPASS_API_TOKEN:     Bearer token for the Compass gateway.
    LOG_FILE:              Rotating log file path.
    ALLOWED_ORIGINS:       Comma-separated CORS origins.
"""

import json
import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv

from schemas.compass import CustomMetricDefinition

DEFAULT_PAGERDUTY_API_BASE = "https://api.pagerduty.com"
DEFAULT_COMPASS_GRAPHQL_URL = "https://api.atlassian.com/graphql"
DEFAULT_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class Settings:
    """Frozen view of the service configuration.

    Attributes:
        app_id: Application id used when calling the Compass gateway.
            None when FORGE_APP_ID is unset; the gateway will reject the
            sync in that case.
        pagerduty_api_base: Base URL for PagerDuty requests, no trailing slash.
        pagerduty_api_token: Optional token that seeds the secret store.
        http_timeout_seconds: Timeout for every outbound httpx request.
        secret_store_path: File path for the JSON secret store, or None for
            the in-memory store.
        custom_metrics: Custom metric definitions declared on every
            successful response.
        compass_graphql_url: Compass GraphQL endpoint.
        compass_api_token: Bearer token for the Compass gateway.
        log_file: Path of the rotating log file.
        allowed_origins: CORS origins for the HTTP API.
    """

    app_id: str | None = None
    pagerduty_api_base: str = DEFAULT_PAGERDUTY_API_BASE
    pagerduty_api_token: str | None = None
    http_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    secret_store_path: pathlib.Path | None = None
    custom_metrics: tuple[CustomMetricDefinition, ...] = ()
    compass_graphql_url: str = DEFAULT_COMPASS_GRAPHQL_URL
    compass_api_token: str | None = None
    log_file: pathlib.Path = pathlib.Path("pagerduty_compass.log")
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (and .env, if present).

        Raises:
            ValueError: If HTTP_TIMEOUT_SECONDS is not a number, or the
                custom metrics file is not a JSON list of metric definitions.
            OSError: If CUSTOM_METRICS_PATH points at an unreadable file.
        """
        load_dotenv()

        secret_store_path = os.environ.get("SECRET_STORE_PATH")
        custom_metrics_path = os.environ.get("CUSTOM_METRICS_PATH")
        origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000")

        return cls(
            app_id=os.environ.get("FORGE_APP_ID") or None,
            pagerduty_api_base=os.environ.get(
                "PAGERDUTY_API_BASE", DEFAULT_PAGERDUTY_API_BASE
            ).rstrip("/"),
            pagerduty_api_token=os.environ.get("PAGERDUTY_API_TOKEN") or None,
            http_timeout_seconds=float(
                os.environ.get("HTTP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
            ),
            secret_store_path=pathlib.Path(secret_store_path) if secret_store_path else None,
            custom_metrics=(
                load_custom_metrics(pathlib.Path(custom_metrics_path))
                if custom_metrics_path
                else ()
            ),
            compass_graphql_url=os.environ.get(
                "COMPASS_GRAPHQL_URL", DEFAULT_COMPASS_GRAPHQL_URL
            ),
            compass_api_token=os.environ.get("COMPASS_API_TOKEN") or None,
            log_file=pathlib.Path(os.environ.get("LOG_FILE", "pagerduty_compass.log")),
            allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


def load_custom_metrics(path: pathlib.Path) -> tuple[CustomMetricDefinition, ...]:
    """Read custom metric definitions from a JSON file.

    The file holds a list of objects, e.g.:
        [{"name": "deploys", "description": "Deploys per week",
          "format": {"suffix": "deploys"}}]
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of metric definitions.")

    return tuple(CustomMetricDefinition.model_validate(item) for item in raw)
