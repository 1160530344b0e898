"""Builds the service's collaborators from Settings.

Shared by the HTTP server (main.py) and the CLI so both wire things the
same way.
"""

from core.assembler import ResponseAssembler
from core.config import Settings
from core.provider import DataProvider
from core.secrets import API_TOKEN_KEY, FileSecretStore, InMemorySecretStore, SecretStore
from sre.integrations.compass import GraphQLCompassGateway
from sre.integrations.pagerduty import PagerDutyClient


def build_secret_store(settings: Settings) -> SecretStore:
    """A file store when SECRET_STORE_PATH is set, otherwise an in-memory
    store seeded with PAGERDUTY_API_TOKEN (if present)."""
    if settings.secret_store_path is not None:
        return FileSecretStore(settings.secret_store_path)
    initial = {API_TOKEN_KEY: settings.pagerduty_api_token} if settings.pagerduty_api_token else {}
    return InMemorySecretStore(initial)


def build_data_provider(settings: Settings, secrets: SecretStore) -> DataProvider:
    return DataProvider(
        secrets=secrets,
        client_factory=lambda token: PagerDutyClient(
            token,
            base_url=settings.pagerduty_api_base,
            timeout=settings.http_timeout_seconds,
        ),
        assembler=ResponseAssembler(custom_metrics=settings.custom_metrics),
    )


def build_compass_gateway(settings: Settings) -> GraphQLCompassGateway:
    return GraphQLCompassGateway(
        endpoint=settings.compass_graphql_url,
        token=settings.compass_api_token,
        timeout=settings.http_timeout_seconds,
    )
