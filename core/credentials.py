"""Credential gate.

A missing PagerDuty token is a normal operating state (the app is installed
but nobody has pasted a token yet), not an error. The gate reports it with a
warning and lets the pipeline fall back to the "pd:unknown" response.
"""

import logging

from core.secrets import API_TOKEN_KEY, SecretStore

logger = logging.getLogger(__name__)


async def read_api_token(store: SecretStore) -> str | None:
    """Return the configured PagerDuty token, or None if it is unset.

    Empty strings count as unset. The token value is never logged.
    """
    token = await store.get_secret(API_TOKEN_KEY)
    if not token:
        logger.warning("PagerDuty token unset, skipping.")
        return None
    return token
