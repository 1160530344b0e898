"""Secret storage.

The service holds exactly one secret: the PagerDuty API token, stored under
API_TOKEN_KEY. SecretStore is the interface the rest of the code depends on;
the concrete store is chosen once at startup from configuration.

Nothing in this module logs secret values.
"""

import asyncio
import json
import os
import pathlib
from abc import ABC, abstractmethod

API_TOKEN_KEY = "api-token"


class SecretStore(ABC):
    """Abstract key/value store for secrets.

    The data provider only ever reads. Writes come from the token settings
    endpoint and the CLI.
    """

    @abstractmethod
    async def get_secret(self, key: str) -> str | None:
        """Return the secret stored under key, or None if there is none."""
        ...

    @abstractmethod
    async def set_secret(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...


class InMemorySecretStore(SecretStore):
    """Process-local store. Contents are lost on restart.

    Args:
        initial: Optional secrets to start with, e.g. a token taken from
            PAGERDUTY_API_TOKEN at startup.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})

    async def get_secret(self, key: str) -> str | None:
        return self._secrets.get(key)

    async def set_secret(self, key: str, value: str) -> None:
        self._secrets[key] = value


class FileSecretStore(SecretStore):
    """JSON file store, readable only by the owning user.

    The whole file is rewritten on every set. Writes go to a temporary file
    that replaces the real one, so a crash mid-write never leaves a
    truncated store behind.

    Attributes:
        path: Location of the JSON file. Created on first write.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    async def get_secret(self, key: str) -> str | None:
        secrets = await asyncio.to_thread(self._read)
        return secrets.get(key)

    async def set_secret(self, key: str, value: str) -> None:
        async with self._lock:
            secrets = await asyncio.to_thread(self._read)
            secrets[key] = value
            await asyncio.to_thread(self._write, secrets)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Secret store {self.path} is not a JSON object.")
        return data

    def _write(self, secrets: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(secrets, f)
        os.replace(tmp_path, self.path)
