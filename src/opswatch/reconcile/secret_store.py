"""Secret lookups against the project ``.env`` file."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values


class SecretStore:
    def __init__(self, env_file: Path) -> None:
        self._env_file = env_file

    def read(self, keys: Iterable[str]) -> dict[str, str]:
        """Return the requested keys that are present and non-empty. Absent keys are omitted."""
        if not self._env_file.exists():
            return {}
        values = dotenv_values(self._env_file)
        found: dict[str, str] = {}
        for key in keys:
            value = values.get(key)
            if value:
                found[key] = value
        return found

    def get(self, key: str) -> str | None:
        return self.read([key]).get(key)
