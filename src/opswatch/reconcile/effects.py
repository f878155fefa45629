"""EffectLog: ordered record of the external changes a handler has made."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class EffectLog:
    """Handlers record each registry or filesystem mutation here.

    Nothing is rolled back. When a handler fails part way, the dispatcher
    lists these entries in the FAILED note so the partial state is visible.
    """

    def __init__(self) -> None:
        self._entries: list[str] = []

    def record(self, description: str) -> None:
        self._entries.append(description)
        logger.info(f"  {description}")

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def render(self) -> str:
        return "\n".join(f"- {entry}" for entry in self._entries)
