"""ReconcileContext: everything an operation handler needs, injected by the controller."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from opswatch.config import WatcherConfig
from opswatch.reconcile.effects import EffectLog
from opswatch.reconcile.secret_store import SecretStore
from opswatch.registry.database import RegistryDatabase


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReconcileContext:
    config: WatcherConfig
    registry: RegistryDatabase
    secrets: SecretStore
    effects: EffectLog = field(default_factory=EffectLog)
    clock: Callable[[], datetime] = _utcnow

    def now_iso(self) -> str:
        return self.clock().isoformat()
