"""Shared fixtures for opswatch tests."""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from opswatch.config import WatcherConfig
from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.effects import EffectLog
from opswatch.reconcile.secret_store import SecretStore
from opswatch.registry.database import RegistryDatabase

# A Monday, 07:30 UTC.
FIXED_NOW = datetime(2026, 3, 2, 7, 30, tzinfo=UTC)


def _make_doc(lines: int) -> str:
    """Build an instruction document with exactly ``lines`` lines."""
    return "\n".join(f"Line {i} of the specialist instructions." for i in range(1, lines + 1))


def _make_spec(operation: str, agent: str, body: str = "", *, model: str | None = None) -> str:
    """Build spec file text with a header block and a markdown body."""
    header = [f"operation: {operation}", f"agent: {agent}"]
    if model:
        header.append(f"model: {model}")
    return "---\n" + "\n".join(header) + "\n---\n\n" + body


def _make_instructions_section(lines: int = 10, heading: str = "CLAUDE.md") -> str:
    return f"## {heading}\n\n```markdown\n{_make_doc(lines)}\n```\n"


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def config(tmp_path: Path) -> WatcherConfig:
    return WatcherConfig(project_root=tmp_path)


@pytest.fixture
def registry():
    database = RegistryDatabase(":memory:")
    yield database
    database.close()


@pytest.fixture
def env_file(config: WatcherConfig) -> Path:
    config.env_file.write_text(
        "BILLING_API_KEY=sk-billing-123\n"
        "STRIPE_KEY=sk-stripe-456\n"
        "EMPTY_KEY=\n"
    )
    return config.env_file


@pytest.fixture
def secrets(config: WatcherConfig) -> SecretStore:
    return SecretStore(config.env_file)


@pytest.fixture
def ctx(config: WatcherConfig, registry: RegistryDatabase, secrets: SecretStore) -> ReconcileContext:
    return ReconcileContext(
        config=config,
        registry=registry,
        secrets=secrets,
        effects=EffectLog(),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def make_spec() -> Callable[..., str]:
    return _make_spec


@pytest.fixture
def make_doc() -> Callable[[int], str]:
    return _make_doc


@pytest.fixture
def instructions_section() -> Callable[..., str]:
    return _make_instructions_section


@pytest.fixture
def write_spec(config: WatcherConfig) -> Callable[[str, str], Path]:
    """Drop a spec file into the watched directory."""

    def _write(name: str, text: str) -> Path:
        config.ops_dir.mkdir(parents=True, exist_ok=True)
        path = config.ops_dir / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
