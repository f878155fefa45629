"""Configuration defaults, config file loading, and environment overrides."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

# Poll loop
DEFAULT_POLL_INTERVAL_SEC = 60.0

# Instruction document ceiling (CLAUDE.md)
MAX_INSTRUCTION_LINES = 150

# Status API
DEFAULT_PORT = 41888

DEFAULT_MODEL = "claude-sonnet-4-6"

MODEL_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "opus": "claude-opus-4-6",
        "sonnet": "claude-sonnet-4-6",
        "haiku": "claude-haiku-4-6",
        "opus-4-6": "claude-opus-4-6",
        "sonnet-4-6": "claude-sonnet-4-6",
        "claude-opus-4-6": "claude-opus-4-6",
        "claude-sonnet-4-6": "claude-sonnet-4-6",
    }
)

# Agent names that address the controller itself
SELF_MOD_NAMES: frozenset[str] = frozenset({"orchestrator", "main"})

CONFIG_FILENAME = ".opswatch.json"


@dataclass
class WatcherConfig:
    project_root: Path = field(default_factory=Path.cwd)
    poll_interval: float = DEFAULT_POLL_INTERVAL_SEC
    max_instruction_lines: int = MAX_INSTRUCTION_LINES
    timezone: str = "UTC"
    default_model: str = DEFAULT_MODEL
    model_aliases: Mapping[str, str] = field(default_factory=lambda: MODEL_ALIASES)
    self_mod_names: frozenset[str] = SELF_MOD_NAMES
    controller_folder: str = "main"
    folder_suffix: str = "-specialist"
    jid_prefix: str = "agent:"
    default_trigger: str = "@andy"
    container_timeout_ms: int = 600_000
    registry_db_name: str = "registry.db"
    port: int = DEFAULT_PORT

    @property
    def groups_dir(self) -> Path:
        return self.project_root / "groups"

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def shared_dir(self) -> Path:
        return self.groups_dir / self.controller_folder / "shared"

    @property
    def ops_dir(self) -> Path:
        """The watched directory for spec files."""
        return self.shared_dir / "agent-ops"

    @property
    def log_file(self) -> Path:
        return self.shared_dir / "log" / "agent-ops.log"

    @property
    def env_file(self) -> Path:
        return self.project_root / ".env"

    @property
    def registry_db_path(self) -> Path:
        return self.data_dir / self.registry_db_name


def load_config(path: Path | None = None) -> WatcherConfig:
    """Load watcher config from the ``agent_ops`` section of a JSON file, then env overrides."""
    config = WatcherConfig()

    env_root = os.environ.get("OPSWATCH_PROJECT_ROOT")
    if env_root:
        config.project_root = Path(env_root)

    if path is None:
        path = config.project_root / CONFIG_FILENAME

    if path.exists():
        try:
            text = path.read_text()
            if text.strip():
                data = json.loads(text)
                section = data.get("agent_ops", {})
                if isinstance(section, dict):
                    _apply(config, section)
        except (json.JSONDecodeError, OSError):
            pass

    # Env var overrides
    if env_interval := os.environ.get("OPSWATCH_POLL_INTERVAL"):
        try:
            config.poll_interval = float(env_interval)
        except ValueError:
            pass
    tz = os.environ.get("OPSWATCH_TIMEZONE") or os.environ.get("TZ")
    if tz:
        config.timezone = tz
    if env_port := os.environ.get("OPSWATCH_PORT"):
        try:
            config.port = int(env_port)
        except ValueError:
            pass

    return config


def _apply(config: WatcherConfig, data: dict[str, object]) -> None:
    if "project_root" in data and isinstance(data["project_root"], str):
        config.project_root = Path(data["project_root"])
    if "poll_interval" in data and isinstance(data["poll_interval"], int | float):
        config.poll_interval = float(data["poll_interval"])
    if "max_instruction_lines" in data and isinstance(data["max_instruction_lines"], int):
        config.max_instruction_lines = data["max_instruction_lines"]
    if "timezone" in data and isinstance(data["timezone"], str):
        config.timezone = data["timezone"]
    if "default_model" in data and isinstance(data["default_model"], str):
        config.default_model = data["default_model"]
    if "model_aliases" in data and isinstance(data["model_aliases"], dict):
        merged = dict(MODEL_ALIASES)
        merged.update(
            {
                str(k).lower(): v
                for k, v in data["model_aliases"].items()
                if isinstance(v, str)
            }
        )
        config.model_aliases = MappingProxyType(merged)
    if "self_mod_names" in data and isinstance(data["self_mod_names"], list):
        names = [n.lower() for n in data["self_mod_names"] if isinstance(n, str)]
        if names:
            config.self_mod_names = frozenset(names)
    if "controller_folder" in data and isinstance(data["controller_folder"], str):
        config.controller_folder = data["controller_folder"]
    if "folder_suffix" in data and isinstance(data["folder_suffix"], str):
        config.folder_suffix = data["folder_suffix"]
    if "jid_prefix" in data and isinstance(data["jid_prefix"], str):
        config.jid_prefix = data["jid_prefix"]
    if "default_trigger" in data and isinstance(data["default_trigger"], str):
        config.default_trigger = data["default_trigger"]
    if "container_timeout_ms" in data and isinstance(data["container_timeout_ms"], int):
        config.container_timeout_ms = data["container_timeout_ms"]
    if "port" in data and isinstance(data["port"], int):
        config.port = data["port"]
