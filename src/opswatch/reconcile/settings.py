"""Per-agent session settings bundle (``.claude/settings.json``) read/write."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from opswatch.reconcile.errors import CorruptSettingsError

BASE_ENV: dict[str, str] = {
    "CLAUDE_CODE_EXPERIMENTAL_AGENT_TEAMS": "1",
    "CLAUDE_CODE_ADDITIONAL_DIRECTORIES_CLAUDE_MD": "1",
    "CLAUDE_CODE_DISABLE_AUTO_MEMORY": "0",
}

MODEL_ENV_KEY = "CLAUDE_CODE_USE_MODEL"


def resolve_model(hint: str | None, aliases: Mapping[str, str], default: str) -> str:
    """Map a model hint to a runtime model id. Unknown hints pass through unchanged."""
    if not hint or not hint.strip():
        return default
    return aliases.get(hint.strip().lower(), hint.strip())


def read_settings(path: Path) -> dict[str, Any]:
    """Read a settings bundle. A missing file yields ``{"env": {}}``.

    Raises CorruptSettingsError when the file exists but cannot be read or
    is not a JSON object with an ``env`` object.
    """
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        return {"env": {}}
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        raise CorruptSettingsError(f"Corrupt settings bundle {path}: {e}") from e
    if not isinstance(data, dict):
        raise CorruptSettingsError(f"Corrupt settings bundle {path}: not a JSON object")
    env = data.setdefault("env", {})
    if not isinstance(env, dict):
        raise CorruptSettingsError(f"Corrupt settings bundle {path}: env is not an object")
    return data


def write_settings(path: Path, settings: dict[str, Any]) -> None:
    """Write a settings bundle atomically, creating parent dirs as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(settings, indent=2) + "\n"
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
