"""Agent identities and the filesystem layout derived from them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from opswatch.config import WatcherConfig

# Agent-private partitions under the shared root, with the subfolders each one gets.
PARTITION_SUBDIRS: dict[str, tuple[str, ...]] = {
    "tasks": ("inbox", "active", "archive"),
    "results": ("inbox", "archive"),
    "knowledge": ("archive",),
}
PARTITIONS = tuple(PARTITION_SUBDIRS)

_FOLDER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def is_valid_folder(folder: str) -> bool:
    return bool(_FOLDER_RE.match(folder))


def partition_key_for(config: WatcherConfig, folder: str) -> str:
    """Name of an agent's partitions: its folder without the specialist suffix."""
    suffix = config.folder_suffix
    if suffix and folder.endswith(suffix) and len(folder) > len(suffix):
        return folder[: -len(suffix)]
    return folder


def display_name(agent: str) -> str:
    return f"{agent[:1].upper()}{agent[1:]} Specialist"


@dataclass(frozen=True)
class AgentIdentity:
    name: str
    folder: str
    jid: str
    partition_key: str


def identity_for_folder(config: WatcherConfig, folder: str, jid: str | None = None) -> AgentIdentity:
    return AgentIdentity(
        name=partition_key_for(config, folder),
        folder=folder,
        jid=jid if jid is not None else f"{config.jid_prefix}{folder}",
        partition_key=partition_key_for(config, folder),
    )


def new_agent_identity(config: WatcherConfig, agent: str) -> AgentIdentity:
    """Identity a create spec provisions for ``agent``."""
    folder = f"{agent}{config.folder_suffix}"
    return AgentIdentity(
        name=agent,
        folder=folder,
        jid=f"{config.jid_prefix}{folder}",
        partition_key=agent,
    )


class AgentPaths:
    def __init__(self, config: WatcherConfig, identity: AgentIdentity) -> None:
        self._config = config
        self._identity = identity

    @property
    def group_dir(self) -> Path:
        return self._config.groups_dir / self._identity.folder

    @property
    def instructions_path(self) -> Path:
        return self.group_dir / "CLAUDE.md"

    @property
    def session_dir(self) -> Path:
        return self._config.data_dir / "sessions" / self._identity.folder

    @property
    def settings_path(self) -> Path:
        return self.session_dir / ".claude" / "settings.json"

    def partition_dir(self, partition: str) -> Path:
        return self._config.shared_dir / partition / self._identity.partition_key

    def partition_subdirs(self) -> list[Path]:
        """Every directory making up the agent's private partitions."""
        dirs: list[Path] = []
        for partition, subdirs in PARTITION_SUBDIRS.items():
            root = self.partition_dir(partition)
            dirs.append(root)
            dirs.extend(root / sub for sub in subdirs)
        return dirs
