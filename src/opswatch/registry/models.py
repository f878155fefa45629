"""Pydantic models for registered agents, scheduled tasks, and spec transitions."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ContextMode(StrEnum):
    GROUP = "group"
    ISOLATED = "isolated"


class TaskStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Mount(BaseModel):
    host_path: str
    container_path: str
    readonly: bool = False


class ContainerConfig(BaseModel):
    additional_mounts: list[Mount] = Field(default_factory=list)
    timeout: int = 600_000


class AgentDefinition(BaseModel):
    """A provisioned worker agent, keyed in the registry by its routing identity."""

    name: str
    folder: str
    trigger: str
    added_at: str = Field(default_factory=_now_iso)
    container_config: ContainerConfig = Field(default_factory=ContainerConfig)
    requires_trigger: bool = False


class ScheduledTask(BaseModel):
    id: str
    group_folder: str
    chat_jid: str
    prompt: str
    schedule_type: str = "cron"
    schedule_value: str
    context_mode: ContextMode = ContextMode.GROUP
    next_run: str | None = None
    last_run: str | None = None
    status: TaskStatus = TaskStatus.ACTIVE
    created_at: str = Field(default_factory=_now_iso)


class SpecTransition(BaseModel):
    """One recorded state change of a spec file."""

    id: int | None = None
    spec_name: str
    operation: str | None = None
    agent: str | None = None
    from_state: str
    to_state: str
    note: str | None = None
    recorded_at: str = Field(default_factory=_now_iso)
