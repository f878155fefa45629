"""Agent registry: registered agents, scheduled tasks, and the spec transition ledger."""

from opswatch.registry.database import RegistryDatabase
from opswatch.registry.models import (
    AgentDefinition,
    ContainerConfig,
    ContextMode,
    Mount,
    ScheduledTask,
    SpecTransition,
    TaskStatus,
)

__all__ = [
    "AgentDefinition",
    "ContainerConfig",
    "ContextMode",
    "Mount",
    "RegistryDatabase",
    "ScheduledTask",
    "SpecTransition",
    "TaskStatus",
]
