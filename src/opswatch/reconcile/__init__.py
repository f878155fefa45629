"""Reconciliation: apply create/modify/delete specs to the registry and filesystem."""

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.create import handle_create
from opswatch.reconcile.delete import handle_delete
from opswatch.reconcile.effects import EffectLog
from opswatch.reconcile.errors import (
    AgentExistsError,
    AgentNotFoundError,
    BadScheduleError,
    CorruptSettingsError,
    InstructionTooLongError,
    InvalidFolderError,
    IsolationViolationError,
    MissingSectionError,
    OperationError,
    ProtectedAgentError,
    TaskOwnershipError,
)
from opswatch.reconcile.isolation import validate_mounts_isolation
from opswatch.reconcile.modify import handle_modify
from opswatch.reconcile.scheduling import compute_next_run
from opswatch.reconcile.secret_store import SecretStore

__all__ = [
    "AgentExistsError",
    "AgentNotFoundError",
    "BadScheduleError",
    "CorruptSettingsError",
    "EffectLog",
    "InstructionTooLongError",
    "InvalidFolderError",
    "IsolationViolationError",
    "MissingSectionError",
    "OperationError",
    "ProtectedAgentError",
    "ReconcileContext",
    "SecretStore",
    "TaskOwnershipError",
    "compute_next_run",
    "handle_create",
    "handle_delete",
    "handle_modify",
    "validate_mounts_isolation",
]
