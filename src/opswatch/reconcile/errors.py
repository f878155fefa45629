"""Exception hierarchy for reconciliation failures."""

from __future__ import annotations


class OperationError(Exception):
    """A spec could not be applied. The message ends up in the FAILED note."""


class InvalidFolderError(OperationError):
    pass


class MissingSectionError(OperationError):
    pass


class InstructionTooLongError(OperationError):
    pass


class AgentExistsError(OperationError):
    pass


class AgentNotFoundError(OperationError):
    pass


class IsolationViolationError(OperationError):
    pass


class ProtectedAgentError(OperationError):
    """The controller's own identity cannot be deleted."""


class TaskOwnershipError(OperationError):
    pass


class BadScheduleError(ValueError):
    """A cron expression could not be evaluated."""


class CorruptSettingsError(OperationError):
    pass
