"""Approval gate for specs that target the controller itself."""

from __future__ import annotations

from opswatch.controller.transitions import NOTE_SEPARATOR
from opswatch.reconcile.resolve import is_self_target
from opswatch.specs.models import Operation, SpecRecord

APPROVAL_MARKER = "**Pending owner approval."
APPROVAL_NOTE = (
    f"{APPROVAL_MARKER}** This spec targets the Orchestrator. "
    "Waiting for rename to .APPROVED.md."
)


def needs_approval(record: SpecRecord, self_names: frozenset[str]) -> bool:
    """Create/modify specs naming the controller wait for a human rename."""
    return record.operation != Operation.DELETE and is_self_target(record.agent, self_names)


def is_forbidden_self_delete(record: SpecRecord, self_names: frozenset[str]) -> bool:
    return record.operation == Operation.DELETE and is_self_target(record.agent, self_names)


def strip_approval_note(content: str) -> str:
    """Original spec text of an approved file, without the pending-approval note."""
    head, sep, _ = content.partition(f"{NOTE_SEPARATOR}{APPROVAL_MARKER}")
    if not sep:
        return content
    return head.rstrip("\n") + "\n"
