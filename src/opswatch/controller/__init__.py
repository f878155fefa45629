"""Spec file controller: state machine, approval gate, and polling loop."""

from opswatch.controller.approval import APPROVAL_NOTE, needs_approval, strip_approval_note
from opswatch.controller.poller import DispatchOutcome, SpecPoller
from opswatch.controller.transitions import (
    VALID_TRANSITIONS,
    base_name,
    check_transition,
    classify,
    write_transition,
)

__all__ = [
    "APPROVAL_NOTE",
    "DispatchOutcome",
    "SpecPoller",
    "VALID_TRANSITIONS",
    "base_name",
    "check_transition",
    "classify",
    "needs_approval",
    "strip_approval_note",
    "write_transition",
]
