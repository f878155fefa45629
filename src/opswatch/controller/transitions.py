"""Spec file states encoded in filenames: classification, valid transitions, renames."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from opswatch.specs.models import Operation, SpecFileState

logger = logging.getLogger(__name__)

SPEC_EXTENSION = ".md"
NOTE_SEPARATOR = "\n\n---\n\n"
OPERATION_PREFIXES = tuple(f"{op.value}-" for op in Operation)

_STATE_SUFFIX_RE = re.compile(r"\.(APPLIED|FAILED|PENDING_APPROVAL|APPROVED)$")

VALID_TRANSITIONS: dict[SpecFileState, set[SpecFileState]] = {
    SpecFileState.NEW: {
        SpecFileState.PENDING_APPROVAL,
        SpecFileState.APPLIED,
        SpecFileState.FAILED,
    },
    # Driven by a human rename, never by the controller.
    SpecFileState.PENDING_APPROVAL: {SpecFileState.APPROVED},
    SpecFileState.APPROVED: {SpecFileState.APPLIED, SpecFileState.FAILED},
    SpecFileState.APPLIED: set(),
    SpecFileState.FAILED: set(),
}

# States the poller never dispatches.
SKIPPED_STATES = frozenset(
    {SpecFileState.APPLIED, SpecFileState.FAILED, SpecFileState.PENDING_APPROVAL}
)


def _stem(filename: str) -> str:
    return filename[: -len(SPEC_EXTENSION)] if filename.endswith(SPEC_EXTENSION) else filename


def classify(filename: str) -> SpecFileState:
    """State encoded in a spec filename; a bare name is NEW."""
    match = _STATE_SUFFIX_RE.search(_stem(filename))
    return SpecFileState(match.group(1)) if match else SpecFileState.NEW


def base_name(filename: str) -> str:
    """Filename without extension and without any state suffix."""
    return _STATE_SUFFIX_RE.sub("", _stem(filename))


def is_operation_file(filename: str) -> bool:
    return filename.startswith(OPERATION_PREFIXES) and filename.endswith(SPEC_EXTENSION)


def check_transition(current: SpecFileState, new: SpecFileState) -> None:
    """Raise ValueError if ``current -> new`` is not a valid spec file transition."""
    allowed = VALID_TRANSITIONS[current]
    if new not in allowed:
        raise ValueError(
            f"Invalid spec transition: {current.value} -> {new.value}. "
            f"Allowed from {current.value}: {sorted(s.value for s in allowed) or 'none'}"
        )


def target_path(path: Path, new_state: SpecFileState) -> Path:
    """Destination for ``path`` in ``new_state``, never clobbering an existing file."""
    base = base_name(path.name)
    candidate = path.with_name(f"{base}.{new_state.value}{SPEC_EXTENSION}")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{base}-{counter}.{new_state.value}{SPEC_EXTENSION}")
        counter += 1
    return candidate


def write_transition(path: Path, new_state: SpecFileState, note: str | None = None) -> Path:
    """Move a spec file to ``new_state``, appending ``note`` to its content first.

    Returns the new path. Raises ValueError for transitions the state
    machine does not allow. A note that cannot be written is logged and the
    rename still happens.
    """
    check_transition(classify(path.name), new_state)

    if note:
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
            path.write_text(content + NOTE_SEPARATOR + note, encoding="utf-8")
        except OSError as e:
            logger.warning(f"  Could not append note to {path.name}: {e}")

    new_path = target_path(path, new_state)
    path.rename(new_path)
    return new_path
