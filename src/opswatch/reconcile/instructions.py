"""Instruction document (CLAUDE.md) size checks and writes."""

from __future__ import annotations

from pathlib import Path

from opswatch.reconcile.errors import InstructionTooLongError


def count_lines(text: str) -> int:
    return len(text.splitlines())


def check_line_ceiling(content: str, limit: int, *, after_append: bool = False) -> None:
    lines = count_lines(content)
    if lines <= limit:
        return
    if after_append:
        raise InstructionTooLongError(
            f"CLAUDE.md would be {lines} lines after append (max {limit})"
        )
    raise InstructionTooLongError(f"CLAUDE.md is {lines} lines (max {limit})")


def combine_for_append(existing: str, addition: str) -> str:
    """Existing document followed by a blank line and the appended block."""
    if not existing.strip():
        return addition.rstrip() + "\n"
    return existing.rstrip() + "\n\n" + addition.rstrip() + "\n"


def read_instructions(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def write_instructions(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not content.endswith("\n"):
        content += "\n"
    path.write_text(content, encoding="utf-8")
