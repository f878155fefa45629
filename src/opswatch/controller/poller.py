"""SpecPoller: the control loop that turns spec files into reconciled agents."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from opswatch.config import WatcherConfig
from opswatch.controller.approval import (
    APPROVAL_NOTE,
    is_forbidden_self_delete,
    needs_approval,
    strip_approval_note,
)
from opswatch.controller.transitions import (
    SKIPPED_STATES,
    SPEC_EXTENSION,
    base_name,
    classify,
    is_operation_file,
    write_transition,
)
from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.create import handle_create
from opswatch.reconcile.delete import handle_delete
from opswatch.reconcile.effects import EffectLog
from opswatch.reconcile.errors import OperationError
from opswatch.reconcile.modify import handle_modify
from opswatch.reconcile.secret_store import SecretStore
from opswatch.registry.database import RegistryDatabase
from opswatch.registry.models import SpecTransition
from opswatch.specs.body import SpecBody
from opswatch.specs.models import Operation, SpecFileState, SpecRecord
from opswatch.specs.parser import parse_spec

logger = logging.getLogger(__name__)

INVALID_SPEC_NOTE = (
    "**Error:** Invalid spec format. Missing or malformed YAML frontmatter.\n"
    "Expected: `operation`, `agent` fields."
)
REPARSE_FAILED_NOTE = "**Error:** Could not re-parse spec after approval."
SELF_DELETE_NOTE = "**Error:** Cannot delete the Orchestrator."


@dataclass
class DispatchOutcome:
    source: Path
    target: Path
    state: SpecFileState
    message: str | None = None


def failure_note(message: str, effects: EffectLog) -> str:
    note = f"**Error:** {message}"
    if effects:
        note += f"\n\n**Changes applied before the failure:**\n{effects.render()}"
    return note


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SpecPoller:
    def __init__(
        self,
        config: WatcherConfig,
        registry: RegistryDatabase,
        secrets: SecretStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._registry = registry
        self._secrets = secrets or SecretStore(config.env_file)
        self._clock = clock

    # --- Loop ---

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Tick now and then every ``poll_interval`` seconds until ``stop_event`` is set."""
        stop = stop_event or threading.Event()
        logger.info(f"Agent ops watcher started, watching {self._config.ops_dir}")
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Poll error: {e}")
            if stop.wait(self._config.poll_interval):
                break
        logger.info("Agent ops watcher stopped")

    def tick(self) -> list[DispatchOutcome]:
        """Process every actionable spec file in the watched directory once."""
        ops_dir = self._config.ops_dir
        ops_dir.mkdir(parents=True, exist_ok=True)

        outcomes: list[DispatchOutcome] = []
        for path in sorted(ops_dir.iterdir()):
            name = path.name
            if not name.endswith(SPEC_EXTENSION) or not path.is_file():
                continue
            state = classify(name)
            if state in SKIPPED_STATES:
                continue
            try:
                if state == SpecFileState.APPROVED:
                    outcomes.append(self.process_approved_file(path))
                elif is_operation_file(name):
                    outcomes.append(self.process_spec_file(path))
            except OSError as e:
                logger.exception(f"  Could not process {name}: {e}")
        return outcomes

    # --- Dispatch ---

    def process_spec_file(self, path: Path) -> DispatchOutcome:
        logger.info(f"Processing: {path.name}")
        record = self._read_record(path)

        if record is None:
            logger.warning(f"  FAILED: Invalid frontmatter in {path.name}")
            return self._transition(path, None, SpecFileState.FAILED, INVALID_SPEC_NOTE)

        if needs_approval(record, self._config.self_mod_names):
            logger.info(f'  PENDING_APPROVAL: Self-modification detected for "{record.agent}"')
            return self._transition(path, record, SpecFileState.PENDING_APPROVAL, APPROVAL_NOTE)

        if is_forbidden_self_delete(record, self._config.self_mod_names):
            logger.warning("  FAILED: Cannot delete orchestrator")
            return self._transition(path, record, SpecFileState.FAILED, SELF_DELETE_NOTE)

        return self._execute(path, record)

    def process_approved_file(self, path: Path) -> DispatchOutcome:
        logger.info(f"Processing approved: {path.name}")
        record = self._read_record(path, strip_note=True)

        if record is None:
            logger.warning(f"  FAILED: Could not re-parse approved spec {path.name}")
            return self._transition(path, None, SpecFileState.FAILED, REPARSE_FAILED_NOTE)

        return self._execute(path, record, approved=True)

    def _read_record(self, path: Path, *, strip_note: bool = False) -> SpecRecord | None:
        try:
            content = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as e:
            logger.warning(f"  Could not read {path.name}: {e}")
            return None
        if strip_note:
            content = strip_approval_note(content)
        return parse_spec(content)

    def _execute(self, path: Path, record: SpecRecord, *, approved: bool = False) -> DispatchOutcome:
        ctx = ReconcileContext(
            config=self._config,
            registry=self._registry,
            secrets=self._secrets,
            effects=EffectLog(),
            clock=self._clock,
        )
        body = SpecBody(record.body)
        label = " (approved)" if approved else ""

        try:
            if record.operation == Operation.DELETE:
                handle_delete(ctx, record.agent)
            elif record.operation == Operation.MODIFY:
                handle_modify(ctx, record.agent, body, record.model)
            else:
                handle_create(ctx, record.agent, body, record.model)
        except OperationError as e:
            message = str(e)
            logger.warning(f"  FAILED{label}: {record.operation} {record.agent}: {message}")
            return self._transition(
                path, record, SpecFileState.FAILED, failure_note(message, ctx.effects), message
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception(f"  FAILED{label}: {record.operation} {record.agent}: {message}")
            return self._transition(
                path, record, SpecFileState.FAILED, failure_note(message, ctx.effects), message
            )

        logger.info(f"  APPLIED{label}: {record.operation} {record.agent}")
        return self._transition(path, record, SpecFileState.APPLIED)

    # --- State writes ---

    def _transition(
        self,
        path: Path,
        record: SpecRecord | None,
        new_state: SpecFileState,
        note: str | None = None,
        message: str | None = None,
    ) -> DispatchOutcome:
        from_state = classify(path.name)
        new_path = write_transition(path, new_state, note)
        try:
            self._registry.record_transition(
                SpecTransition(
                    spec_name=base_name(path.name),
                    operation=record.operation.value if record else None,
                    agent=record.agent if record else None,
                    from_state=from_state.value,
                    to_state=new_state.value,
                    note=note,
                    recorded_at=self._clock().isoformat(),
                )
            )
        except sqlite3.Error as e:
            logger.warning(f"  Failed to record transition for {path.name}: {e}")
        return DispatchOutcome(source=path, target=new_path, state=new_state, message=message)
