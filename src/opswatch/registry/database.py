"""RegistryDatabase: CRUD for registered agents, scheduled tasks, and the spec ledger."""

from __future__ import annotations

import sqlite3
from enum import Enum
from typing import Any

from opswatch.registry.models import (
    AgentDefinition,
    ContainerConfig,
    ScheduledTask,
    SpecTransition,
)
from opswatch.registry.schema import run_migrations

_TASK_PATCH_FIELDS = frozenset(
    {"prompt", "schedule_type", "schedule_value", "context_mode", "next_run", "last_run", "status"}
)


class RegistryDatabase:
    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        run_migrations(self._conn)

    def close(self) -> None:
        self._conn.close()

    # --- Agents ---

    def get_agent(self, jid: str) -> AgentDefinition | None:
        row = self._conn.execute(
            "SELECT * FROM registered_agents WHERE jid = ?", (jid,)
        ).fetchone()
        return self._row_to_agent(row) if row else None

    def set_agent(self, jid: str, agent: AgentDefinition) -> None:
        """Insert or replace the agent registered under ``jid``."""
        self._conn.execute(
            """INSERT OR REPLACE INTO registered_agents
               (jid, name, folder, trigger_pattern, added_at,
                container_config, requires_trigger)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                jid,
                agent.name,
                agent.folder,
                agent.trigger,
                agent.added_at,
                agent.container_config.model_dump_json(),
                int(agent.requires_trigger),
            ),
        )
        self._conn.commit()

    def delete_agent(self, jid: str) -> bool:
        cursor = self._conn.execute("DELETE FROM registered_agents WHERE jid = ?", (jid,))
        self._conn.commit()
        return cursor.rowcount > 0

    def list_agents(self) -> dict[str, AgentDefinition]:
        rows = self._conn.execute("SELECT * FROM registered_agents ORDER BY jid").fetchall()
        return {row["jid"]: self._row_to_agent(row) for row in rows}

    def find_jid_by_folder(self, folder: str) -> str | None:
        row = self._conn.execute(
            "SELECT jid FROM registered_agents WHERE folder = ?", (folder,)
        ).fetchone()
        return row["jid"] if row else None

    # --- Scheduled tasks ---

    def get_task(self, task_id: str) -> ScheduledTask | None:
        row = self._conn.execute(
            "SELECT * FROM scheduled_tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return self._row_to_task(row) if row else None

    def get_tasks_for_owner(self, folder: str) -> list[ScheduledTask]:
        rows = self._conn.execute(
            "SELECT * FROM scheduled_tasks WHERE group_folder = ? ORDER BY created_at, id",
            (folder,),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def list_tasks(self) -> list[ScheduledTask]:
        rows = self._conn.execute(
            "SELECT * FROM scheduled_tasks ORDER BY group_folder, id"
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def create_task(self, task: ScheduledTask) -> str:
        self._conn.execute(
            """INSERT INTO scheduled_tasks
               (id, group_folder, chat_jid, prompt, schedule_type, schedule_value,
                context_mode, next_run, last_run, status, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                task.id,
                task.group_folder,
                task.chat_jid,
                task.prompt,
                task.schedule_type,
                task.schedule_value,
                task.context_mode.value,
                task.next_run,
                task.last_run,
                task.status.value,
                task.created_at,
            ),
        )
        self._conn.commit()
        return task.id

    def update_task(self, task_id: str, **patch: Any) -> None:
        """Update selected columns of a task. Unknown fields raise ValueError."""
        unknown = set(patch) - _TASK_PATCH_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {sorted(unknown)}")
        if not patch:
            return
        assignments = ", ".join(f"{key} = ?" for key in patch)
        params = [v.value if isinstance(v, Enum) else v for v in patch.values()]
        params.append(task_id)
        self._conn.execute(f"UPDATE scheduled_tasks SET {assignments} WHERE id = ?", params)
        self._conn.commit()

    def delete_task(self, task_id: str) -> None:
        self._conn.execute("DELETE FROM scheduled_tasks WHERE id = ?", (task_id,))
        self._conn.commit()

    # --- Spec ledger ---

    def record_transition(self, transition: SpecTransition) -> int:
        cursor = self._conn.execute(
            """INSERT INTO spec_transitions
               (spec_name, operation, agent, from_state, to_state, note, recorded_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                transition.spec_name,
                transition.operation,
                transition.agent,
                transition.from_state,
                transition.to_state,
                transition.note,
                transition.recorded_at,
            ),
        )
        self._conn.commit()
        return cursor.lastrowid or 0

    def list_transitions(
        self,
        *,
        spec_name: str | None = None,
        limit: int = 50,
    ) -> list[SpecTransition]:
        if spec_name:
            rows = self._conn.execute(
                "SELECT * FROM spec_transitions WHERE spec_name = ? ORDER BY id DESC LIMIT ?",
                (spec_name, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM spec_transitions ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [SpecTransition(**dict(r)) for r in rows]

    def stats(self) -> dict[str, int]:
        agents = self._conn.execute("SELECT COUNT(*) FROM registered_agents").fetchone()[0]
        tasks = self._conn.execute("SELECT COUNT(*) FROM scheduled_tasks").fetchone()[0]
        transitions = self._conn.execute("SELECT COUNT(*) FROM spec_transitions").fetchone()[0]
        return {"agents_total": agents, "tasks_total": tasks, "transitions_total": transitions}

    # --- Row mapping ---

    @staticmethod
    def _row_to_agent(row: sqlite3.Row) -> AgentDefinition:
        return AgentDefinition(
            name=row["name"],
            folder=row["folder"],
            trigger=row["trigger_pattern"],
            added_at=row["added_at"],
            container_config=ContainerConfig.model_validate_json(row["container_config"]),
            requires_trigger=bool(row["requires_trigger"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> ScheduledTask:
        return ScheduledTask(**dict(row))
