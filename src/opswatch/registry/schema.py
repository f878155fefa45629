"""SQLite DDL and migration runner for the agent registry."""

from __future__ import annotations

import sqlite3

SCHEMA_VERSIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

REGISTERED_AGENTS_DDL = """
CREATE TABLE IF NOT EXISTS registered_agents (
    jid TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    folder TEXT NOT NULL UNIQUE,
    trigger_pattern TEXT NOT NULL,
    added_at TEXT NOT NULL,
    container_config TEXT NOT NULL DEFAULT '{}',
    requires_trigger INTEGER NOT NULL DEFAULT 0
);
"""

SCHEDULED_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS scheduled_tasks (
    id TEXT PRIMARY KEY,
    group_folder TEXT NOT NULL,
    chat_jid TEXT NOT NULL,
    prompt TEXT NOT NULL,
    schedule_type TEXT NOT NULL DEFAULT 'cron',
    schedule_value TEXT NOT NULL,
    context_mode TEXT NOT NULL DEFAULT 'group',
    next_run TEXT,
    last_run TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL
);
"""

SCHEDULED_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_st_folder ON scheduled_tasks(group_folder);",
    "CREATE INDEX IF NOT EXISTS idx_st_next_run ON scheduled_tasks(next_run);",
]

SPEC_TRANSITIONS_DDL = """
CREATE TABLE IF NOT EXISTS spec_transitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    spec_name TEXT NOT NULL,
    operation TEXT,
    agent TEXT,
    from_state TEXT NOT NULL,
    to_state TEXT NOT NULL,
    note TEXT,
    recorded_at TEXT NOT NULL
);
"""

SPEC_TRANSITIONS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tr_spec ON spec_transitions(spec_name);",
]

MIGRATIONS: dict[int, list[str]] = {
    1: [
        REGISTERED_AGENTS_DDL,
        SCHEDULED_TASKS_DDL,
        *SCHEDULED_TASKS_INDEXES,
    ],
    2: [
        SPEC_TRANSITIONS_DDL,
        *SPEC_TRANSITIONS_INDEXES,
    ],
}


def _get_current_version(db: sqlite3.Connection) -> int:
    try:
        row = db.execute("SELECT MAX(version) FROM schema_versions").fetchone()
        return row[0] or 0
    except sqlite3.OperationalError:
        return 0


def run_migrations(db: sqlite3.Connection) -> None:
    """Apply all pending migrations to the registry database."""
    db.execute("PRAGMA journal_mode=WAL")
    db.executescript(SCHEMA_VERSIONS_DDL)

    current = _get_current_version(db)
    for version in sorted(MIGRATIONS.keys()):
        if version <= current:
            continue
        for statement in MIGRATIONS[version]:
            db.executescript(statement)
        db.execute("INSERT INTO schema_versions (version) VALUES (?)", (version,))
    db.commit()
