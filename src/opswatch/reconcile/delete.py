"""Delete operation: deregister an agent and archive its pending work."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.errors import ProtectedAgentError
from opswatch.reconcile.layout import AgentIdentity, AgentPaths
from opswatch.reconcile.resolve import is_self_target, resolve_agent

logger = logging.getLogger(__name__)

ARCHIVED_PARTITIONS = ("tasks", "results")
ARCHIVED_SUBDIRS = ("inbox", "active")


def _unique_destination(dest: Path) -> Path:
    if not dest.exists():
        return dest
    counter = 1
    while True:
        candidate = dest.with_name(f"{dest.stem}-{counter}{dest.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def archive_pending(partition_root: Path) -> int:
    """Move everything in ``inbox/`` and ``active/`` into ``archive/``. Returns files moved."""
    if not partition_root.is_dir():
        return 0
    archive = partition_root / "archive"
    moved = 0
    for sub in ARCHIVED_SUBDIRS:
        src = partition_root / sub
        if not src.is_dir():
            continue
        archive.mkdir(parents=True, exist_ok=True)
        for entry in sorted(src.iterdir()):
            shutil.move(str(entry), str(_unique_destination(archive / entry.name)))
            moved += 1
    return moved


def handle_delete(ctx: ReconcileContext, agent: str) -> AgentIdentity:
    config = ctx.config
    if is_self_target(agent, config.self_mod_names):
        raise ProtectedAgentError("Cannot delete the Orchestrator.")

    identity, _ = resolve_agent(ctx, agent)
    if identity.folder == config.controller_folder:
        raise ProtectedAgentError("Cannot delete the Orchestrator.")

    paths = AgentPaths(config, identity)

    for task in ctx.registry.get_tasks_for_owner(identity.folder):
        ctx.registry.delete_task(task.id)
        ctx.effects.record(f"Deleted task: {task.id}")

    ctx.registry.delete_agent(identity.jid)
    ctx.effects.record(f"Deregistered {identity.jid}")

    # Group folder and session settings go; shared partitions stay.
    for directory in (paths.group_dir, paths.session_dir):
        if directory.exists():
            shutil.rmtree(directory)
            ctx.effects.record(f"Removed {directory}")

    for partition in ARCHIVED_PARTITIONS:
        moved = archive_pending(paths.partition_dir(partition))
        if moved:
            ctx.effects.record(f"Archived {moved} file(s) in {partition}/{identity.partition_key}")

    logger.info(f'  Agent "{agent}" deleted (archives preserved in shared/)')
    return identity
