"""Scheduled task creation and upsert for an agent."""

from __future__ import annotations

import logging

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.errors import BadScheduleError, TaskOwnershipError
from opswatch.reconcile.layout import AgentIdentity
from opswatch.reconcile.scheduling import compute_next_run
from opswatch.registry.models import ScheduledTask, TaskStatus
from opswatch.specs.body import TaskRequest

logger = logging.getLogger(__name__)


def check_task_ownership(
    ctx: ReconcileContext,
    identity: AgentIdentity,
    requests: list[TaskRequest],
) -> None:
    """Reject task ids that already belong to a different agent."""
    for request in requests:
        if not request.id:
            continue
        existing = ctx.registry.get_task(request.id)
        if existing is not None and existing.group_folder != identity.folder:
            raise TaskOwnershipError(
                f'Task "{request.id}" already belongs to "{existing.group_folder}"'
            )


def _default_task_id(ctx: ReconcileContext, identity: AgentIdentity, index: int) -> str:
    stamp = int(ctx.clock().timestamp() * 1000)
    base = f"task-{identity.partition_key}-{stamp}"
    return base if index == 0 else f"{base}-{index}"


def apply_tasks(
    ctx: ReconcileContext,
    identity: AgentIdentity,
    requests: list[TaskRequest],
    *,
    upsert: bool,
) -> int:
    """Create (or, with ``upsert``, update in place) one task per request.

    A request whose cron expression cannot be evaluated is skipped with a
    warning; the rest still apply. An id repeated within ``requests``
    updates the task its first row created. Returns the number of tasks written.
    """
    existing_ids = (
        {t.id for t in ctx.registry.get_tasks_for_owner(identity.folder)} if upsert else set()
    )
    written = 0
    unnamed = 0

    for request in requests:
        if request.id:
            task_id = request.id
        else:
            task_id = _default_task_id(ctx, identity, unnamed)
            unnamed += 1

        try:
            next_run = compute_next_run(request.cron, ctx.config.timezone, now=ctx.clock())
        except BadScheduleError as e:
            logger.warning(f"  Skipping task {task_id}: {e}")
            continue

        if task_id in existing_ids:
            ctx.registry.update_task(
                task_id,
                prompt=request.prompt,
                schedule_value=request.cron,
                next_run=next_run,
                status=TaskStatus.ACTIVE,
            )
            ctx.effects.record(f"Updated task: {task_id} ({request.cron})")
        else:
            ctx.registry.create_task(
                ScheduledTask(
                    id=task_id,
                    group_folder=identity.folder,
                    chat_jid=identity.jid,
                    prompt=request.prompt,
                    schedule_value=request.cron,
                    context_mode=request.context_mode,
                    next_run=next_run,
                    status=TaskStatus.ACTIVE,
                    created_at=ctx.now_iso(),
                )
            )
            existing_ids.add(task_id)
            ctx.effects.record(f"Created task: {task_id} ({request.cron})")
        written += 1

    return written
