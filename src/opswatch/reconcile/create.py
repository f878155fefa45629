"""Create operation: provision a new specialist agent."""

from __future__ import annotations

import logging

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.errors import AgentExistsError, InvalidFolderError, MissingSectionError
from opswatch.reconcile.instructions import check_line_ceiling, write_instructions
from opswatch.reconcile.isolation import ensure_isolated, normalize_mount
from opswatch.reconcile.layout import (
    PARTITIONS,
    AgentIdentity,
    AgentPaths,
    display_name,
    is_valid_folder,
    new_agent_identity,
)
from opswatch.reconcile.settings import BASE_ENV, MODEL_ENV_KEY, resolve_model, write_settings
from opswatch.reconcile.tasks import apply_tasks, check_task_ownership
from opswatch.registry.models import AgentDefinition, ContainerConfig, Mount
from opswatch.specs.body import SpecBody

logger = logging.getLogger(__name__)


def standard_mounts(ctx: ReconcileContext, paths: AgentPaths) -> list[Mount]:
    """The agent's own partitions read-write, plus the shared root read-only."""
    mounts = [
        Mount(host_path=str(paths.partition_dir(p)), container_path=p, readonly=False)
        for p in PARTITIONS
    ]
    mounts.append(
        Mount(host_path=str(ctx.config.shared_dir), container_path="shared", readonly=True)
    )
    return mounts


def handle_create(
    ctx: ReconcileContext,
    agent: str,
    body: SpecBody,
    model: str | None = None,
) -> AgentIdentity:
    config = ctx.config
    identity = new_agent_identity(config, agent)

    if not is_valid_folder(identity.folder):
        raise InvalidFolderError(f"Invalid folder name: {identity.folder}")

    if ctx.registry.get_agent(identity.jid) is not None:
        raise AgentExistsError(f'Agent "{agent}" already exists (JID: {identity.jid})')

    content = body.instructions()
    if content is None:
        raise MissingSectionError("Missing ## CLAUDE.md section")
    if not content.strip():
        raise MissingSectionError("## CLAUDE.md section is empty")
    check_line_ceiling(content, config.max_instruction_lines)

    paths = AgentPaths(config, identity)
    custom = [normalize_mount(m, config.shared_dir) for m in body.mounts() or []]
    all_mounts = standard_mounts(ctx, paths) + custom
    ensure_isolated(identity.partition_key, all_mounts, config.shared_dir)

    requests = body.tasks() or []
    check_task_ownership(ctx, identity, requests)

    # All checks passed; mutations start here.
    for directory in paths.partition_subdirs():
        directory.mkdir(parents=True, exist_ok=True)
    ctx.effects.record(f"Created partitions for {identity.partition_key}")

    (paths.group_dir / "logs").mkdir(parents=True, exist_ok=True)
    write_instructions(paths.instructions_path, content)
    ctx.effects.record(f"Wrote {paths.instructions_path}")

    definition = AgentDefinition(
        name=display_name(agent),
        folder=identity.folder,
        trigger=config.default_trigger,
        added_at=ctx.now_iso(),
        container_config=ContainerConfig(
            additional_mounts=all_mounts,
            timeout=config.container_timeout_ms,
        ),
        requires_trigger=False,
    )
    ctx.registry.set_agent(identity.jid, definition)
    ctx.effects.record(f"Registered {identity.jid}")

    env = dict(BASE_ENV)
    env[MODEL_ENV_KEY] = resolve_model(model, config.model_aliases, config.default_model)
    requested = body.env_key_names()
    if requested:
        found = ctx.secrets.read(requested)
        missing = [k for k in requested if k not in found]
        if missing:
            logger.warning(f"  Secrets not found for {identity.folder}: {', '.join(missing)}")
        env.update(found)
    write_settings(paths.settings_path, {"env": env})
    ctx.effects.record(f"Wrote settings for {identity.folder} ({len(env)} env entries)")

    apply_tasks(ctx, identity, requests, upsert=False)

    logger.info(f'  Agent "{agent}" created -> folder: {identity.folder}, JID: {identity.jid}')
    return identity
