"""Modify operation: update an existing agent's document, settings, mounts, and tasks."""

from __future__ import annotations

import logging
from typing import Any

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.instructions import (
    check_line_ceiling,
    combine_for_append,
    read_instructions,
    write_instructions,
)
from opswatch.reconcile.isolation import ensure_isolated, normalize_mount
from opswatch.reconcile.layout import AgentIdentity, AgentPaths
from opswatch.reconcile.resolve import resolve_agent
from opswatch.reconcile.secret_store import SecretStore
from opswatch.reconcile.settings import MODEL_ENV_KEY, read_settings, resolve_model, write_settings
from opswatch.reconcile.tasks import apply_tasks, check_task_ownership
from opswatch.specs.body import SpecBody

logger = logging.getLogger(__name__)

SECRET_REF_PREFIX = "$"


def apply_env_rows(env: dict[str, Any], rows: list[dict[str, str]], secrets: SecretStore) -> list[str]:
    """Merge ``key: value`` rows into ``env``. Returns the keys that were set.

    A value starting with ``$`` names a secret: the secret is copied under
    its own name, and skipped if the store does not have it.
    """
    changed: list[str] = []
    for item in rows:
        for key, value in item.items():
            if value.startswith(SECRET_REF_PREFIX):
                secret_name = value[len(SECRET_REF_PREFIX) :]
                secret = secrets.get(secret_name) if secret_name else None
                if secret is None:
                    logger.warning(f"  Secret {secret_name!r} not found, skipping")
                    continue
                env[secret_name] = secret
                changed.append(secret_name)
            else:
                env[key] = value
                changed.append(key)
    return changed


def handle_modify(
    ctx: ReconcileContext,
    agent: str,
    body: SpecBody,
    model: str | None = None,
) -> AgentIdentity:
    config = ctx.config
    identity, definition = resolve_agent(ctx, agent, allow_self=True)
    paths = AgentPaths(config, identity)

    replacement = body.instructions()
    addition = body.append_instructions()
    declared_mounts = body.mounts()
    env_rows = body.env_rows()
    requests = body.tasks()

    document: str | None = None
    appended = False
    if replacement:
        check_line_ceiling(replacement, config.max_instruction_lines)
        document = replacement
    if addition:
        base = document if document is not None else read_instructions(paths.instructions_path)
        document = combine_for_append(base, addition)
        check_line_ceiling(document, config.max_instruction_lines, after_append=True)
        appended = True

    new_mounts = [normalize_mount(m, config.shared_dir) for m in declared_mounts or []]
    if new_mounts:
        ensure_isolated(identity.partition_key, new_mounts, config.shared_dir)

    if requests:
        check_task_ownership(ctx, identity, requests)

    settings = read_settings(paths.settings_path) if (model or env_rows) else None

    # All checks passed; mutations start here.
    if document is not None:
        write_instructions(paths.instructions_path, document)
        action = "Appended to" if appended else "Updated"
        ctx.effects.record(f"{action} CLAUDE.md for {identity.folder}")

    if settings is not None:
        if model:
            resolved = resolve_model(model, config.model_aliases, config.default_model)
            settings["env"][MODEL_ENV_KEY] = resolved
            ctx.effects.record(f"Updated model to {resolved} for {identity.folder}")
        if env_rows:
            keys = apply_env_rows(settings["env"], env_rows, ctx.secrets)
            if keys:
                ctx.effects.record(f"Updated env vars for {identity.folder}: {', '.join(keys)}")
        write_settings(paths.settings_path, settings)

    if new_mounts:
        existing = definition.container_config.additional_mounts
        updated = definition.model_copy(
            update={
                "container_config": definition.container_config.model_copy(
                    update={"additional_mounts": [*existing, *new_mounts]}
                )
            }
        )
        ctx.registry.set_agent(identity.jid, updated)
        ctx.effects.record(f"Added {len(new_mounts)} mount(s) for {identity.folder}")

    if requests:
        apply_tasks(ctx, identity, requests, upsert=True)

    if not ctx.effects:
        logger.info(f'  Agent "{agent}" modify spec contained no changes')
    logger.info(f'  Agent "{agent}" modified')
    return identity
