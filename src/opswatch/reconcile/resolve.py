"""Resolve a spec's agent name to a registered identity."""

from __future__ import annotations

from collections.abc import Collection

from opswatch.reconcile.context import ReconcileContext
from opswatch.reconcile.errors import AgentNotFoundError
from opswatch.reconcile.layout import AgentIdentity, identity_for_folder
from opswatch.registry.models import AgentDefinition


def is_self_target(agent: str, self_names: Collection[str]) -> bool:
    """True if ``agent`` names the controller itself (case-insensitive)."""
    return agent.strip().lower() in {n.lower() for n in self_names}


def resolve_agent(
    ctx: ReconcileContext,
    agent: str,
    *,
    allow_self: bool = False,
) -> tuple[AgentIdentity, AgentDefinition]:
    """Find a registered agent by exact folder, then by suffixed folder.

    With ``allow_self``, a controller alias resolves to whichever registry
    entry owns the controller folder. Raises AgentNotFoundError otherwise.
    """
    config = ctx.config
    registry = ctx.registry

    if allow_self and is_self_target(agent, config.self_mod_names):
        jid = registry.find_jid_by_folder(config.controller_folder)
        definition = registry.get_agent(jid) if jid else None
        if jid is None or definition is None:
            raise AgentNotFoundError(f'Agent "{agent}" not found')
        return identity_for_folder(config, definition.folder, jid), definition

    candidates = [agent]
    if config.folder_suffix and not agent.endswith(config.folder_suffix):
        candidates.append(f"{agent}{config.folder_suffix}")

    for folder in candidates:
        identity = identity_for_folder(config, folder)
        definition = registry.get_agent(identity.jid)
        if definition is not None:
            return identity_for_folder(config, definition.folder, identity.jid), definition

    raise AgentNotFoundError(f'Agent "{agent}" not found')
