"""Mount isolation: no agent may mount another agent's private partitions."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from opswatch.reconcile.errors import IsolationViolationError
from opswatch.reconcile.layout import PARTITIONS
from opswatch.registry.models import Mount


def resolve_host_path(host_path: str, shared_dir: Path) -> str:
    """Absolute, lexically normalised host path. Relative paths hang off the shared root."""
    expanded = os.path.expanduser(host_path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(str(shared_dir), expanded)
    return os.path.normpath(expanded)


def normalize_mount(mount: Mount, shared_dir: Path) -> Mount:
    return mount.model_copy(update={"host_path": resolve_host_path(mount.host_path, shared_dir)})


def validate_mounts_isolation(
    agent_key: str,
    mounts: Iterable[Mount],
    shared_dir: Path,
) -> str | None:
    """Return a violation message for the first mount reaching into another agent's partition.

    A mount violates isolation when its resolved host path is
    ``<shared>/<partition>/<other>`` or anything below it, for any
    ``other`` other than ``agent_key``. Returns None if all mounts pass.
    """
    shared = os.path.normpath(str(shared_dir))
    for mount in mounts:
        resolved = resolve_host_path(mount.host_path, shared_dir)
        for partition in PARTITIONS:
            root = os.path.join(shared, partition)
            if not resolved.startswith(root + os.sep):
                continue
            owner = resolved[len(root) + 1 :].split(os.sep)[0]
            if owner and owner != agent_key:
                return (
                    f'Mount "{mount.host_path}" crosses into agent "{owner}" '
                    f"{partition} directory"
                )
    return None


def ensure_isolated(agent_key: str, mounts: Iterable[Mount], shared_dir: Path) -> None:
    violation = validate_mounts_isolation(agent_key, mounts, shared_dir)
    if violation:
        raise IsolationViolationError(violation)
