"""Starlette app factory with lifespan for registry management."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from opswatch.config import WatcherConfig, load_config
from opswatch.registry.database import RegistryDatabase
from opswatch.server.routes_agents import routes as agent_routes
from opswatch.server.routes_specs import routes as spec_routes
from opswatch.server.routes_system import routes as system_routes


def create_app(
    config: WatcherConfig | None = None,
    db_path: str | None = None,
) -> Starlette:
    """Create the read-only status app; ``db_path`` defaults to the configured registry."""
    if config is None:
        config = load_config()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        resolved = db_path
        if resolved is None:
            config.registry_db_path.parent.mkdir(parents=True, exist_ok=True)
            resolved = str(config.registry_db_path)
        app.state.config = config
        app.state.db = RegistryDatabase(resolved)

        yield

        app.state.db.close()

    return Starlette(
        routes=system_routes + agent_routes + spec_routes,
        lifespan=lifespan,
    )
