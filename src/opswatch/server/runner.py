"""Uvicorn launcher for the status API."""

from __future__ import annotations

from opswatch.config import WatcherConfig, load_config


def run_server(config: WatcherConfig | None = None) -> None:
    """Start the read-only status API with uvicorn."""
    import uvicorn

    from opswatch.server.app import create_app

    if config is None:
        config = load_config()

    uvicorn.run(create_app(config), host="127.0.0.1", port=config.port)
