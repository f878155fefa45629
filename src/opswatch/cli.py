"""CLI entry point for the opswatch agent-ops controller."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import cast

from opswatch import __version__
from opswatch.config import CONFIG_FILENAME, WatcherConfig, load_config
from opswatch.server.runner import run_server


def _load(args: argparse.Namespace) -> WatcherConfig:
    config_path = cast(Path | None, args.config)
    root = cast(Path | None, getattr(args, "root", None))
    if config_path is None and root is not None:
        config_path = root / CONFIG_FILENAME
    config = load_config(config_path)
    if root is not None:
        config.project_root = root
    return config


def _open_registry(config: WatcherConfig):
    from opswatch.registry.database import RegistryDatabase

    config.registry_db_path.parent.mkdir(parents=True, exist_ok=True)
    return RegistryDatabase(str(config.registry_db_path))


def _cmd_init(args: argparse.Namespace) -> None:
    from opswatch.reconcile.layout import PARTITIONS

    config = _load(args)
    created: list[Path] = []
    for directory in (
        config.ops_dir,
        config.log_file.parent,
        *(config.shared_dir / p for p in PARTITIONS),
        config.data_dir,
    ):
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            created.append(directory)

    db = _open_registry(config)
    db.close()

    for directory in created:
        print(f"  created {directory}")
    print(f"Watched directory: {config.ops_dir}")
    print(f"Registry: {config.registry_db_path}")


def _cmd_watch(args: argparse.Namespace) -> None:
    import signal
    import threading

    from opswatch.controller.poller import SpecPoller
    from opswatch.logs import configure_logging

    config = _load(args)
    interval = cast(float | None, args.interval)
    if interval is not None:
        config.poll_interval = interval
    configure_logging(config)

    db = _open_registry(config)
    stop = threading.Event()

    def _stop(signum, frame):
        stop.set()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    try:
        SpecPoller(config, db).run_forever(stop)
    finally:
        db.close()


def _cmd_poll(args: argparse.Namespace) -> None:
    from opswatch.controller.poller import SpecPoller
    from opswatch.logs import configure_logging

    config = _load(args)
    configure_logging(config)
    db = _open_registry(config)
    try:
        outcomes = SpecPoller(config, db).tick()
    finally:
        db.close()

    if not outcomes:
        print("No pending specs.")
        return
    for outcome in outcomes:
        print(f"{outcome.source.name} -> {outcome.target.name}")


def _cmd_agents(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_registry(config)
    try:
        agents = db.list_agents()
    finally:
        db.close()

    if cast(bool, args.json):
        print(json.dumps({jid: a.model_dump(mode="json") for jid, a in agents.items()}, indent=2))
        return
    if not agents:
        print("No registered agents.")
        return
    for jid, agent in agents.items():
        mounts = len(agent.container_config.additional_mounts)
        print(f"{jid}  {agent.name}  folder={agent.folder}  mounts={mounts}")


def _cmd_tasks(args: argparse.Namespace) -> None:
    config = _load(args)
    agent = cast(str | None, args.agent)
    db = _open_registry(config)
    try:
        tasks = db.get_tasks_for_owner(agent) if agent else db.list_tasks()
    finally:
        db.close()

    if cast(bool, args.json):
        print(json.dumps([t.model_dump(mode="json") for t in tasks], indent=2))
        return
    if not tasks:
        print("No scheduled tasks.")
        return
    for task in tasks:
        print(
            f"{task.id}  [{task.status}]  {task.group_folder}  "
            f"'{task.schedule_value}'  next={task.next_run or '-'}"
        )


def _cmd_history(args: argparse.Namespace) -> None:
    config = _load(args)
    db = _open_registry(config)
    try:
        transitions = db.list_transitions(
            spec_name=cast(str | None, args.spec), limit=cast(int, args.limit)
        )
    finally:
        db.close()

    if not transitions:
        print("No recorded transitions.")
        return
    for t in transitions:
        target = f"{t.operation} {t.agent}" if t.operation else "-"
        print(f"{t.recorded_at}  {t.spec_name}  {t.from_state} -> {t.to_state}  ({target})")


def _cmd_serve(args: argparse.Namespace) -> None:
    config = _load(args)
    port = cast(int | None, args.port)
    if port is not None:
        config.port = port
    run_server(config)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="opswatch",
        description="File-driven controller for provisioning worker agents",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"opswatch {__version__}"
    )
    _ = parser.add_argument(
        "--config", type=Path, default=None, help="Path to .opswatch.json (default: <root>)"
    )
    _ = parser.add_argument(
        "--root", type=Path, default=None, help="Project root (overrides config)"
    )
    subparsers = parser.add_subparsers(dest="command")

    # watch subcommand
    watch_p = subparsers.add_parser("watch", help="Run the polling loop until interrupted")
    _ = watch_p.add_argument(
        "--interval", type=float, default=None, help="Poll interval in seconds"
    )

    # poll subcommand
    _ = subparsers.add_parser("poll", help="Process pending specs once and exit")

    # init subcommand
    _ = subparsers.add_parser("init", help="Create the watched directory and registry")

    # agents subcommand
    agents_p = subparsers.add_parser("agents", help="List registered agents")
    _ = agents_p.add_argument("--json", action="store_true", help="Print JSON")

    # tasks subcommand
    tasks_p = subparsers.add_parser("tasks", help="List scheduled tasks")
    _ = tasks_p.add_argument("--agent", default=None, help="Only tasks owned by this folder")
    _ = tasks_p.add_argument("--json", action="store_true", help="Print JSON")

    # history subcommand
    history_p = subparsers.add_parser("history", help="List recorded spec transitions")
    _ = history_p.add_argument("--spec", default=None, help="Spec base name")
    _ = history_p.add_argument("--limit", type=int, default=50)

    # serve subcommand
    serve_p = subparsers.add_parser("serve", help="Start the read-only status API")
    _ = serve_p.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)
    dispatch = {
        "watch": _cmd_watch,
        "poll": _cmd_poll,
        "init": _cmd_init,
        "agents": _cmd_agents,
        "tasks": _cmd_tasks,
        "history": _cmd_history,
        "serve": _cmd_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler:
        handler(args)
    else:
        parser.print_help()
        sys.exit(1)
