"""Logging setup for the watcher process: stdout plus the shared agent-ops log file."""

from __future__ import annotations

import logging
import sys

from opswatch.config import WatcherConfig

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(config: WatcherConfig, level: int = logging.INFO) -> None:
    """Attach a stream handler and the agent-ops file handler to the package logger."""
    root = logging.getLogger("opswatch")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    root.addHandler(stream)

    try:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to open log file {config.log_file}: {e}")
        return
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
