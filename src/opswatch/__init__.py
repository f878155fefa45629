"""opswatch: declarative reconciliation controller for specialist agents."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("opswatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
