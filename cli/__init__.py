"""CLI package for running the field telemetry relay and engine."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must resolve to the module, not the Typer instance; tests patch
# ``cli.app.build_default_client`` and ``cli.app.build_default_relay``.

__all__ = []
