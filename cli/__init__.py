"""Command-line client for the soil temperature monitor API."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)


def run() -> None:
    """Console-script entry point."""
    import_module("cli.app").app()


# ``cli.app`` resolves to the module, never to the Typer instance.
__all__ = ["run"]
