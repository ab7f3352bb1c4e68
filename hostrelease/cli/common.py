"""Helpers shared by the CLI commands: consoles, logging, config, failures."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from hostrelease.config import ReleaseSettings
from hostrelease.core.errors import ReleaseError
from hostrelease.models.config import ReleaseConfig

console = Console()
err_console = Console(stderr=True)


def setup_logging(level: str | int = "INFO") -> None:
    """Route log records to stderr through a Rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def configured_log_level() -> str:
    """Log level from settings, or INFO if the settings do not validate.

    Bad settings are reported by the command itself as a configuration
    error; logging must come up first so that report is readable.
    """
    try:
        level = ReleaseSettings().log_level.upper()
    except ValidationError:
        return "INFO"
    return level if isinstance(logging.getLevelName(level), int) else "INFO"


def build_config(release_root: Path | None = None, **overrides: Any) -> ReleaseConfig:
    """Read settings once and apply command-line overrides on top."""
    return ReleaseConfig.from_settings(release_root=release_root, **overrides)


def flag(value: bool) -> bool | None:
    """A CLI switch only overrides the environment when it is given."""
    return True if value else None


def fail(exc: ReleaseError) -> NoReturn:
    err_console.print(f"[bold red]❌ {escape(str(exc))}[/bold red]")
    raise typer.Exit(code=1)


RELEASE_ROOT_OPTION: Any = typer.Option(
    None,
    "--release-root",
    "-r",
    help="Release store root (default: HOSTRELEASE_RELEASE_ROOT or /opt/hostrelease).",
)
