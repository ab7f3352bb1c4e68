"""``hostrelease rollback [TARGET]`` — switch back to a published release.

TARGET is ``previous`` (the default) or a revision-id, abbreviated to any
prefix that names exactly one release.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from hostrelease.cli.common import (
    RELEASE_ROOT_OPTION,
    build_config,
    console,
    fail,
    flag,
)
from hostrelease.core.errors import ReleaseError
from hostrelease.core.release_store import PREVIOUS_TOKEN
from hostrelease.core.rollback import RollbackController
from hostrelease.models.results import RunStatus


def rollback_cmd(
    target: str = typer.Argument(
        PREVIOUS_TOKEN,
        help="'previous' or a (prefix of a) published revision id.",
    ),
    release_root: Path = RELEASE_ROOT_OPTION,
    deploy: str = typer.Option(
        None, "--deploy", help="Deploy command replacing the release's deploy script."
    ),
    restart: str = typer.Option(
        None, "--restart", help="Restart command replacing restart-if-active."
    ),
    health: str = typer.Option(
        None, "--health", help="Health check command run after restart."
    ),
    skip_restart: bool = typer.Option(
        False, "--skip-restart", help="Do not restart the service."
    ),
) -> None:
    """Roll back to an already-published release."""
    try:
        config = build_config(
            release_root,
            deploy_cmd=deploy,
            restart_cmd=restart,
            health_cmd=health,
            skip_restart=flag(skip_restart),
        )
        result = RollbackController(config).run(target)
    except ReleaseError as exc:
        fail(exc)

    if result.status is RunStatus.NOOP:
        console.print(
            f"[bold yellow]Already on {result.release_dir}; nothing to do.[/bold yellow]"
        )
        return

    lines = [
        "[bold green]Rollback complete![/bold green]",
        "",
        f"[bold]Revision:[/bold] {result.revision_id}",
        f"[bold]Current:[/bold]  {result.release_dir}",
        f"[bold]Previous:[/bold] {result.previous_release}",
    ]
    if result.verification is not None:
        lines.append(f"[bold]Verify:[/bold]   {result.verification.value}")
    console.print(
        Panel(
            "\n".join(lines),
            title=f"[bold]Rollback to {result.short_id}[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
