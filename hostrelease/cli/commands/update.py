"""``hostrelease update`` — publish and activate the latest source revision.

Clones the configured branch (or ``--ref``), runs preflight, publishes an
immutable release, deploys it, restarts the service if it was running,
verifies the deployed version, and only then repoints ``current``.
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
from hostrelease.core.update import UpdateController
from hostrelease.models.results import UpdateResult


def _summary(result: UpdateResult) -> Panel:
    lines = [
        "[bold green]Update complete![/bold green]",
        "",
        f"[bold]Revision:[/bold] {result.revision_id}",
        f"[bold]Branch:[/bold]   {result.branch}",
        f"[bold]Release:[/bold]  {result.release_dir}",
    ]
    if result.previous_release is not None:
        lines.append(f"[bold]Previous:[/bold] {result.previous_release}")
    if result.reused_release:
        lines.append("[dim]Release was already published; reused as-is.[/dim]")
    if result.service_state is not None:
        lines.append(f"[bold]Service:[/bold]  {result.service_state.value}")
    if result.verification is not None:
        lines.append(f"[bold]Verify:[/bold]   {result.verification.value}")
    lines += ["", f"[dim]Steps: {', '.join(result.steps_completed)} "
                  f"({result.duration_seconds:.2f}s)[/dim]"]
    return Panel(
        "\n".join(lines),
        title=f"[bold]Update {result.short_id}[/bold]",
        border_style="green",
        padding=(1, 2),
    )


def update_cmd(
    repo: str = typer.Option(
        None, "--repo", help="Source repository URL or path (remembered for next time)."
    ),
    branch: str = typer.Option(
        None, "--branch", "-b", help="Branch to deploy (remembered for next time)."
    ),
    ref: str = typer.Option(
        None, "--ref", help="Exact commit or ref to deploy instead of the branch tip."
    ),
    release_root: Path = RELEASE_ROOT_OPTION,
    preflight: str = typer.Option(
        None, "--preflight", help="Preflight command run inside the checkout."
    ),
    deploy: str = typer.Option(
        None, "--deploy", help="Deploy command replacing the release's deploy script."
    ),
    restart: str = typer.Option(
        None, "--restart", help="Restart command replacing restart-if-active."
    ),
    health: str = typer.Option(
        None, "--health", help="Health check command run after restart."
    ),
    skip_preflight: bool = typer.Option(
        False, "--skip-preflight", help="Do not run preflight checks."
    ),
    skip_restart: bool = typer.Option(
        False, "--skip-restart", help="Do not restart the service."
    ),
) -> None:
    """Update the host to a new source revision."""
    try:
        config = build_config(
            release_root,
            repo=repo,
            branch=branch,
            ref=ref,
            preflight_cmd=preflight,
            deploy_cmd=deploy,
            restart_cmd=restart,
            health_cmd=health,
            skip_preflight=flag(skip_preflight),
            skip_restart=flag(skip_restart),
        )
        result = UpdateController(config).run()
    except ReleaseError as exc:
        fail(exc)

    console.print(_summary(result))
