"""``hostrelease status`` — show what is active and what the runtime reports."""

from __future__ import annotations

from pathlib import Path

from rich.markup import escape
from rich.panel import Panel

from hostrelease.cli.common import RELEASE_ROOT_OPTION, build_config, console, fail
from hostrelease.core.errors import IntegrityError, ReleaseError, VerificationError
from hostrelease.core.hooks import (
    FileMarkerReader,
    MarkerReader,
    PosixHostIdentity,
    SudoMarkerReader,
)
from hostrelease.core.release_store import ReleaseStore
from hostrelease.core.verifier import VersionVerifier
from hostrelease.models.config import ReleaseConfig


def _marker_line(config: ReleaseConfig) -> str:
    identity = PosixHostIdentity()
    reader: MarkerReader = FileMarkerReader()
    if identity.is_privileged() and identity.user_exists(config.runtime_user):
        reader = SudoMarkerReader()
    try:
        marker = VersionVerifier(config, reader=reader, identity=identity).read_marker()
    except VerificationError as exc:
        return f"[yellow]unavailable[/yellow] [dim]({escape(exc.message)})[/dim]"
    line = f"{marker.revision_id} ({marker.display_id})"
    if marker.deployed_at:
        line += f" [dim]at {marker.deployed_at}[/dim]"
    return line


def status_cmd(release_root: Path = RELEASE_ROOT_OPTION) -> None:
    """Show the current and previous releases and the deployed version."""
    try:
        config = build_config(release_root)
        store = ReleaseStore(config)
        store.validate_root()
    except ReleaseError as exc:
        fail(exc)

    current = store.current()
    previous = store.previous()

    lines = [
        f"[bold]Root:[/bold]     {config.release_root}",
        f"[bold]Current:[/bold]  {current or '[dim]none[/dim]'}",
        f"[bold]Previous:[/bold] {previous or '[dim]none[/dim]'}",
    ]

    if current is not None:
        try:
            manifest = store.read_manifest(current)
        except IntegrityError as exc:
            lines.append(f"[bold]Manifest:[/bold] [red]{escape(exc.message)}[/red]")
        else:
            if manifest is None:
                lines.append("[bold]Manifest:[/bold] [dim]missing[/dim]")
            else:
                lines += [
                    f"[bold]Branch:[/bold]   {manifest.branch}",
                    f"[bold]Source:[/bold]   {manifest.source_repo}",
                    f"[bold]Built:[/bold]    {manifest.built_at:%Y-%m-%dT%H:%M:%SZ}"
                    f" by {manifest.built_by}",
                ]

    lines.append(f"[bold]Deployed:[/bold] {_marker_line(config)}")
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Release Status[/bold]",
            border_style="cyan",
            padding=(1, 2),
        )
    )
