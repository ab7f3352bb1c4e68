"""``hostrelease releases`` — list published releases."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from hostrelease.cli.common import RELEASE_ROOT_OPTION, build_config, console, fail
from hostrelease.core.controller import same_path
from hostrelease.core.errors import IntegrityError, ReleaseError
from hostrelease.core.hasher import tree_digest
from hostrelease.core.release_store import ReleaseStore


def releases_cmd(
    release_root: Path = RELEASE_ROOT_OPTION,
    digest: bool = typer.Option(
        False, "--digest", help="Also show a content digest of each release tree."
    ),
) -> None:
    """List every published release, marking current and previous."""
    try:
        config = build_config(release_root)
        store = ReleaseStore(config)
        store.validate_root()
        names = store.list_releases()
    except ReleaseError as exc:
        fail(exc)

    if not names:
        console.print(f"[dim]No releases published under {config.releases_dir}.[/dim]")
        return

    current = store.current()
    previous = store.previous()

    table = Table(title="Published Releases")
    table.add_column("Revision", style="cyan")
    table.add_column("Pointer", justify="center")
    table.add_column("Branch")
    table.add_column("Built")
    table.add_column("By")
    if digest:
        table.add_column("Digest", style="dim")

    for name in names:
        release_dir = store.releases_dir / name
        if same_path(release_dir, current):
            pointer = "[green]current[/green]"
        elif same_path(release_dir, previous):
            pointer = "[yellow]previous[/yellow]"
        else:
            pointer = ""

        try:
            manifest = store.read_manifest(release_dir)
        except IntegrityError:
            row = [name, pointer, "[red]corrupt manifest[/red]", "", ""]
        else:
            if manifest is None:
                row = [name, pointer, "[dim]?[/dim]", "", ""]
            else:
                row = [
                    name,
                    pointer,
                    manifest.branch,
                    f"{manifest.built_at:%Y-%m-%d %H:%M}",
                    manifest.built_by,
                ]
        if digest:
            row.append(tree_digest(release_dir)[:19])
        table.add_row(*row)

    console.print(table)
