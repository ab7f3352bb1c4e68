"""Main Typer application — imports and registers all CLI commands.

Entry point: ``hostrelease`` (configured via pyproject.toml ``[project.scripts]``).

Commands: update, rollback, status, releases.
"""

from __future__ import annotations

import typer

from hostrelease.cli.commands.releases import releases_cmd
from hostrelease.cli.commands.rollback import rollback_cmd
from hostrelease.cli.commands.status import status_cmd
from hostrelease.cli.commands.update import update_cmd
from hostrelease.cli.common import configured_log_level, setup_logging

app = typer.Typer(
    name="hostrelease",
    help="hostrelease: atomic release publishing, deployment, and rollback.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log debug output, including every command run."
    ),
) -> None:
    """Configure logging before any subcommand runs."""
    setup_logging("DEBUG" if verbose else configured_log_level())


# Register subcommands
app.command(name="update", help="Fetch, publish, deploy, and switch to a new revision.")(update_cmd)
app.command(name="rollback", help="Redeploy a published release and switch to it.")(rollback_cmd)
app.command(name="status", help="Show the current and previous releases.")(status_cmd)
app.command(name="releases", help="List published releases.")(releases_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
