"""hostrelease CLI — Typer-based command-line interface.

Provides the ``hostrelease`` command with subcommands to update to a new
revision, roll back to a published release, and inspect the release store.

Progress is logged to stderr through Rich; summaries are printed to stdout.
"""
