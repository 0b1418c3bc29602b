"""
forksync CLI - Main application entry point.

This module sets up the Typer CLI application. forksync has a single
command, so the app runs it directly without a subcommand name.
"""

import typer

from forksync.cli import sync

# Create the main Typer app
app = typer.Typer(
    name="forksync",
    help="Rebase a fork onto an upstream release tag, keeping your own commits",
    no_args_is_help=False,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

app.command(name="sync")(sync.sync)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
