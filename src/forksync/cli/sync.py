"""
The forksync command.

Rebases the primary branch of a fork onto an upstream release tag while
keeping the operator's own commits on top.
"""

import logging
import sys
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from forksync import __version__
from forksync.cli.errors import (
    ExitCode,
    print_error,
    print_usage_error,
    report_error,
)
from forksync.core.config import ForkSyncConfig, load_config
from forksync.core.config.env import load_layered_env
from forksync.core.delegate import ClaudeDelegate, ConflictResolutionDelegate, get_delegate
from forksync.core.errors import ForkSyncError, NotARepositoryError
from forksync.core.git import GitBackend, GitError
from forksync.core.sync import AutoConfirm, SyncExecutor, SyncPhase, SyncReport
from forksync.core.toolchain import require_toolchain
from forksync.utils.project import find_repo_root

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the forksync command.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def console_reporter(level: str, message: str) -> None:
    """Print executor progress the way the operator expects to read it."""
    if level == "warning":
        console.print(f"[yellow][WARNING][/yellow] {escape(message)}")
    else:
        console.print(f"[green][INFO][/green] {escape(message)}")


class TyperConfirmation:
    """Ask the operator on the terminal. The default answer is no."""

    def confirm(self, prompt: str) -> bool:
        return typer.confirm(prompt, default=False)


def build_delegate(
    name: str,
    backend: GitBackend,
    config: ForkSyncConfig,
) -> ConflictResolutionDelegate:
    delegate = get_delegate(name, backend, config.delegate)
    if isinstance(delegate, ClaudeDelegate):
        delegate.on_output = lambda text: console.print(escape(text), style="dim")
    return delegate


def version_callback(value: bool) -> None:
    if value:
        console.print(f"forksync version {__version__}")
        raise typer.Exit(ExitCode.SUCCESS)


def print_recent_tags(tags: list[str]) -> None:
    console.print("[green][INFO][/green] Available recent tags:")
    for tag in tags:
        console.print(f"  {escape(tag)}")
    console.print()
    console.print("Usage: forksync <tag>")
    if tags:
        console.print(f"Example: forksync {escape(tags[0])}")


def print_report(report: SyncReport) -> None:
    if report.phase is SyncPhase.DECLINED:
        return
    if report.dry_run:
        console.print(f"[cyan]{escape(report.summary())}[/cyan]")
        console.print("[dim]Dry run - no changes made[/dim]")
        return
    duration = report.duration_seconds
    suffix = f" in {duration:.1f}s" if duration is not None else ""
    console.print(f"[bold green]✓[/bold green] {escape(report.summary())}{suffix}")


def sync(
    refs: list[str] | None = typer.Argument(
        None,
        metavar="[TAG]",
        help="Upstream tag to rebase onto. Omit to list recent tags.",
        show_default=False,
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would happen without changing anything",
    ),
    delegate_name: str | None = typer.Option(
        None,
        "--delegate",
        help="Conflict resolution delegate (claude, manual)",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        "-C",
        help="Fork working tree (defaults to the repository containing cwd)",
        file_okay=False,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show forksync version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    Rebase your fork onto an upstream release tag.

    Fetches upstream, hard resets the primary branch to TAG, replays the
    commits you authored on top, bumps the manifest version and force-pushes
    the branch together with a marker tag. A backup branch is created before
    anything is reset.

    Examples:
        forksync                    # List recent upstream tags
        forksync v0.15.0            # Rebase onto v0.15.0
        forksync v0.15.0 --dry-run  # Preview only
        forksync v0.15.0 -y         # No confirmation prompt
    """
    setup_logging(debug)

    refs = refs or []
    if len(refs) > 1:
        print_usage_error()
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    start = (project_dir or Path.cwd()).resolve()
    repo_dir = find_repo_root(start) or start
    logger.debug("Repository root: %s", repo_dir)

    # Precedence: OS env > project .forksync.env > user .env
    loaded = load_layered_env(project_dir=repo_dir)
    if loaded:
        logger.debug("Loaded from env files: %s", ", ".join(loaded))

    try:
        config = load_config(repo_dir)
    except ValidationError as e:
        print_error("Invalid forksync configuration", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e

    backend = GitBackend(
        repo_dir,
        timeout=config.git.timeout_seconds,
        network_timeout=config.git.network_timeout_seconds,
    )

    try:
        delegate = build_delegate(delegate_name or config.delegate.name, backend, config)
    except ValueError as e:
        print_error(str(e), solution="forksync --delegate manual")
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e

    confirmation = AutoConfirm() if yes else TyperConfirmation()
    executor = SyncExecutor(
        backend,
        delegate,
        confirmation,
        config=config,
        reporter=console_reporter,
    )

    try:
        require_toolchain(config.toolchain)

        if not refs:
            if not backend.is_repository():
                raise NotARepositoryError(str(repo_dir))
            print_recent_tags(executor.list_recent_tags())
            raise typer.Exit(ExitCode.GENERAL_ERROR)

        ctx = executor.prepare_context(refs[0], repo_dir)
        report = executor.run(ctx, dry_run=dry_run)
    except ForkSyncError as e:
        report_error(e)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except GitError as e:
        print_error(str(e), reason=e.stderr or None)
        if executor.report and executor.report.backup:
            console.print(
                f"[green][INFO][/green] Backup branch available: {escape(executor.report.backup.name)}"
            )
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(ExitCode.SIGINT) from None

    print_report(report)
