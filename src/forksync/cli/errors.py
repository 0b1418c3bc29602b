"""
Standardized error handling and exit codes for the forksync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

from forksync.core.errors import (
    BackupError,
    ConflictUnresolvedError,
    DelegateUnavailableError,
    DirtyWorkingTreeError,
    ForkSyncError,
    MissingIdentityError,
    MissingToolchainError,
    NotARepositoryError,
    PublishError,
    UnknownReferenceError,
    WrongBranchError,
)

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for forksync."""

    SUCCESS = 0
    """Synchronized, or the operator declined the confirmation."""

    GENERAL_ERROR = 1
    """Precondition failure, missing dependency, conflict, publish or usage error."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Tag 'v9.9.9' not found in upstream repository",
        ...     solution="forksync  # to list recent tags",
        ... )
    """
    console.print(f"[red][ERROR][/red] {escape(problem)}")

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_usage_error() -> None:
    """Print error when more than one tag is given."""
    print_error(
        "Usage: forksync [tag]",
        reason="Run without arguments to list available tags. "
        "Run with a tag name to rebase to that tag.",
    )


def print_not_git_repo_error(path: str) -> None:
    print_error(
        f"Not in a git repository: {path}",
        solution="cd to your fork's working tree  # or pass --project-dir",
    )


def print_missing_identity_error() -> None:
    print_error(
        "No git identity configured",
        reason="Commits to preserve are found by matching git config user.name",
        solution='git config user.name "Your Name"',
    )


def print_dirty_working_tree_error(error: DirtyWorkingTreeError) -> None:
    print_error(
        f"Uncommitted changes detected ({len(error.changed_paths)} files)",
        reason="Please commit or stash them first.",
        solution="git commit -am 'WIP'  # or git stash",
    )


def print_wrong_branch_error(error: WrongBranchError) -> None:
    print_error(
        f"You are not on the '{error.expected}' branch "
        f"(current: {error.current or 'detached HEAD'})",
        solution=f"git switch {error.expected}",
    )


def print_unknown_reference_error(error: UnknownReferenceError) -> None:
    print_error(f"Tag '{error.reference}' not found in upstream repository")
    if error.recent:
        console.print("[green][INFO][/green] Available recent tags:")
        for tag in error.recent:
            console.print(f"  {escape(tag)}")


def print_missing_dependency_error(tool: str, detail: str | None = None) -> None:
    """Print error when a required tool is not installed."""
    print_error(
        f"Required tool not found: {tool}",
        reason=detail,
    )


def print_conflict_error(error: ConflictUnresolvedError) -> None:
    print_error(str(error))
    for path in error.conflicted_paths:
        console.print(f"  [yellow]{escape(path)}[/yellow]")
    console.print("[green][INFO][/green] Please resolve conflicts, then:")
    for step in error.recovery_steps():
        console.print(f"  {escape(step)}")
    console.print(f"[green][INFO][/green] Backup branch available: {escape(error.backup_name)}")


def print_publish_error(error: PublishError) -> None:
    print_error(
        str(error),
        reason="The local branch was updated but not published.",
        solution="git push --force  # once the remote is reachable",
    )
    if error.backup_name:
        console.print(
            f"[green][INFO][/green] Backup branch available: {escape(error.backup_name)}"
        )


def report_error(error: ForkSyncError) -> None:
    """Print the right message for any forksync error."""
    if isinstance(error, NotARepositoryError):
        print_not_git_repo_error(error.path)
    elif isinstance(error, MissingIdentityError):
        print_missing_identity_error()
    elif isinstance(error, DirtyWorkingTreeError):
        print_dirty_working_tree_error(error)
    elif isinstance(error, WrongBranchError):
        print_wrong_branch_error(error)
    elif isinstance(error, UnknownReferenceError):
        print_unknown_reference_error(error)
    elif isinstance(error, MissingToolchainError):
        print_missing_dependency_error("nvm", str(error))
    elif isinstance(error, DelegateUnavailableError):
        print_missing_dependency_error("conflict resolution delegate", str(error))
    elif isinstance(error, ConflictUnresolvedError):
        print_conflict_error(error)
    elif isinstance(error, PublishError):
        print_publish_error(error)
    elif isinstance(error, BackupError):
        print_error(str(error), reason="Nothing was reset; the branch is unchanged.")
    else:
        print_error(str(error))


__all__ = [
    "ExitCode",
    "print_conflict_error",
    "print_dirty_working_tree_error",
    "print_error",
    "print_missing_dependency_error",
    "print_missing_identity_error",
    "print_not_git_repo_error",
    "print_publish_error",
    "print_unknown_reference_error",
    "print_usage_error",
    "print_wrong_branch_error",
    "report_error",
]
