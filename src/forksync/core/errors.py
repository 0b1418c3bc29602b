"""
Exception hierarchy for forksync.

Every failure a synchronization run can hit is one of these. Precondition
errors are raised before any mutation of the repository; the rest are raised
after the backup branch exists, so the backup is always the recovery path.
"""

from __future__ import annotations


class ForkSyncError(Exception):
    """Base exception for forksync operations."""

    pass


# ==============================================================================
# Preconditions (zero side effects)
# ==============================================================================


class PreconditionError(ForkSyncError):
    """A check that must hold before the run is allowed to mutate anything."""

    pass


class NotARepositoryError(PreconditionError):
    """Raised when the project directory is not inside a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class MissingToolchainError(PreconditionError):
    """Raised when the required runtime version manager is not installed."""

    pass


class MissingIdentityError(PreconditionError):
    """Raised when git has no user.name configured."""

    def __init__(self) -> None:
        super().__init__("No git identity configured (git config user.name is empty)")


class DirtyWorkingTreeError(PreconditionError):
    """Raised when tracked files have staged or unstaged modifications."""

    def __init__(self, changed_paths: list[str]) -> None:
        super().__init__(
            f"You have uncommitted changes ({len(changed_paths)} files). "
            "Please commit or stash them first."
        )
        self.changed_paths = changed_paths


class WrongBranchError(PreconditionError):
    """Raised when the checked-out branch is not the primary branch."""

    def __init__(self, current: str, expected: str) -> None:
        super().__init__(
            f"You are on '{current or '(detached HEAD)'}', not the '{expected}' branch"
        )
        self.current = current
        self.expected = expected


class UnknownReferenceError(PreconditionError):
    """Raised when the requested tag does not exist in the fetched upstream data."""

    def __init__(self, reference: str, recent: list[str]) -> None:
        super().__init__(f"Tag '{reference}' not found in upstream repository")
        self.reference = reference
        self.recent = recent


class DelegateUnavailableError(PreconditionError):
    """Raised when the configured conflict resolution delegate cannot run."""

    pass


# ==============================================================================
# Failures after the backup exists
# ==============================================================================


class BackupError(ForkSyncError):
    """Raised when the backup branch could not be created."""

    pass


class ConflictUnresolvedError(ForkSyncError):
    """Raised when the working tree still has conflicts after replay."""

    def __init__(self, backup_name: str, conflicted_paths: list[str]) -> None:
        if conflicted_paths:
            detail = f"{len(conflicted_paths)} conflicted file(s)"
        else:
            detail = "working tree not clean"
        super().__init__(f"Replay left unresolved conflicts ({detail})")
        self.backup_name = backup_name
        self.conflicted_paths = conflicted_paths

    def recovery_steps(self) -> list[str]:
        """Commands the operator can use to finish or undo the run."""
        return [
            "git cherry-pick --continue  # after resolving the conflicts",
            "git cherry-pick --abort     # to cancel the remaining picks",
            f"git reset --hard {self.backup_name}  # to restore the pre-run branch",
        ]


class PublishError(ForkSyncError):
    """Raised when pushing the branch or the marker tag fails."""

    def __init__(self, step: str, detail: str, backup_name: str | None = None) -> None:
        super().__init__(f"Failed to {step}: {detail}")
        self.step = step
        self.detail = detail
        self.backup_name = backup_name


__all__ = [
    "BackupError",
    "ConflictUnresolvedError",
    "DelegateUnavailableError",
    "DirtyWorkingTreeError",
    "ForkSyncError",
    "MissingIdentityError",
    "MissingToolchainError",
    "NotARepositoryError",
    "PreconditionError",
    "PublishError",
    "UnknownReferenceError",
    "WrongBranchError",
]
