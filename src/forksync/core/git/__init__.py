"""
Version control backend for forksync.

Example:
    >>> from forksync.core.git import GitBackend
    >>> git = GitBackend(Path("."))
    >>> if not git.status().is_clean:
    ...     print("working tree has changes")
"""

from forksync.core.git.backend import GitBackend, GitError, VersionControlBackend
from forksync.core.git.models import Commit, StatusEntry, WorkingTreeStatus

__all__ = [
    "Commit",
    "GitBackend",
    "GitError",
    "StatusEntry",
    "VersionControlBackend",
    "WorkingTreeStatus",
]
