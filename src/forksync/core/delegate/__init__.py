"""
Conflict resolution delegates.

Importing this package registers the built-in delegates.

Example:
    >>> from forksync.core.delegate import get_delegate
    >>> delegate = get_delegate("manual", GitBackend(repo_dir))
    >>> delegate.replay(preserved, ctx)
    <ReplayOutcome.CLEAN: 'clean'>
"""

from .base import (
    ConflictResolutionDelegate,
    get_delegate,
    list_delegates,
    register_delegate,
)
from .claude import ClaudeDelegate
from .manual import ManualDelegate

__all__ = [
    "ClaudeDelegate",
    "ConflictResolutionDelegate",
    "ManualDelegate",
    "get_delegate",
    "list_delegates",
    "register_delegate",
]
