"""
Commit preservation selector.

Finds the commits the operator authored on the fork so they can be replayed
after the branch is reset to upstream.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from forksync.core.git.backend import VersionControlBackend
from forksync.core.sync.models import PreservedCommitSet

logger = logging.getLogger(__name__)

# Subject of the commit the publisher makes when it bumps the manifest.
# Every sync regenerates it, so a previous one is never replayed.
VERSION_BUMP_PREFIX = "[forksync] Set version to "


class CommitSelector:
    """
    Selects the operator's commits from a branch's history.

    Authorship must match exactly as recorded on each commit; there is no
    substring or case-insensitive matching. `git log --author` treats its
    argument as a regex, so the filter is applied here instead.

    Example:
        >>> selector = CommitSelector(GitBackend(repo_dir))
        >>> preserved = selector.select("HEAD", "Jane Doe", exclude="v0.15.0")
        >>> preserved.shas
        ['1a2b3c...', '4d5e6f...']
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        skip_subject_prefixes: Iterable[str] = (VERSION_BUMP_PREFIX,),
    ) -> None:
        self.backend = backend
        self.skip_subject_prefixes = tuple(skip_subject_prefixes)

    def select(
        self,
        branch_head: str,
        author_identity: str,
        exclude: str | None = None,
    ) -> PreservedCommitSet:
        """
        Return commits by `author_identity` reachable from `branch_head`.

        Args:
            branch_head: Ref or SHA of the branch tip.
            author_identity: Author name to match verbatim.
            exclude: Optional ref whose history is already part of the new base;
                commits reachable from it are not selected.

        Returns:
            PreservedCommitSet ordered oldest first (possibly empty).
        """
        history = self.backend.log(branch_head, exclude=exclude)

        selected = []
        for commit in history:
            if commit.author_name != author_identity:
                continue
            if commit.subject.startswith(self.skip_subject_prefixes):
                logger.debug("Skipping generated commit %s", commit.oneline())
                continue
            selected.append(commit)

        logger.info(
            "Selected %d of %d commits authored by %s",
            len(selected),
            len(history),
            author_identity,
        )
        return PreservedCommitSet(author_identity=author_identity, commits=tuple(selected))

