"""
Manual conflict resolution delegate.

Cherry-picks each preserved commit with plain git and stops at the first
conflict, leaving it in the working tree for the operator.
"""

from __future__ import annotations

import logging

from forksync.core.config.models import DelegateConfig
from forksync.core.git.backend import VersionControlBackend
from forksync.core.sync.models import PreservedCommitSet, ReplayOutcome, RunContext

from .base import register_delegate

logger = logging.getLogger(__name__)


@register_delegate("manual")
class ManualDelegate:
    """Replays commits through the backend; resolves nothing itself."""

    def __init__(self, backend: VersionControlBackend, config: DelegateConfig) -> None:
        self.backend = backend
        self.config = config

    @property
    def name(self) -> str:
        return "manual"

    def is_available(self) -> bool:
        return True

    def replay(self, commits: PreservedCommitSet, ctx: RunContext) -> ReplayOutcome:
        for commit in commits.commits:
            logger.info("Cherry-picking %s", commit.oneline())
            mainline = 1 if commit.is_merge else None
            if not self.backend.cherry_pick(commit.sha, mainline=mainline):
                logger.warning("Conflict while cherry-picking %s", commit.oneline())
                return ReplayOutcome.CONFLICTED
        return ReplayOutcome.CLEAN
