"""
Data models for fork synchronization.

Defines Pydantic models for the run context, the preserved commit set,
backups, publish results and the final run report.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from forksync.core.git.models import Commit


class SyncPhase(str, Enum):
    """States of the synchronization state machine."""

    IDLE = "idle"
    PREFLIGHT = "preflight"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    BACKING_UP = "backing_up"
    RESETTING = "resetting"
    REPLAYING = "replaying"
    CONFLICT_HALT = "conflict_halt"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    DONE = "done"
    DECLINED = "declined"
    FAILED = "failed"


class ReplayOutcome(str, Enum):
    """What a conflict resolution delegate claims happened."""

    CLEAN = "clean"
    CONFLICTED = "conflicted"


class RunContext(BaseModel):
    """
    Everything a component needs to know about the current run.

    Passed explicitly to every component instead of reading the working
    directory or git identity from ambient state.
    """

    model_config = ConfigDict(frozen=True)

    repo_dir: Path = Field(description="Root of the fork's working tree")
    operator_identity: str = Field(description="git user.name of the operator")
    target_reference: str = Field(description="Upstream tag to synchronize to")
    primary_branch: str = Field(default="main", description="Branch being synchronized")


class PreservedCommitSet(BaseModel):
    """
    Commits authored by the operator that must survive the reset.

    Ordered oldest first, matching ancestry order, because later commits
    may depend on earlier ones. Computed once per run and never modified.
    """

    model_config = ConfigDict(frozen=True)

    author_identity: str
    commits: tuple[Commit, ...] = ()

    @property
    def count(self) -> int:
        return len(self.commits)

    @property
    def is_empty(self) -> bool:
        return not self.commits

    @property
    def shas(self) -> list[str]:
        return [c.sha for c in self.commits]


class BackupReference(BaseModel):
    """A branch snapshot of the primary branch taken before the reset."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Backup branch name")
    source_branch: str = Field(description="Branch that was backed up")
    sha: str = Field(description="Commit the backup points at")
    created_at: datetime


class PublishResult(BaseModel):
    """Outcome of the version bump and push steps."""

    version: str | None = Field(default=None, description="Version written to the manifest")
    manifest_found: bool = True
    manifest_updated: bool = False
    version_commit: str | None = Field(
        default=None, description="SHA of the version bump commit, if one was made"
    )
    branch_pushed: bool = False
    marker_tag: str | None = None
    marker_pushed: bool = False


class SyncReport(BaseModel):
    """
    Result of a synchronization run.

    Provides detailed feedback about how far the run got and what it left
    behind, including the backup branch that can restore the pre-run state.
    """

    phase: SyncPhase = SyncPhase.IDLE
    target_reference: str
    reset_target: str | None = Field(
        default=None,
        description="Ref the branch was reset to (the tag, or its marker on re-runs)",
    )
    preserved: PreservedCommitSet | None = None
    backup: BackupReference | None = None
    new_head: str | None = None
    publish: PublishResult | None = None
    conflicted_paths: list[str] = Field(default_factory=list)
    dry_run: bool = False
    message: str = ""

    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def succeeded(self) -> bool:
        return self.phase in (SyncPhase.DONE, SyncPhase.DECLINED)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        if self.phase == SyncPhase.DECLINED:
            return "Update cancelled"
        if self.dry_run:
            return f"Dry run: would synchronize to {self.target_reference}"
        if not self.succeeded:
            return f"Synchronization to {self.target_reference} stopped at {self.phase.value}"

        parts = [f"Synchronized to {self.target_reference}"]
        if self.preserved is not None and not self.preserved.is_empty:
            parts.append(f"{self.preserved.count} commits replayed")
        if self.backup:
            parts.append(f"backup {self.backup.name}")
        return ", ".join(parts)
