"""
Synchronization executor.

Drives one synchronization run through its states:

    idle -> preflight -> awaiting_confirmation -> backing_up -> resetting
         -> replaying -> (conflict_halt | publishing -> published) -> done

Declining the confirmation ends the run in `declined` without touching the
repository. Every failure after `backing_up` leaves the backup branch as the
recovery path; nothing is rolled back automatically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from forksync.core.config.models import ForkSyncConfig
from forksync.core.errors import (
    ConflictUnresolvedError,
    DelegateUnavailableError,
    DirtyWorkingTreeError,
    ForkSyncError,
    MissingIdentityError,
    NotARepositoryError,
    PublishError,
    UnknownReferenceError,
    WrongBranchError,
)
from forksync.core.git.backend import GitError, VersionControlBackend
from forksync.core.sync.backup import BackupManager
from forksync.core.sync.models import (
    PreservedCommitSet,
    ReplayOutcome,
    RunContext,
    SyncPhase,
    SyncReport,
)
from forksync.core.sync.publish import VersionPublisher, marker_tag_name
from forksync.core.sync.selector import CommitSelector

if TYPE_CHECKING:
    from forksync.core.delegate.base import ConflictResolutionDelegate

logger = logging.getLogger(__name__)

# (level, message) where level is "info" or "warning"
Reporter = Callable[[str, str], None]


class ConfirmationPort(Protocol):
    """Go/no-go decision from the operator. Anything but an explicit yes is no."""

    def confirm(self, prompt: str) -> bool: ...


class AutoConfirm:
    """Confirmation port that always answers yes (for --yes and scripted runs)."""

    def confirm(self, prompt: str) -> bool:
        logger.info("Auto-confirmed: %s", prompt)
        return True


def _log_reporter(level: str, message: str) -> None:
    logger.log(logging.WARNING if level == "warning" else logging.INFO, message)


class SyncExecutor:
    """
    State machine for a single synchronization run.

    The executor owns all orchestration state for the run; the backend owns
    the commit graph. Components are injectable for testing.

    Example:
        >>> backend = GitBackend(repo_dir)
        >>> executor = SyncExecutor(backend, get_delegate("manual", backend), AutoConfirm())
        >>> ctx = executor.prepare_context("v0.15.0", repo_dir)
        >>> report = executor.run(ctx)
        >>> report.summary()
        'Synchronized to v0.15.0, 2 commits replayed, backup main-backup-20261019-142501'
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        delegate: ConflictResolutionDelegate,
        confirmation: ConfirmationPort,
        config: ForkSyncConfig | None = None,
        reporter: Reporter | None = None,
        backup_manager: BackupManager | None = None,
        publisher: VersionPublisher | None = None,
        selector: CommitSelector | None = None,
    ) -> None:
        self.backend = backend
        self.delegate = delegate
        self.confirmation = confirmation
        self.config = config or ForkSyncConfig()
        self.reporter = reporter or _log_reporter
        self.backup_manager = backup_manager or BackupManager(backend)
        self.publisher = publisher or VersionPublisher(
            backend,
            self.config.publish,
            origin_remote=self.config.branch.origin_remote,
        )
        self.selector = selector or CommitSelector(backend)
        self.report: SyncReport | None = None

    @property
    def phase(self) -> SyncPhase:
        """Current state of the last (or running) run."""
        return self.report.phase if self.report else SyncPhase.IDLE

    def _transition(self, phase: SyncPhase) -> None:
        assert self.report is not None
        logger.debug("Phase %s -> %s", self.report.phase.value, phase.value)
        self.report.phase = phase

    def _info(self, message: str) -> None:
        self.reporter("info", message)

    def _warn(self, message: str) -> None:
        self.reporter("warning", message)

    # ------------------------------------------------------------------
    # Context and upstream data
    # ------------------------------------------------------------------

    def prepare_context(self, target_reference: str, repo_dir: Path) -> RunContext:
        """
        Build the immutable context for a run.

        Raises:
            NotARepositoryError: If repo_dir is not a git repository.
            MissingIdentityError: If git has no user.name.
        """
        if not self.backend.is_repository():
            raise NotARepositoryError(str(repo_dir))

        identity = self.backend.config_get("user.name")
        if not identity:
            raise MissingIdentityError()

        return RunContext(
            repo_dir=repo_dir,
            operator_identity=identity,
            target_reference=target_reference,
            primary_branch=self.config.branch.primary,
        )

    def ensure_upstream_remote(self) -> None:
        """Register the upstream remote if it is missing."""
        upstream = self.config.upstream
        if upstream.remote in self.backend.remotes():
            return
        self._warn(
            f"No '{upstream.remote}' remote found. Adding "
            f"'git remote add {upstream.remote} {upstream.url}'"
        )
        self.backend.add_remote(upstream.remote, upstream.url)

    def fetch_upstream(self) -> None:
        self._info("Fetching upstream repository...")
        self.backend.fetch(self.config.upstream.remote, tags=True)

    def recent_tags(self, limit: int | None = None) -> list[str]:
        """Most recent tags, newest first, excluding this fork's marker tags."""
        limit = limit or self.config.git.recent_tags_limit
        prefix = self.config.publish.marker_prefix
        tags = [t for t in self.backend.list_tags() if not t.startswith(prefix)]
        return tags[:limit]

    def list_recent_tags(self) -> list[str]:
        """Register upstream if needed, fetch it, and list its recent tags."""
        self.ensure_upstream_remote()
        self.fetch_upstream()
        return self.recent_tags()

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------

    def preflight(self, ctx: RunContext) -> None:
        """
        Verify the repository may be synchronized.

        Checks run in a fixed order and stop at the first failure: dirty
        working tree, wrong branch, unknown reference.

        Raises:
            DirtyWorkingTreeError, WrongBranchError, UnknownReferenceError
        """
        self.ensure_upstream_remote()
        self.fetch_upstream()

        changed = self.backend.changed_paths()
        if changed:
            raise DirtyWorkingTreeError(changed)

        branch = self.backend.current_branch()
        self._info(f"Current branch: {branch}")
        if branch != ctx.primary_branch:
            raise WrongBranchError(branch, ctx.primary_branch)

        if self.backend.resolve(f"refs/tags/{ctx.target_reference}") is None:
            raise UnknownReferenceError(ctx.target_reference, self.recent_tags())

    def resolve_reset_target(self, ctx: RunContext) -> str:
        """
        Ref the branch will be reset to.

        Normally the upstream tag. When this fork was already synchronized to
        the same tag and the marker is still part of the branch history, the
        marker is used instead, so commits replayed by that earlier run are not
        replayed again and a repeated run is a no-op.
        """
        tag = ctx.target_reference
        marker = marker_tag_name(tag, self.config.publish.marker_prefix)
        marker_sha = self.backend.resolve(f"refs/tags/{marker}")
        if (
            marker_sha is not None
            and self.backend.is_ancestor(marker_sha, "HEAD")
            and self.backend.is_ancestor(f"refs/tags/{tag}", marker_sha)
        ):
            logger.info("Branch already contains %s; resetting to the marker", marker)
            return f"refs/tags/{marker}"
        return f"refs/tags/{tag}"

    def _announce_plan(self, ctx: RunContext, preserved: PreservedCommitSet) -> None:
        who = ctx.operator_identity
        self._info(f"Current author's name: {who}")
        if preserved.is_empty:
            self._info(f"No commits by {who} found. Simply resetting to {ctx.target_reference}")
        else:
            self._info(f"Found {preserved.count} commits by {who} to preserve:")
            for commit in preserved.commits:
                self._info(f"  {commit.oneline()}")

        self._info("This will:")
        self._info(f"1. Record commits authored by {who}")
        self._info(f"2. Hard reset {ctx.primary_branch} to upstream tag {ctx.target_reference}")
        if not preserved.is_empty:
            self._info(f"3. Cherry-pick the {who} commits on top")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, ctx: RunContext, dry_run: bool = False) -> SyncReport:
        """
        Synchronize the primary branch to `ctx.target_reference`.

        Args:
            ctx: Context from prepare_context().
            dry_run: Stop after preflight and selection without prompting.

        Returns:
            SyncReport in phase `done` or `declined`.

        Raises:
            PreconditionError: Before any mutation.
            BackupError: Before the reset.
            ConflictUnresolvedError: Replay left the working tree unclean.
            PublishError: Pushing the branch or marker tag failed.
            GitError: A git command failed unexpectedly.
        """
        self.report = SyncReport(
            target_reference=ctx.target_reference,
            dry_run=dry_run,
            started_at=datetime.now(),
        )
        report = self.report

        try:
            self._run(ctx, report, dry_run)
        except ConflictUnresolvedError:
            raise
        except (ForkSyncError, GitError) as e:
            report.message = str(e)
            self._transition(SyncPhase.FAILED)
            raise
        except KeyboardInterrupt:
            report.message = "Interrupted"
            self._transition(SyncPhase.FAILED)
            if report.backup:
                self._warn(f"Interrupted. Backup branch available: {report.backup.name}")
            raise
        finally:
            report.completed_at = datetime.now()

        return report

    def _run(self, ctx: RunContext, report: SyncReport, dry_run: bool) -> None:
        self._transition(SyncPhase.PREFLIGHT)
        self.preflight(ctx)

        reset_target = self.resolve_reset_target(ctx)
        report.reset_target = reset_target

        self._info(f"Finding commits authored by {ctx.operator_identity}...")
        preserved = self.selector.select("HEAD", ctx.operator_identity, exclude=reset_target)
        report.preserved = preserved

        if not preserved.is_empty and not self.delegate.is_available():
            raise DelegateUnavailableError(
                f"Conflict resolution delegate '{self.delegate.name}' is not available"
            )

        self._announce_plan(ctx, preserved)

        if dry_run:
            report.message = "Dry run complete - no changes made"
            self._transition(SyncPhase.DONE)
            return

        self._transition(SyncPhase.AWAITING_CONFIRMATION)
        prompt = f"Are you sure you want to update {ctx.primary_branch} to {ctx.target_reference}?"
        if not self.confirmation.confirm(prompt):
            self._warn("Update cancelled")
            report.message = "Update cancelled"
            self._transition(SyncPhase.DECLINED)
            return

        self._transition(SyncPhase.BACKING_UP)
        report.backup = self.backup_manager.create_backup(ctx.primary_branch)
        self._info(f"Created backup branch: {report.backup.name}")

        # Untracked files survive the reset; they are not replay leftovers
        preexisting = frozenset(self.backend.status().untracked_paths)

        self._transition(SyncPhase.RESETTING)
        self._info(f"Hard resetting to {ctx.target_reference}...")
        self.backend.reset_hard(reset_target)

        if not preserved.is_empty:
            self._replay(ctx, report, preserved, reset_target, preexisting)

        self._transition(SyncPhase.PUBLISHING)
        try:
            report.publish = self.publisher.publish(ctx.target_reference, ctx)
        except PublishError as e:
            # Local state stays as it is; the backup is the recovery path
            if e.backup_name is None:
                e.backup_name = report.backup.name
            raise
        self._transition(SyncPhase.PUBLISHED)

        publish = report.publish
        if not publish.manifest_found:
            self._warn(f"{self.config.publish.manifest} not found, skipping version update")
        elif publish.manifest_updated:
            self._info(f"Updated {self.config.publish.manifest} version to {publish.version}")
        self._info(f"Pushed {ctx.primary_branch} and tag {publish.marker_tag}")

        report.new_head = self.backend.resolve("HEAD")
        report.message = "Update completed successfully!"
        self._transition(SyncPhase.DONE)
        self._info(report.message)
        self._info(
            f"Your branch '{ctx.primary_branch}' is now based on upstream tag "
            f"'{ctx.target_reference}'"
        )
        self._info(f"Backup branch available as: {report.backup.name}")

    def _replay(
        self,
        ctx: RunContext,
        report: SyncReport,
        preserved: PreservedCommitSet,
        reset_target: str,
        preexisting_untracked: frozenset[str] = frozenset(),
    ) -> None:
        assert report.backup is not None
        self._transition(SyncPhase.REPLAYING)
        self._info("Cherry-picking unique commits...")

        outcome = self.delegate.replay(preserved, ctx)

        # The delegate's outcome is advisory; the working tree is the truth
        status = self.backend.status().ignoring_untracked(preexisting_untracked)
        if not status.is_clean:
            report.conflicted_paths = status.conflicted_paths
            self._transition(SyncPhase.CONFLICT_HALT)
            error = ConflictUnresolvedError(report.backup.name, status.conflicted_paths)
            report.message = str(error)
            raise error

        if outcome is ReplayOutcome.CONFLICTED:
            self._warn(
                f"Delegate '{self.delegate.name}' reported a problem but the working tree "
                "is clean; continuing"
            )

        replayed = self.selector.select("HEAD", ctx.operator_identity, exclude=reset_target)
        if replayed.count < preserved.count:
            self._warn(
                f"Only {replayed.count} of {preserved.count} preserved commits are on the "
                f"new branch head; compare with {report.backup.name} before relying on it"
            )
        else:
            self._info(f"Successfully cherry-picked all {ctx.operator_identity} commits!")
