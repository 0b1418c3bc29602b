"""
Fork synchronization against an upstream release tag.

The executor resets the primary branch to an upstream tag, replays the
operator's own commits on top through a conflict resolution delegate, then
bumps the manifest version and publishes the branch and a marker tag.

Example:
    >>> from forksync.core.sync import AutoConfirm, SyncExecutor
    >>> executor = SyncExecutor(backend, delegate, AutoConfirm())
    >>> report = executor.run(executor.prepare_context("v0.15.0", repo_dir))
    >>> report.backup.name
    'main-backup-20261019-142501'
"""

from forksync.core.sync.backup import BackupManager
from forksync.core.sync.executor import AutoConfirm, ConfirmationPort, Reporter, SyncExecutor
from forksync.core.sync.models import (
    BackupReference,
    PreservedCommitSet,
    PublishResult,
    ReplayOutcome,
    RunContext,
    SyncPhase,
    SyncReport,
)
from forksync.core.sync.publish import (
    VersionPublisher,
    derive_version,
    marker_tag_name,
    update_manifest_version,
)
from forksync.core.sync.selector import CommitSelector

__all__ = [
    "AutoConfirm",
    "BackupManager",
    "BackupReference",
    "CommitSelector",
    "ConfirmationPort",
    "PreservedCommitSet",
    "PublishResult",
    "ReplayOutcome",
    "Reporter",
    "RunContext",
    "SyncExecutor",
    "SyncPhase",
    "SyncReport",
    "VersionPublisher",
    "derive_version",
    "marker_tag_name",
    "update_manifest_version",
]
