"""
Backup branch creation.

A backup branch is created before every reset. It is the recovery path for
every failure after that point, so backups are never overwritten and never
deleted by forksync.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from forksync.core.errors import BackupError
from forksync.core.git.backend import GitError, VersionControlBackend
from forksync.core.sync.models import BackupReference

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


class BackupManager:
    """
    Creates timestamped backup branches.

    Example:
        >>> manager = BackupManager(GitBackend(repo_dir))
        >>> backup = manager.create_backup("main")
        >>> backup.name
        'main-backup-20261019-142501'
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backend = backend
        self.clock = clock

    def backup_name(self, branch_name: str, created_at: datetime) -> str:
        """
        Choose a name that does not collide with an existing branch.

        The timestamp has one-second resolution; two runs within the same
        second get a numeric suffix instead of overwriting each other.
        """
        base = f"{branch_name}-backup-{created_at.strftime(BACKUP_TIMESTAMP_FORMAT)}"
        name = base
        suffix = 2
        while self.backend.branch_exists(name):
            name = f"{base}-{suffix}"
            suffix += 1
        return name

    def create_backup(self, branch_name: str) -> BackupReference:
        """
        Snapshot `branch_name` into a new backup branch.

        Raises:
            BackupError: If the branch can't be resolved or the backup can't
                be created. The caller must not continue to the reset.
        """
        sha = self.backend.resolve(branch_name)
        if sha is None:
            raise BackupError(f"Cannot back up '{branch_name}': branch does not resolve")

        created_at = self.clock()
        try:
            name = self.backup_name(branch_name, created_at)
            self.backend.create_branch(name, sha)
        except GitError as e:
            raise BackupError(f"Failed to create backup branch: {e.stderr or e}") from e

        # Verify the snapshot before anything destructive relies on it
        if self.backend.resolve(name) != sha:
            raise BackupError(f"Backup branch {name} does not point at {sha[:8]}")

        logger.info("Created backup branch %s at %s", name, sha[:8])
        return BackupReference(
            name=name,
            source_branch=branch_name,
            sha=sha,
            created_at=created_at,
        )
