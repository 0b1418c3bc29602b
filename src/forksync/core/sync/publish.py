"""
Version bump and publishing.

After a clean replay the manifest version is set from the upstream tag, then
the branch and a namespaced marker tag are force-pushed to the fork's remote.
Push failures leave the local repository as it is; the backup branch is the
recovery path.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from forksync.core.config.models import PublishConfig
from forksync.core.errors import PublishError
from forksync.core.git.backend import GitError, VersionControlBackend
from forksync.core.sync.models import PublishResult, RunContext
from forksync.core.sync.selector import VERSION_BUMP_PREFIX

logger = logging.getLogger(__name__)

# "version": "<anything without a quote>", tolerant of spacing around the colon
VERSION_FIELD_PATTERN = re.compile(r'("version"\s*:\s*")[^"]*(")')


def derive_version(reference: str, prefix: str = "v") -> str:
    """
    Derive the manifest version from a tag name.

    Example:
        >>> derive_version("v0.15.0")
        '0.15.0'
        >>> derive_version("0.15.0")
        '0.15.0'
    """
    if prefix and reference.startswith(prefix):
        return reference[len(prefix):]
    return reference


def update_manifest_version(path: Path, version: str) -> bool:
    """
    Rewrite the first `"version": "..."` value in `path` in place.

    Only the value between the quotes changes; every other byte of the file
    is preserved.

    Returns:
        True if the file content changed, False if the version was already set.

    Raises:
        ValueError: If the file has no version field.
    """
    content = path.read_bytes().decode("utf-8")
    if not VERSION_FIELD_PATTERN.search(content):
        raise ValueError(f"No \"version\" field in {path}")

    updated = VERSION_FIELD_PATTERN.sub(
        lambda m: f"{m.group(1)}{version}{m.group(2)}", content, count=1
    )
    if updated == content:
        return False

    path.write_bytes(updated.encode("utf-8"))
    return True


def marker_tag_name(reference: str, prefix: str = "ph/") -> str:
    """Namespaced tag marking which upstream tag the fork is synced to."""
    return f"{prefix}{reference}"


class VersionPublisher:
    """
    Updates the version descriptor and publishes the branch and marker tag.

    Example:
        >>> publisher = VersionPublisher(GitBackend(repo_dir))
        >>> result = publisher.publish("v0.15.0", ctx)
        >>> result.marker_tag
        'ph/v0.15.0'
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        config: PublishConfig | None = None,
        origin_remote: str = "origin",
    ) -> None:
        self.backend = backend
        self.config = config or PublishConfig()
        self.origin_remote = origin_remote

    def bump_version(self, target_reference: str, ctx: RunContext, result: PublishResult) -> None:
        """Set the manifest version (steps 1-3). Missing manifest is a warning."""
        version = derive_version(target_reference, self.config.version_prefix)
        result.version = version

        manifest = ctx.repo_dir / self.config.manifest
        if not manifest.is_file():
            logger.info("%s not found, skipping version update", self.config.manifest)
            result.manifest_found = False
            return

        try:
            changed = update_manifest_version(manifest, version)
        except ValueError as e:
            logger.warning("%s, skipping version update", e)
            return

        result.manifest_updated = changed
        if not changed:
            logger.info("%s already at version %s", self.config.manifest, version)
            return

        logger.info("Updated %s version to %s", self.config.manifest, version)
        if self.config.commit_version_bump:
            result.version_commit = self.backend.commit_paths(
                [self.config.manifest], f"{VERSION_BUMP_PREFIX}{version}"
            )

    def publish(self, target_reference: str, ctx: RunContext) -> PublishResult:
        """
        Bump the version, then force-push the branch and the marker tag.

        Raises:
            PublishError: If committing the bump, tagging or either push fails.
        """
        result = PublishResult()

        try:
            self.bump_version(target_reference, ctx, result)
        except GitError as e:
            raise PublishError("commit the version bump", e.stderr or str(e)) from e

        branch = ctx.primary_branch
        try:
            self.backend.push(self.origin_remote, branch, force=True)
        except GitError as e:
            raise PublishError(
                f"push {branch} to {self.origin_remote}", e.stderr or str(e)
            ) from e
        result.branch_pushed = True
        logger.info("Pushed %s to %s", branch, self.origin_remote)

        marker = marker_tag_name(target_reference, self.config.marker_prefix)
        try:
            self.backend.tag(marker, "HEAD", force=True)
            result.marker_tag = marker
            self.backend.push(self.origin_remote, f"refs/tags/{marker}", force=True)
        except GitError as e:
            raise PublishError(f"publish tag {marker}", e.stderr or str(e)) from e
        result.marker_pushed = True
        logger.info("Pushed tag %s to %s", marker, self.origin_remote)

        return result
