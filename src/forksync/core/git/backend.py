"""
Version control backend protocol and the subprocess-based git implementation.

The synchronization algorithm only talks to `VersionControlBackend`. The
production implementation, `GitBackend`, shells out to the `git` CLI with a
timeout on every call; unit tests substitute an in-memory fake.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from forksync.core.git.models import Commit, WorkingTreeStatus

logger = logging.getLogger(__name__)

# Field and record separators for parsing `git log` output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%ae", "%P", "%s"]) + _RECORD_SEP


class GitError(Exception):
    """Exception raised when a git operation fails."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str = "",
        returncode: int | None = None,
    ):
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


@runtime_checkable
class VersionControlBackend(Protocol):
    """
    Capability interface over the versioned source tree.

    Implementations own the commit graph and are the single source of truth
    for every reference value. All calls are blocking.
    """

    def is_repository(self) -> bool: ...

    def current_branch(self) -> str: ...

    def config_get(self, key: str) -> str | None: ...

    def remotes(self) -> list[str]: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def fetch(self, remote: str, tags: bool = True) -> None: ...

    def list_tags(self, limit: int | None = None) -> list[str]: ...

    def resolve(self, ref: str) -> str | None: ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool: ...

    def log(self, head: str, exclude: str | None = None) -> list[Commit]: ...

    def changed_paths(self) -> list[str]: ...

    def status(self) -> WorkingTreeStatus: ...

    def branch_exists(self, name: str) -> bool: ...

    def create_branch(self, name: str, start_point: str = "HEAD") -> None: ...

    def reset_hard(self, ref: str) -> None: ...

    def cherry_pick(self, sha: str, mainline: int | None = None) -> bool: ...

    def commit_paths(self, paths: list[str], message: str) -> str: ...

    def tag(self, name: str, ref: str = "HEAD", force: bool = False) -> None: ...

    def push(self, remote: str, refspec: str, force: bool = False) -> None: ...


class GitBackend:
    """
    `VersionControlBackend` backed by the git CLI.

    Example:
        >>> git = GitBackend(Path("."))
        >>> git.current_branch()
        'main'
        >>> [c.oneline() for c in git.log("HEAD")][:1]
        ['1a2b3c4 Initial commit']
    """

    def __init__(
        self,
        repo_dir: Path | None = None,
        timeout: float | None = 120,
        network_timeout: float | None = 600,
    ) -> None:
        """
        Initialize the backend.

        Args:
            repo_dir: Working directory of the repository (defaults to cwd).
            timeout: Seconds allowed for local git commands (None = no limit).
            network_timeout: Seconds allowed for fetch and push (None = no limit).
        """
        self.repo_dir = (repo_dir or Path.cwd()).resolve()
        self.timeout = timeout
        self.network_timeout = network_timeout

    def _run_git(
        self,
        args: list[str],
        *,
        check: bool = True,
        strip: bool = True,
        network: bool = False,
    ) -> str:
        """
        Run a git command and return its stdout.

        Args:
            args: Git command arguments (without "git" prefix).
            check: Whether to raise on non-zero exit code.
            strip: Whether to strip surrounding whitespace from stdout.
            network: Use the network timeout instead of the local one.

        Returns:
            Command stdout as string.

        Raises:
            GitError: If the command fails and check=True, times out, or git
                is not installed.
        """
        cmd = ["git"] + args
        limit = self.network_timeout if network else self.timeout

        logger.debug("Running git command: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                timeout=limit,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(
                f"Git command timed out after {limit}s: {' '.join(cmd)}", command=cmd
            ) from e
        except FileNotFoundError as e:
            raise GitError("git not found in PATH", command=cmd) from e

        if check and result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else ""
            raise GitError(
                f"Git command failed: {' '.join(cmd)}",
                command=cmd,
                stderr=stderr,
                returncode=result.returncode,
            )

        stdout = result.stdout or ""
        return stdout.strip() if strip else stdout

    def _succeeds(self, args: list[str]) -> bool:
        """Run a git command and report whether it exited zero."""
        try:
            self._run_git(args)
            return True
        except GitError:
            return False

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def is_repository(self) -> bool:
        return self._succeeds(["rev-parse", "--git-dir"])

    def current_branch(self) -> str:
        """Name of the checked-out branch, or "" for a detached HEAD."""
        return self._run_git(["branch", "--show-current"])

    def config_get(self, key: str) -> str | None:
        value = self._run_git(["config", "--get", key], check=False)
        return value or None

    def remotes(self) -> list[str]:
        return [line for line in self._run_git(["remote"]).splitlines() if line]

    def list_tags(self, limit: int | None = None) -> list[str]:
        """Tags sorted newest version first."""
        tags = [
            line
            for line in self._run_git(["tag", "-l", "--sort=-version:refname"]).splitlines()
            if line
        ]
        return tags[:limit] if limit is not None else tags

    def resolve(self, ref: str) -> str | None:
        """Resolve a ref to the commit it points at, or None if it doesn't exist."""
        try:
            return self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        except GitError:
            return None

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self._succeeds(["merge-base", "--is-ancestor", ancestor, descendant])

    def log(self, head: str, exclude: str | None = None) -> list[Commit]:
        """
        List commits reachable from `head`, oldest first.

        Args:
            head: Ref to walk from.
            exclude: Optional ref whose history is left out (`exclude..head`).
        """
        rev_range = f"{exclude}..{head}" if exclude else head
        output = self._run_git(
            ["log", "--reverse", f"--pretty=format:{_LOG_FORMAT}", rev_range],
            strip=False,
        )

        commits = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            parts = record.split(_FIELD_SEP)
            if len(parts) < 5:
                logger.warning("Skipping unparseable log record: %r", record)
                continue
            sha, author_name, author_email, parents, subject = parts[:5]
            commits.append(
                Commit(
                    sha=sha,
                    author_name=author_name,
                    author_email=author_email,
                    subject=subject,
                    parents=tuple(parents.split()),
                )
            )
        return commits

    def changed_paths(self) -> list[str]:
        """Tracked files with unstaged or staged modifications."""
        unstaged = self._run_git(["diff", "--name-only"]).splitlines()
        staged = self._run_git(["diff", "--cached", "--name-only"]).splitlines()
        return sorted({p for p in unstaged + staged if p})

    def status(self) -> WorkingTreeStatus:
        output = self._run_git(["status", "--porcelain"], strip=False)
        return WorkingTreeStatus.from_porcelain(
            output, cherry_pick_in_progress=self._cherry_pick_in_progress()
        )

    def _cherry_pick_in_progress(self) -> bool:
        return self.resolve("CHERRY_PICK_HEAD") is not None

    def branch_exists(self, name: str) -> bool:
        return self._succeeds(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_remote(self, name: str, url: str) -> None:
        self._run_git(["remote", "add", name, url])

    def fetch(self, remote: str, tags: bool = True) -> None:
        args = ["fetch", remote]
        if tags:
            args.append("--tags")
        self._run_git(args, network=True)

    def create_branch(self, name: str, start_point: str = "HEAD") -> None:
        self._run_git(["branch", name, start_point])

    def reset_hard(self, ref: str) -> None:
        self._run_git(["reset", "--hard", ref])

    def cherry_pick(self, sha: str, mainline: int | None = None) -> bool:
        """
        Cherry-pick a single commit onto HEAD.

        Args:
            sha: Commit to apply.
            mainline: Parent number to diff against when `sha` is a merge.

        Returns:
            True if the pick applied cleanly, False if it stopped on a conflict.

        Raises:
            GitError: If the pick failed for a reason other than a conflict.
        """
        try:
            args = ["cherry-pick"]
            if mainline is not None:
                args.extend(["-m", str(mainline)])
            self._run_git(args + [sha])
            return True
        except GitError:
            if self._cherry_pick_in_progress():
                logger.info("Cherry-pick of %s stopped on a conflict", sha[:8])
                return False
            raise

    def commit_paths(self, paths: list[str], message: str) -> str:
        """Stage `paths`, commit them, and return the new HEAD hash."""
        self._run_git(["add", "--"] + paths)
        self._run_git(["commit", "-m", message])
        return self._run_git(["rev-parse", "HEAD"])

    def tag(self, name: str, ref: str = "HEAD", force: bool = False) -> None:
        args = ["tag"]
        if force:
            args.append("-f")
        self._run_git(args + [name, ref])

    def push(self, remote: str, refspec: str, force: bool = False) -> None:
        args = ["push"]
        if force:
            args.append("--force")
        self._run_git(args + [remote, refspec], network=True)
