"""
Data models for the version control backend.

Commits and working tree snapshots are read-only views of state owned by
git. forksync never builds them except by parsing git output (or, in tests,
from a fake backend).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Porcelain XY codes that mean "unmerged" (see git-status(1))
CONFLICT_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


class Commit(BaseModel):
    """
    A single commit as recorded by git.

    Example:
        >>> c = Commit(sha="a1b2c3d4e5", author_name="Jane", subject="Fix LEDs")
        >>> c.oneline()
        'a1b2c3d Fix LEDs'
    """

    model_config = ConfigDict(frozen=True)

    sha: str = Field(description="Full commit hash")
    author_name: str = Field(description="Author name exactly as recorded")
    author_email: str = Field(default="", description="Author email")
    subject: str = Field(default="", description="First line of the commit message")
    parents: tuple[str, ...] = Field(default=(), description="Parent commit hashes")

    @property
    def short_sha(self) -> str:
        """Abbreviated hash used in operator-facing output."""
        return self.sha[:7]

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    def oneline(self) -> str:
        """Format like `git log --oneline`."""
        return f"{self.short_sha} {self.subject}"


class StatusEntry(BaseModel):
    """One line of `git status --porcelain`."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Two-character XY status code")
    path: str

    @property
    def is_conflicted(self) -> bool:
        return self.code in CONFLICT_CODES

    @property
    def is_untracked(self) -> bool:
        return self.code == "??"


class WorkingTreeStatus(BaseModel):
    """
    Snapshot of the working tree, derived on demand and never persisted.

    `is_clean` is the property the executor trusts after replay, regardless
    of what the conflict resolution delegate reported.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[StatusEntry, ...] = ()
    cherry_pick_in_progress: bool = False

    @classmethod
    def from_porcelain(cls, output: str, cherry_pick_in_progress: bool = False) -> WorkingTreeStatus:
        """Parse `git status --porcelain` (v1) output."""
        entries = []
        for line in output.splitlines():
            if len(line) < 4:
                continue
            code, path = line[:2], line[3:]
            # Renames are reported as "old -> new"
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            entries.append(StatusEntry(code=code, path=path))
        return cls(entries=tuple(entries), cherry_pick_in_progress=cherry_pick_in_progress)

    @property
    def is_clean(self) -> bool:
        return not self.entries and not self.cherry_pick_in_progress

    @property
    def conflicted_paths(self) -> list[str]:
        return [e.path for e in self.entries if e.is_conflicted]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicted_paths)

    @property
    def untracked_paths(self) -> list[str]:
        return [e.path for e in self.entries if e.is_untracked]

    def ignoring_untracked(self, paths: set[str] | frozenset[str]) -> WorkingTreeStatus:
        """Copy without the untracked entries for `paths`."""
        entries = tuple(e for e in self.entries if not (e.is_untracked and e.path in paths))
        return self.model_copy(update={"entries": entries})
