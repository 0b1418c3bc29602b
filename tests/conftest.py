"""
Pytest configuration and shared fixtures.

Provides an in-memory version control backend, scripted delegates and
confirmations, and builders for real upstream/fork/origin git repositories.
"""

import json
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import pytest

from forksync.core.config import clear_cache
from forksync.core.git import Commit, GitError, WorkingTreeStatus
from forksync.core.git.models import StatusEntry
from forksync.core.sync.models import PreservedCommitSet, ReplayOutcome, RunContext

OPERATOR = "Test User"
UPSTREAM_AUTHOR = "Upstream Dev"

MUTATING_CALLS = {
    "add_remote",
    "create_branch",
    "reset_hard",
    "cherry_pick",
    "commit_paths",
    "tag",
    "push",
}


# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path_factory, monkeypatch):
    """Keep user config, git global config and FORKSYNC_* vars out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in list(os.environ):
        if key.startswith("FORKSYNC_"):
            monkeypatch.delenv(key)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# In-memory backend
# ==============================================================================


def make_commit(sha: str, author: str = OPERATOR, subject: str | None = None, **kwargs) -> Commit:
    """Build a Commit with a 40-character sha derived from `sha`."""
    return Commit(
        sha=sha.ljust(40, "0"),
        author_name=author,
        author_email=f"{author.split()[0].lower()}@example.com",
        subject=subject or f"Commit {sha}",
        **kwargs,
    )


class FakeBackend:
    """
    VersionControlBackend that keeps the commit graph in dictionaries.

    `history` is what `log("HEAD")` returns; `excluded[ref]` lists the shas
    reachable from `ref` so `log(head, exclude=ref)` can leave them out.
    Every call is recorded in `calls`.
    """

    def __init__(self) -> None:
        self.repository = True
        self.branch = "main"
        self.identity: str | None = OPERATOR
        self.remote_names = ["origin", "upstream"]
        self.tags: list[str] = []
        self.refs: dict[str, str] = {"HEAD": "h" * 40, "main": "h" * 40}
        self.branches = {"main"}
        self.ancestry: set[tuple[str, str]] = set()
        self.history: list[Commit] = []
        self.excluded: dict[str, set[str]] = {}
        self.changed: list[str] = []
        self.working_tree = WorkingTreeStatus()
        self.conflict_on: set[str] = set()
        self.errors: dict[str, GitError] = {}
        self.calls: list[tuple] = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in MUTATING_CALLS]

    def add_tag(self, name: str, sha: str) -> None:
        self.tags.insert(0, name)
        self.refs[f"refs/tags/{name}"] = sha
        self.refs[name] = sha

    # Inspection

    def is_repository(self) -> bool:
        return self.repository

    def current_branch(self) -> str:
        return self.branch

    def config_get(self, key: str) -> str | None:
        return self.identity if key == "user.name" else None

    def remotes(self) -> list[str]:
        return list(self.remote_names)

    def list_tags(self, limit: int | None = None) -> list[str]:
        return self.tags[:limit] if limit is not None else list(self.tags)

    def resolve(self, ref: str) -> str | None:
        return self.refs.get(ref)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return (ancestor, descendant) in self.ancestry

    def log(self, head: str, exclude: str | None = None) -> list[Commit]:
        self.calls.append(("log", head, exclude))
        skip = self.excluded.get(exclude, set()) if exclude else set()
        return [c for c in self.history if c.sha not in skip]

    def changed_paths(self) -> list[str]:
        return list(self.changed)

    def status(self) -> WorkingTreeStatus:
        return self.working_tree

    def branch_exists(self, name: str) -> bool:
        return name in self.branches

    # Mutation

    def add_remote(self, name: str, url: str) -> None:
        self._record("add_remote", name, url)
        self.remote_names.append(name)

    def fetch(self, remote: str, tags: bool = True) -> None:
        self._record("fetch", remote, tags)

    def create_branch(self, name: str, start_point: str = "HEAD") -> None:
        self._record("create_branch", name, start_point)
        self.branches.add(name)
        self.refs[name] = self.refs.get(start_point, start_point)

    def reset_hard(self, ref: str) -> None:
        self._record("reset_hard", ref)
        self.refs["HEAD"] = self.refs.get(ref, ref)

    def cherry_pick(self, sha: str, mainline: int | None = None) -> bool:
        self._record("cherry_pick", sha, mainline)
        if sha in self.conflict_on:
            self.working_tree = WorkingTreeStatus(
                entries=(StatusEntry(code="UU", path="wled00/led.cpp"),),
                cherry_pick_in_progress=True,
            )
            return False
        return True

    def commit_paths(self, paths: list[str], message: str) -> str:
        self._record("commit_paths", list(paths), message)
        self.refs["HEAD"] = "b" * 40
        return "b" * 40

    def tag(self, name: str, ref: str = "HEAD", force: bool = False) -> None:
        self._record("tag", name, ref, force)

    def push(self, remote: str, refspec: str, force: bool = False) -> None:
        self._record("push", remote, refspec, force)
        if (remote, refspec) in self.errors:
            raise self.errors[(remote, refspec)]


@pytest.fixture
def fake_backend():
    """
    In-memory backend on branch main with upstream tag v1.2.0 and two
    operator commits (c1, c2) plus one upstream commit on top of it.
    """
    backend = FakeBackend()
    backend.add_tag("v1.1.0", "1" * 40)
    backend.add_tag("v1.2.0", "2" * 40)
    backend.history = [
        make_commit("c1", subject="Add custom effect"),
        make_commit("u1", author=UPSTREAM_AUTHOR, subject="Upstream fix"),
        make_commit("c2", subject="Tune palette"),
    ]
    return backend


# ==============================================================================
# Delegates and confirmations
# ==============================================================================


class ScriptedDelegate:
    """Delegate that returns a fixed outcome and can dirty the fake tree."""

    def __init__(
        self,
        outcome: ReplayOutcome = ReplayOutcome.CLEAN,
        available: bool = True,
        leave_status: WorkingTreeStatus | None = None,
        backend: FakeBackend | None = None,
    ) -> None:
        self.outcome = outcome
        self.available = available
        self.leave_status = leave_status
        self.backend = backend
        self.replayed: list[PreservedCommitSet] = []

    @property
    def name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return self.available

    def replay(self, commits: PreservedCommitSet, ctx: RunContext) -> ReplayOutcome:
        self.replayed.append(commits)
        if self.leave_status is not None and self.backend is not None:
            self.backend.working_tree = self.leave_status
        return self.outcome


class ScriptedConfirmation:
    """Confirmation port with a canned answer that records the prompts."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture
def clean_delegate(fake_backend):
    return ScriptedDelegate(backend=fake_backend)


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 10, 19, 14, 25, 1)


@pytest.fixture
def run_context(tmp_path):
    return RunContext(
        repo_dir=tmp_path,
        operator_identity=OPERATOR,
        target_reference="v1.2.0",
        primary_branch="main",
    )


# ==============================================================================
# Real git repositories
# ==============================================================================


def git(cwd: Path, *args: str, author: str | None = None) -> str:
    """Run git in `cwd` and return stripped stdout."""
    env = dict(os.environ)
    if author:
        env["GIT_AUTHOR_NAME"] = author
        env["GIT_AUTHOR_EMAIL"] = f"{author.split()[0].lower()}@example.com"
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )
    return result.stdout.strip()


def init_repo(path: Path, user: str = OPERATOR) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(path, "config", "user.name", user)
    git(path, "config", "user.email", f"{user.split()[0].lower()}@example.com")
    git(path, "config", "commit.gpgsign", "false")
    git(path, "config", "tag.gpgsign", "false")
    return path


def commit_file(repo: Path, name: str, content: str, message: str, author: str | None = None) -> str:
    """Write a file, commit it, and return the new HEAD sha."""
    target = repo / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message, author=author)
    return git(repo, "rev-parse", "HEAD")


def write_manifest(repo: Path, version: str) -> None:
    data = {"name": "wled", "version": version, "description": "Tasmota-free LEDs"}
    (repo / "package.json").write_text(json.dumps(data, indent=2) + "\n")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with an initial commit."""
    repo = init_repo(tmp_path / "repo")
    commit_file(repo, "README.md", "# Test Repo\n", "Initial commit")
    return repo


@dataclass
class ForkScenario:
    """An upstream repo, a bare origin, and a fork cloned from upstream."""

    upstream: Path
    origin: Path
    fork: Path
    operator_commits: list[str]

    def release(self, tag: str, filename: str = "wled00/upstream.cpp") -> str:
        """Add an upstream commit that does not touch the operator's files and tag it."""
        sha = commit_file(
            self.upstream, filename, f"// {tag}\n", f"Release {tag}", author=UPSTREAM_AUTHOR
        )
        git(self.upstream, "tag", tag)
        return sha


@pytest.fixture
def fork_scenario(tmp_path: Path) -> ForkScenario:
    """
    Fork of an upstream repository at v1.1.0 with two operator commits
    (c1, c2), published to a bare origin. Upstream has not released yet.
    """
    upstream = init_repo(tmp_path / "upstream", user=UPSTREAM_AUTHOR)
    write_manifest(upstream, "1.1.0")
    git(upstream, "add", "package.json")
    git(upstream, "commit", "-m", "Initial release")
    commit_file(upstream, "wled00/led.cpp", "int leds = 30;\n", "Add LED driver")
    git(upstream, "tag", "v1.1.0")

    origin = tmp_path / "origin.git"
    git(tmp_path, "init", "--bare", str(origin))

    fork = tmp_path / "fork"
    git(tmp_path, "clone", str(upstream), str(fork))
    git(fork, "remote", "rename", "origin", "upstream")
    git(fork, "remote", "add", "origin", str(origin))
    git(fork, "config", "user.name", OPERATOR)
    git(fork, "config", "user.email", "test@example.com")
    git(fork, "config", "commit.gpgsign", "false")
    git(fork, "config", "tag.gpgsign", "false")

    c1 = commit_file(fork, "usermods/effect.cpp", "void effect() {}\n", "c1: Add custom effect")
    c2 = commit_file(fork, "usermods/palette.cpp", "int palette = 4;\n", "c2: Tune palette")
    git(fork, "push", "origin", "main")

    return ForkScenario(upstream=upstream, origin=origin, fork=fork, operator_commits=[c1, c2])
