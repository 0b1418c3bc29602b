"""
Tests for conflict resolution delegates.

Tests cover:
- Delegate registry
- Manual delegate cherry-picks (in-memory and real git)
- Claude delegate command construction and stream-json handling
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from forksync.core.config import DelegateConfig
from forksync.core.delegate import (
    ClaudeDelegate,
    ConflictResolutionDelegate,
    ManualDelegate,
    get_delegate,
    list_delegates,
    register_delegate,
)
from forksync.core.delegate.base import _delegates
from forksync.core.delegate.claude import build_prompt, extract_text
from forksync.core.errors import DelegateUnavailableError
from forksync.core.git import GitBackend
from forksync.core.sync import PreservedCommitSet, ReplayOutcome

from conftest import OPERATOR, commit_file, git, make_commit


@pytest.fixture
def preserved() -> PreservedCommitSet:
    return PreservedCommitSet(
        author_identity=OPERATOR,
        commits=(make_commit("c1"), make_commit("c2")),
    )


class TestRegistry:
    def test_builtin_delegates_registered(self) -> None:
        assert list_delegates() == ["claude", "manual"]

    def test_get_delegate(self, fake_backend) -> None:
        delegate = get_delegate("manual", fake_backend)

        assert isinstance(delegate, ManualDelegate)
        assert isinstance(delegate, ConflictResolutionDelegate)
        assert delegate.name == "manual"

    def test_get_delegate_passes_config(self, fake_backend) -> None:
        config = DelegateConfig(permission_mode="plan")

        delegate = get_delegate("claude", fake_backend, config)

        assert isinstance(delegate, ClaudeDelegate)
        assert delegate.config.permission_mode == "plan"

    def test_unknown_delegate(self, fake_backend) -> None:
        with pytest.raises(ValueError, match="Available delegates: claude, manual"):
            get_delegate("copilot", fake_backend)

    def test_register_custom_delegate(self, fake_backend) -> None:
        @register_delegate("noop")
        class NoopDelegate:
            def __init__(self, backend, config):
                self.backend = backend

            name = "noop"

            def is_available(self) -> bool:
                return True

            def replay(self, commits, ctx):
                return ReplayOutcome.CLEAN

        try:
            assert "noop" in list_delegates()
            assert isinstance(get_delegate("noop", fake_backend), NoopDelegate)
        finally:
            _delegates.pop("noop")


class TestManualDelegate:
    def test_replays_in_order(self, fake_backend, preserved, run_context) -> None:
        outcome = ManualDelegate(fake_backend, DelegateConfig()).replay(preserved, run_context)

        assert outcome is ReplayOutcome.CLEAN
        assert [c for c in fake_backend.calls if c[0] == "cherry_pick"] == [
            ("cherry_pick", preserved.shas[0], None),
            ("cherry_pick", preserved.shas[1], None),
        ]

    def test_stops_at_first_conflict(self, fake_backend, preserved, run_context) -> None:
        fake_backend.conflict_on = {preserved.shas[0]}

        outcome = ManualDelegate(fake_backend, DelegateConfig()).replay(preserved, run_context)

        assert outcome is ReplayOutcome.CONFLICTED
        assert len([c for c in fake_backend.calls if c[0] == "cherry_pick"]) == 1
        assert fake_backend.status().has_conflicts

    def test_merge_commits_use_first_parent(self, fake_backend, run_context) -> None:
        merge = make_commit("m1", parents=("p1", "p2"))
        commits = PreservedCommitSet(author_identity=OPERATOR, commits=(merge,))

        ManualDelegate(fake_backend, DelegateConfig()).replay(commits, run_context)

        assert ("cherry_pick", merge.sha, 1) in fake_backend.calls

    def test_real_conflict_left_in_tree(self, git_repo: Path, run_context) -> None:
        base = git(git_repo, "rev-parse", "HEAD")
        mine = commit_file(git_repo, "README.md", "mine\n", "Mine")
        git(git_repo, "reset", "--hard", base)
        commit_file(git_repo, "README.md", "upstream\n", "Upstream")
        backend = GitBackend(git_repo)
        commits = PreservedCommitSet(
            author_identity=OPERATOR, commits=tuple(backend.log(mine, exclude=base))
        )

        outcome = ManualDelegate(backend, DelegateConfig()).replay(
            commits, run_context.model_copy(update={"repo_dir": git_repo})
        )

        assert outcome is ReplayOutcome.CONFLICTED
        assert backend.status().conflicted_paths == ["README.md"]


class TestClaudeHelpers:
    def test_build_prompt_lists_shas_oldest_first(self, preserved) -> None:
        prompt = build_prompt(preserved)

        assert prompt.startswith(f"Cherry-pick commits {preserved.shas[0]} {preserved.shas[1]} ")
        assert "resolve merge conflicts" in prompt

    def test_extract_text_assistant_message(self) -> None:
        event = {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Resolving wled00/led.cpp"},
                    {"type": "tool_use", "name": "Bash"},
                ]
            },
        }

        assert extract_text(event) == ["Resolving wled00/led.cpp"]

    def test_extract_text_delta(self) -> None:
        event = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "ok"}}

        assert extract_text(event) == ["ok"]

    def test_extract_text_ignores_other_events(self) -> None:
        assert extract_text({"type": "system", "subtype": "init"}) == []


class TestClaudeDelegate:
    """Claude delegate with the CLI mocked out."""

    def _delegate(self, fake_backend, **kwargs) -> ClaudeDelegate:
        return ClaudeDelegate(fake_backend, DelegateConfig(**kwargs))

    def _process(self, lines: list[str], returncode: int = 0) -> MagicMock:
        process = MagicMock()
        process.stdout = iter(lines)
        process.returncode = returncode
        process.wait.return_value = returncode
        return process

    @patch("shutil.which")
    def test_is_available(self, mock_which, fake_backend) -> None:
        mock_which.return_value = "/usr/local/bin/claude"
        assert self._delegate(fake_backend).is_available()

        mock_which.return_value = None
        assert not self._delegate(fake_backend).is_available()

    def test_build_command(self, fake_backend, preserved) -> None:
        cmd = self._delegate(fake_backend, extra_flags=["--model", "sonnet"]).build_command(
            preserved
        )

        assert cmd[:2] == ["claude", "-p"]
        assert cmd[2] == build_prompt(preserved)
        assert cmd[3:] == [
            "--append-system-prompt",
            "You are a senior software engineer with expertise in embedded systems, C++ and Git.",
            "--allowedTools",
            "Bash,Read",
            "--permission-mode",
            "acceptEdits",
            "--output-format",
            "stream-json",
            "--verbose",
            "--model",
            "sonnet",
        ]

    @patch("shutil.which", return_value=None)
    def test_replay_without_cli(self, mock_which, fake_backend, preserved, run_context) -> None:
        with pytest.raises(DelegateUnavailableError):
            self._delegate(fake_backend).replay(preserved, run_context)

    @patch("subprocess.Popen")
    @patch("shutil.which", return_value="/usr/local/bin/claude")
    def test_replay_streams_output(
        self, mock_which, mock_popen, fake_backend, preserved, run_context
    ) -> None:
        mock_popen.return_value = self._process(
            [
                '{"type": "system", "subtype": "init"}\n',
                '{"type": "assistant", "message": {"content": [{"type": "text", "text": "Picked c1"}]}}\n',
                "not json\n",
                "[1, 2]\n",
                '{"type": "result", "is_error": false}\n',
            ]
        )
        seen: list[str] = []
        delegate = self._delegate(fake_backend)
        delegate.on_output = seen.append

        outcome = delegate.replay(preserved, run_context)

        assert outcome is ReplayOutcome.CLEAN
        assert seen == ["Picked c1"]
        call_kwargs = mock_popen.call_args.kwargs
        assert call_kwargs["cwd"] == run_context.repo_dir
        assert mock_popen.call_args.args[0][0] == "claude"

    @patch("subprocess.Popen")
    @patch("shutil.which", return_value="/usr/local/bin/claude")
    def test_replay_error_result(
        self, mock_which, mock_popen, fake_backend, preserved, run_context
    ) -> None:
        mock_popen.return_value = self._process(['{"type": "result", "is_error": true}\n'])

        outcome = self._delegate(fake_backend).replay(preserved, run_context)

        assert outcome is ReplayOutcome.CONFLICTED

    @patch("subprocess.Popen")
    @patch("shutil.which", return_value="/usr/local/bin/claude")
    def test_replay_nonzero_exit(
        self, mock_which, mock_popen, fake_backend, preserved, run_context
    ) -> None:
        mock_popen.return_value = self._process(["Error: not logged in\n"], returncode=1)

        outcome = self._delegate(fake_backend).replay(preserved, run_context)

        assert outcome is ReplayOutcome.CONFLICTED

    @patch("subprocess.Popen")
    @patch("shutil.which", return_value="/usr/local/bin/claude")
    def test_interrupt_terminates_child(
        self, mock_which, mock_popen, fake_backend, preserved, run_context
    ) -> None:
        def interrupted():
            yield '{"type": "system", "subtype": "init"}\n'
            raise KeyboardInterrupt

        process = self._process([])
        process.stdout = interrupted()
        process.poll.return_value = None
        mock_popen.return_value = process

        with pytest.raises(KeyboardInterrupt):
            self._delegate(fake_backend).replay(preserved, run_context)

        process.terminate.assert_called_once()
        process.wait.assert_called_with(timeout=5.0)

    @patch("subprocess.Popen")
    @patch("shutil.which", return_value="/usr/local/bin/claude")
    def test_timeout_kills_child(
        self, mock_which, mock_popen, fake_backend, preserved, run_context
    ) -> None:
        class ExpiredTimer:
            def __init__(self, interval, function):
                self.interval = interval
                self.function = function
                self.daemon = False

            def start(self):
                self.function()

            def cancel(self):
                pass

        process = self._process(['{"type": "result", "is_error": false}\n'], returncode=-9)
        mock_popen.return_value = process

        with patch("forksync.core.delegate.claude.threading.Timer", ExpiredTimer):
            outcome = self._delegate(fake_backend, timeout_seconds=60).replay(
                preserved, run_context
            )

        assert outcome is ReplayOutcome.CONFLICTED
        process.kill.assert_called_once()
