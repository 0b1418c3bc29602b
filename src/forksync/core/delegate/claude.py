"""
Claude CLI conflict resolution delegate (shell-out).

Runs `claude -p` inside the repository and asks it to cherry-pick the
preserved commits and fix any merge conflicts. Tool access is limited to the
configured allow-list and the process runs with the repository as its
working directory. A run that outlives `timeout_seconds` is killed, and an
interrupted run terminates the child before the interrupt propagates.
"""

import json
import logging
import shutil
import subprocess
import threading
from collections.abc import Callable

from forksync.core.config.models import DelegateConfig
from forksync.core.errors import DelegateUnavailableError
from forksync.core.git.backend import VersionControlBackend
from forksync.core.sync.models import PreservedCommitSet, ReplayOutcome, RunContext

from .base import register_delegate

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "Cherry-pick commits {shas} into the current branch and help me resolve merge "
    "conflicts by analyzing the conflicted files and making the necessary changes."
)


def build_prompt(commits: PreservedCommitSet) -> str:
    """Task prompt listing the commits in the order they must be applied."""
    return PROMPT_TEMPLATE.format(shas=" ".join(commits.shas))


def extract_text(event: dict) -> list[str]:
    """Pull assistant text blocks out of one stream-json event."""
    texts: list[str] = []
    if event.get("type") in ("assistant", "message"):
        message = event.get("message") or {}
        for block in message.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                texts.append(block["text"])
    elif event.get("type") == "content_block_delta":
        delta = event.get("delta") or {}
        if delta.get("type") == "text_delta" and delta.get("text"):
            texts.append(delta["text"])
    return texts


@register_delegate("claude")
class ClaudeDelegate:
    """
    Delegate that hands the replay to Claude Code.

    Features:
    - Streams assistant text to an optional callback as it arrives
    - System persona via --append-system-prompt
    - Tool allow-list via --allowedTools
    - Edits accepted via --permission-mode
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        config: DelegateConfig,
        on_output: Callable[[str], None] | None = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.on_output = on_output

    @property
    def name(self) -> str:
        return "claude"

    def is_available(self) -> bool:
        """True if 'claude' command exists in PATH."""
        return shutil.which("claude") is not None

    def build_command(self, commits: PreservedCommitSet) -> list[str]:
        cmd = [
            "claude",
            "-p",
            build_prompt(commits),
            "--append-system-prompt",
            self.config.system_prompt,
            "--allowedTools",
            ",".join(self.config.allowed_tools),
            "--permission-mode",
            self.config.permission_mode,
            "--output-format",
            "stream-json",
            "--verbose",
        ]
        cmd.extend(self.config.extra_flags)
        return cmd

    def replay(self, commits: PreservedCommitSet, ctx: RunContext) -> ReplayOutcome:
        """
        Run Claude and wait for it to finish.

        Raises:
            DelegateUnavailableError: If the claude CLI is not installed.
        """
        if not self.is_available():
            raise DelegateUnavailableError("The 'claude' CLI is not installed or not in PATH")

        cmd = self.build_command(commits)
        logger.debug("Running delegate: %s", " ".join(cmd[:2] + ["<prompt>"] + cmd[3:]))

        process = subprocess.Popen(
            cmd,
            cwd=ctx.repo_dir,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,  # Line buffered
        )

        timed_out = threading.Event()

        def _on_timeout() -> None:
            timed_out.set()
            process.kill()

        timer = threading.Timer(self.config.timeout_seconds, _on_timeout)
        timer.daemon = True
        timer.start()
        try:
            is_error, plain_lines = self._stream(process)
            process.wait()
        finally:
            timer.cancel()
            _stop(process)

        if timed_out.is_set():
            logger.warning("claude timed out after %ds", self.config.timeout_seconds)
            return ReplayOutcome.CONFLICTED

        if process.returncode != 0:
            logger.warning(
                "claude exited with %d: %s", process.returncode, "\n".join(plain_lines[-5:])
            )
            return ReplayOutcome.CONFLICTED

        return ReplayOutcome.CONFLICTED if is_error else ReplayOutcome.CLEAN

    def _stream(self, process: subprocess.Popen) -> tuple[bool, list[str]]:
        """Relay stream-json output; return (result was an error, non-JSON lines)."""
        if process.stdout is None:
            raise RuntimeError("Failed to capture stdout from claude process")

        is_error = False
        plain_lines: list[str] = []
        for line in process.stdout:
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                plain_lines.append(line)
                logger.debug("delegate: %s", line)
                continue
            if not isinstance(event, dict):
                continue

            for text in extract_text(event):
                if self.on_output:
                    self.on_output(text)
                else:
                    logger.info("claude: %s", text)

            if event.get("type") == "result":
                is_error = bool(event.get("is_error"))

        return is_error, plain_lines


def _stop(process: subprocess.Popen, grace_seconds: float = 5.0) -> None:
    """Terminate a child that is still running, killing it if it ignores SIGTERM."""
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
