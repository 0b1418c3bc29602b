"""
Optional Node toolchain check.

Synchronization never needs Node itself. The check exists for forks whose
post-sync build (or delegate) expects nvm with a pinned Node version, and is
only enforced when `toolchain.required` is set.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from forksync.core.config.models import ToolchainConfig
from forksync.core.errors import MissingToolchainError

logger = logging.getLogger(__name__)


@dataclass
class ToolchainStatus:
    """Where nvm was looked for and what was found."""

    nvm_script: Path | None
    nvm_dir: Path
    node_version: str
    node_installed: bool

    @property
    def nvm_installed(self) -> bool:
        return self.nvm_script is not None


def find_nvm_script(env: dict[str, str] | None = None) -> Path | None:
    """
    Locate nvm.sh.

    Homebrew installs it under $HOMEBREW_PREFIX/opt/nvm; a plain install
    keeps it in $NVM_DIR.
    """
    env = dict(os.environ) if env is None else env

    candidates = []
    if prefix := env.get("HOMEBREW_PREFIX"):
        candidates.append(Path(prefix) / "opt" / "nvm" / "nvm.sh")
    if nvm_dir := env.get("NVM_DIR"):
        candidates.append(Path(nvm_dir) / "nvm.sh")

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def check_toolchain(
    config: ToolchainConfig,
    env: dict[str, str] | None = None,
) -> ToolchainStatus:
    """
    Inspect the nvm installation and the pinned Node version.

    Args:
        config: Toolchain settings.
        env: Environment to read (defaults to os.environ).

    Returns:
        ToolchainStatus describing what was found.
    """
    env = dict(os.environ) if env is None else env
    nvm_dir = Path(config.nvm_dir or env.get("NVM_DIR") or Path.home() / ".nvm")
    env.setdefault("NVM_DIR", str(nvm_dir))

    script = find_nvm_script(env)
    version = config.node_version.lstrip("v")
    node_installed = (nvm_dir / "versions" / "node" / f"v{version}").is_dir()

    return ToolchainStatus(
        nvm_script=script,
        nvm_dir=nvm_dir,
        node_version=version,
        node_installed=node_installed,
    )


def require_toolchain(config: ToolchainConfig, env: dict[str, str] | None = None) -> None:
    """
    Fail when the toolchain is required but missing.

    Raises:
        MissingToolchainError: If `config.required` and nvm or the pinned
            Node version is not installed.
    """
    if not config.required:
        return

    status = check_toolchain(config, env)
    if not status.nvm_installed:
        raise MissingToolchainError("nvm is not installed")
    if not status.node_installed:
        raise MissingToolchainError(
            f"Node v{status.node_version} is not installed (run: nvm install {status.node_version})"
        )
    logger.debug("Using nvm at %s with Node v%s", status.nvm_script, status.node_version)
