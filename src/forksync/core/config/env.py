"""Environment loading helpers.

Precedence implemented here:
  os.environ (pre-existing) > project .forksync.env > user .env

A fork usually carries its own `.env` for its build, so the project layer
reads `.forksync.env` instead. Only keys forksync or its delegates read are
loaded; anything else in the files (GIT_DIR, say) never reaches the
environment git and the delegate run in.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

PROJECT_ENV_FILE = ".forksync.env"

# Key prefixes and names that may be loaded from .env files
ALLOWED_PREFIXES = ("FORKSYNC_", "ANTHROPIC_", "CLAUDE_")
ALLOWED_KEYS = frozenset({"NVM_DIR", "HOMEBREW_PREFIX"})


def is_allowed_key(key: str) -> bool:
    return key in ALLOWED_KEYS or key.startswith(ALLOWED_PREFIXES)


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    out: dict[str, str] = {}
    for k, v in dotenv_values(path).items():
        if k is None or v is None:
            continue
        if not is_allowed_key(k):
            logger.debug("Ignoring %s from %s", k, path)
            continue
        out[str(k)] = str(v)
    return out


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> list[str]:
    """Load forksync variables from user + project env files.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Returns:
        Names of the variables that were set, sorted.
    """
    if project_dir is None:
        project_dir = Path.cwd()

    if user_env_paths is None:
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        user_env_paths = [xdg_home / "forksync" / ".env"]

    if project_env_paths is None:
        project_env_paths = [project_dir / PROJECT_ENV_FILE]

    loaded: set[str] = set()
    for p in user_env_paths:
        for k, v in _read_env(Path(p)).items():
            if k not in os.environ:
                os.environ[k] = v
                loaded.add(k)

    # Project env may replace user-set values but never pre-existing OS env
    for p in project_env_paths:
        for k, v in _read_env(Path(p)).items():
            if k not in os.environ or k in loaded:
                os.environ[k] = v
                loaded.add(k)

    return sorted(loaded)
