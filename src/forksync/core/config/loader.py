"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import ForkSyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: ForkSyncConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/forksync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "forksync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Repository root (defaults to current directory)

    Returns:
        Path to .forksync.json in the repository root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".forksync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level is not an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result.setdefault(section, {})
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        FORKSYNC_UPSTREAM_URL - overrides upstream.url
        FORKSYNC_PRIMARY_BRANCH - overrides branch.primary
        FORKSYNC_DELEGATE - overrides delegate.name
        FORKSYNC_GIT_TIMEOUT - overrides git.timeout_seconds
        FORKSYNC_REQUIRE_TOOLCHAIN - overrides toolchain.required

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = {k: (dict(v) if isinstance(v, dict) else v) for k, v in config_dict.items()}

    if url := os.environ.get("FORKSYNC_UPSTREAM_URL"):
        _set(result, "upstream", "url", url)

    if branch := os.environ.get("FORKSYNC_PRIMARY_BRANCH"):
        _set(result, "branch", "primary", branch)

    if delegate := os.environ.get("FORKSYNC_DELEGATE"):
        _set(result, "delegate", "name", delegate)

    if timeout_str := os.environ.get("FORKSYNC_GIT_TIMEOUT"):
        try:
            timeout = float(timeout_str)
            if timeout <= 0:
                logger.warning(
                    "FORKSYNC_GIT_TIMEOUT must be > 0, got %s, ignoring", timeout_str
                )
            else:
                _set(result, "git", "timeout_seconds", timeout)
        except ValueError:
            logger.warning("Invalid FORKSYNC_GIT_TIMEOUT value '%s', ignoring", timeout_str)

    if required_str := os.environ.get("FORKSYNC_REQUIRE_TOOLCHAIN"):
        _set(result, "toolchain", "required", required_str.lower() not in ("false", "0", ""))

    return result


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> ForkSyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (FORKSYNC_*)
        2. Project config (.forksync.json)
        3. User config (~/.config/forksync/config.json)
        4. Model defaults

    Args:
        project_dir: Repository root to load .forksync.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated ForkSyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = ForkSyncConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
