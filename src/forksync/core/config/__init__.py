"""
Configuration models and loading.

This module provides Pydantic models for forksync configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import (
    BranchConfig,
    DelegateConfig,
    ForkSyncConfig,
    GitConfig,
    PublishConfig,
    ToolchainConfig,
    UpstreamConfig,
)

__all__ = [
    # Models
    "BranchConfig",
    "DelegateConfig",
    "ForkSyncConfig",
    "GitConfig",
    "PublishConfig",
    "ToolchainConfig",
    "UpstreamConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
