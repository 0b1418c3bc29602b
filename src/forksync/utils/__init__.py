"""Utility modules for forksync."""

from .project import find_repo_root

__all__ = [
    "find_repo_root",
]
