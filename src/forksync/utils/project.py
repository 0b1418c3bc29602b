"""
Repository root discovery utilities for forksync.

Searches upward for the markers that identify the fork's working tree.
"""

from pathlib import Path

# Markers that indicate a repository root, in order of priority
REPO_ROOT_MARKERS = [
    ".forksync.json",  # forksync project configuration
    ".git",  # Git repository (directory, or file for worktrees)
]


def find_repo_root(start: Path | None = None) -> Path | None:
    """
    Find the repository root by searching upward for marker files.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the repository root, or None if not found.

    Example:
        >>> find_repo_root(Path("/fork/wled00/src"))
        PosixPath('/fork')
    """
    if start is None:
        start = Path.cwd()

    current = start.resolve()
    for directory in [current, *current.parents]:
        for marker in REPO_ROOT_MARKERS:
            if (directory / marker).exists():
                return directory

    return None

