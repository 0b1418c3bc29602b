"""
forksync - keep a fork on top of an upstream release tag

Resets the fork's primary branch to an upstream tag, replays the operator's
own commits on top, and publishes the result with a backup and marker tag.
"""

__version__ = "0.1.0"

from forksync.core.config.models import ForkSyncConfig
from forksync.core.sync.models import RunContext, SyncPhase, SyncReport

__all__ = ["ForkSyncConfig", "RunContext", "SyncPhase", "SyncReport", "__version__"]
