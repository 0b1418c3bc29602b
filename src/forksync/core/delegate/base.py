"""
Conflict resolution delegate protocol and registry.

A delegate replays the preserved commits onto the freshly reset branch and
resolves whatever conflicts it can. The executor treats it as opaque: it
never trusts the returned outcome and always re-reads the working tree.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from forksync.core.config.models import DelegateConfig
from forksync.core.git.backend import VersionControlBackend
from forksync.core.sync.models import PreservedCommitSet, ReplayOutcome, RunContext


@runtime_checkable
class ConflictResolutionDelegate(Protocol):
    """
    Protocol for conflict resolution delegates.

    Delegates are responsible for:
    - Reporting whether they can run on this machine
    - Cherry-picking the commits, oldest first, onto HEAD
    - Resolving conflicts, or leaving them in the working tree
    """

    @property
    def name(self) -> str:
        """Registered delegate name (e.g., 'claude', 'manual')."""
        ...

    def is_available(self) -> bool:
        """True if the delegate can be invoked (e.g. its CLI is in PATH)."""
        ...

    def replay(self, commits: PreservedCommitSet, ctx: RunContext) -> ReplayOutcome:
        """
        Reapply `commits` onto the current branch head.

        Args:
            commits: Commits to replay, oldest first.
            ctx: Run context; the delegate must stay inside ctx.repo_dir.

        Returns:
            The delegate's own view of the result. Advisory only.
        """
        ...


DelegateFactory = Callable[[VersionControlBackend, DelegateConfig], ConflictResolutionDelegate]

# Registry of available delegates
_delegates: dict[str, DelegateFactory] = {}


def register_delegate(name: str) -> Callable[[DelegateFactory], DelegateFactory]:
    """
    Decorator to register a delegate implementation.

    Usage:
        @register_delegate('manual')
        class ManualDelegate:
            def __init__(self, backend, config): ...
    """

    def decorator(delegate_class: DelegateFactory) -> DelegateFactory:
        _delegates[name] = delegate_class
        return delegate_class

    return decorator


def get_delegate(
    name: str,
    backend: VersionControlBackend,
    config: DelegateConfig | None = None,
) -> ConflictResolutionDelegate:
    """
    Instantiate a registered delegate.

    Raises:
        ValueError: If no delegate is registered under `name`.
    """
    delegate_class = _delegates.get(name)
    if delegate_class is None:
        raise ValueError(
            f"Delegate '{name}' not registered. Available delegates: {', '.join(list_delegates())}"
        )
    return delegate_class(backend, config or DelegateConfig(name=name))


def list_delegates() -> list[str]:
    """List all registered delegate names."""
    return sorted(_delegates.keys())
