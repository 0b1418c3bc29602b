"""
Configuration data models for forksync.

These models define the structure of .forksync.json and
~/.config/forksync/config.json files, with validation via Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field


class UpstreamConfig(BaseModel):
    """
    The repository this fork tracks.

    The remote is registered automatically when it is missing.
    """
    remote: str = Field(
        default="upstream",
        min_length=1,
        description="Name of the git remote pointing at the upstream repository"
    )
    url: str = Field(
        default="https://github.com/Aircoookie/WLED",
        min_length=1,
        description="URL registered for the upstream remote when it is missing"
    )


class BranchConfig(BaseModel):
    """Branches involved in a synchronization run."""
    primary: str = Field(
        default="main",
        min_length=1,
        description="The only branch a synchronization may run on"
    )
    origin_remote: str = Field(
        default="origin",
        min_length=1,
        description="Remote the fork is published to"
    )


class PublishConfig(BaseModel):
    """
    Version bump and publishing behavior.

    The marker prefix keeps this fork's tags apart from upstream's own tags.
    """
    marker_prefix: str = Field(
        default="ph/",
        min_length=1,
        description="Prefix for the marker tag created after a sync (e.g. ph/v0.15.0)"
    )
    version_prefix: str = Field(
        default="v",
        description="Leading tag prefix stripped to derive the manifest version"
    )
    manifest: str = Field(
        default="package.json",
        description="Manifest file (relative to the repo root) holding the version field"
    )
    commit_version_bump: bool = Field(
        default=True,
        description="Commit the manifest version change before publishing"
    )


class DelegateConfig(BaseModel):
    """
    Conflict resolution delegate settings.

    The `claude` delegate runs the Claude CLI in the repository; `manual`
    cherry-picks and stops at the first conflict.
    """
    name: str = Field(
        default="claude",
        description="Registered delegate name (see `forksync --help`)"
    )
    system_prompt: str = Field(
        default="You are a senior software engineer with expertise in embedded systems, C++ and Git.",
        description="Persona appended to the delegate's system prompt"
    )
    allowed_tools: list[str] = Field(
        default_factory=lambda: ["Bash", "Read"],
        description="Tools the delegate may use inside the repository"
    )
    permission_mode: str = Field(
        default="acceptEdits",
        description="Permission mode passed to the Claude CLI"
    )
    extra_flags: list[str] = Field(
        default_factory=list,
        description="Additional flags appended to the delegate command line"
    )
    timeout_seconds: int = Field(
        default=1800,
        ge=1,
        description="Seconds before a running delegate is killed"
    )


class GitConfig(BaseModel):
    """Timeouts and limits for git operations."""
    timeout_seconds: float = Field(
        default=120,
        gt=0,
        description="Timeout for local git commands"
    )
    network_timeout_seconds: float = Field(
        default=600,
        gt=0,
        description="Timeout for fetch and push"
    )
    recent_tags_limit: int = Field(
        default=10,
        ge=1,
        description="How many recent upstream tags to list"
    )


class ToolchainConfig(BaseModel):
    """
    Optional runtime version manager check.

    Synchronization itself never needs Node; enable this only when the
    delegate or a post-sync build step depends on nvm being installed.
    """
    required: bool = Field(
        default=False,
        description="Fail before the run when nvm is not installed"
    )
    node_version: str = Field(
        default="22.15.1",
        description="Node version expected to be installed through nvm"
    )
    nvm_dir: str | None = Field(
        default=None,
        description="NVM_DIR override (defaults to ~/.nvm)"
    )


class ForkSyncConfig(BaseModel):
    """
    Top-level forksync configuration.

    Example:
        >>> config = ForkSyncConfig()
        >>> config.branch.primary
        'main'
        >>> config.publish.marker_prefix
        'ph/'
    """
    model_config = ConfigDict(extra="ignore")

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    branch: BranchConfig = Field(default_factory=BranchConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    delegate: DelegateConfig = Field(default_factory=DelegateConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
