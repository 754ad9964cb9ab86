"""
Config Models — Pydantic schemas for the mirror-sync configuration file.

The file (mirror-sync.yaml by default) describes:
- where the upstream lives and which of its refs are mirrored
- which paths of this repository are reserved (never touched)
- the patches applied to upstream content
- how changed refs are built and published
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

from ..validation import ValidationError, validate_relative_path


def _relative_paths(values: List[str], field: str) -> List[str]:
    try:
        return [validate_relative_path(v, field) for v in values]
    except ValidationError as e:
        # pydantic wraps ValueError into its own ValidationError
        raise ValueError(str(e)) from e


# --- Patching ---


class PatchRule(BaseModel):
    """Insert one line before a marker line of one upstream file."""

    target: str = "Dockerfile"
    marker: str
    insert: str

    @field_validator("target")
    @classmethod
    def _target_is_relative(cls, value: str) -> str:
        return _relative_paths([value], "patches.target")[0]

    @field_validator("marker", "insert")
    @classmethod
    def _single_line(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        if "\n" in value or "\r" in value:
            raise ValueError("must be a single line")
        return value


# --- Build & publish ---


class RegistryConfig(BaseModel):
    """A container registry the built images are pushed to."""

    url: str = "docker.io"
    image: str
    username: Optional[str] = None
    password_env: Optional[str] = None  # name of the env var holding the token
    password: Optional[SecretStr] = None

    @property
    def repository(self) -> str:
        """Fully qualified image repository, e.g. docker.io/owner/app."""
        return f"{self.url.rstrip('/')}/{self.image.strip('/')}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password and self.password.get_secret_value())


class BuildConfig(BaseModel):
    """How a mirrored ref is turned into published container images."""

    dockerfile: str = "Dockerfile"
    context: str = "."
    platforms: List[str] = Field(default_factory=lambda: ["linux/amd64", "linux/arm64"])
    build_args: Dict[str, str] = Field(default_factory=dict)
    push: bool = True
    cache_from: Optional[str] = None
    cache_to: Optional[str] = None
    max_parallel: int = Field(default=4, ge=1)
    source_url: Optional[str] = None  # defaults to the workspace remote URL
    registries: List[RegistryConfig] = Field(default_factory=list)
    timeout: int = Field(default=3600, ge=1)


# --- Synchronization ---

# The tool itself lives beside the mirrored content on the default branch
DEFAULT_RESERVED_PATHS = [
    ".github",
    ".env",
    "mirror-sync.yaml",
    "pyproject.toml",
    "mirrorsync",
]


class CommitIdentity(BaseModel):
    """Author/committer used for automated sync commits."""

    name: str = "mirror-sync"
    email: str = "mirror-sync@users.noreply.github.com"


class SyncConfig(BaseModel):
    """The mirror-sync.yaml schema."""

    version: int = 1
    upstream_url: str = ""
    default_branch: str = "main"
    tag_patterns: List[str] = Field(default_factory=lambda: ["v*"])
    excluded_refs: List[str] = Field(default_factory=list)
    reserved_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_RESERVED_PATHS))
    upstream_excluded_paths: List[str] = Field(default_factory=lambda: [".github"])
    tracking_branch_prefix: str = "mirror/"

    workspace_dir: str = "."
    upstream_dir: Optional[str] = None
    mirror_url: Optional[str] = None
    remote: str = "origin"

    commit_message: str = "Automated sync of original sources"
    identity: CommitIdentity = Field(default_factory=CommitIdentity)
    patches: List[PatchRule] = Field(default_factory=list)
    git_timeout: int = Field(default=600, ge=1)

    build: BuildConfig = Field(default_factory=BuildConfig)

    @field_validator("reserved_paths")
    @classmethod
    def _reserved_relative(cls, values: List[str]) -> List[str]:
        return _relative_paths(values, "reserved_paths")

    @field_validator("upstream_excluded_paths")
    @classmethod
    def _excluded_relative(cls, values: List[str]) -> List[str]:
        return _relative_paths(values, "upstream_excluded_paths")

    @field_validator("tracking_branch_prefix")
    @classmethod
    def _prefix_not_empty(cls, value: str) -> str:
        # An empty prefix would make the tracking branch collide with the tag
        if not value.strip():
            raise ValueError("tracking_branch_prefix must not be empty")
        return value

    @field_validator("commit_message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("commit_message must not be blank")
        return value
