"""Pydantic models describing which repository to look at and how."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


def validate_non_empty_string(v: str) -> str:
    """Validate that a string is not empty."""
    if not v or not v.strip():
        raise ValueError("must be a non-empty string")
    return v


class Credentials(BaseModel):
    """Authentication material for a remote repository."""

    model_config = ConfigDict(frozen=True)

    username: Optional[str] = Field(None, description="User name")
    password: Optional[str] = Field(
        None, description="Password or access token", repr=False
    )

    @property
    def is_empty(self) -> bool:
        return not self.username and not self.password


class RepositoryAccessData(BaseModel):
    """What to look at: a remote or local repository and one of its branches."""

    model_config = ConfigDict(frozen=True)

    repository_url: str = Field(..., description="Remote URL or local path")
    branch: str = Field("master", description="Branch to detect changes on")
    authentication: Optional[Credentials] = Field(
        None, description="Credentials for the remote"
    )
    path_restriction: Optional[str] = Field(
        None, description="Only report commits touching this path"
    )

    @field_validator("repository_url", "branch")
    @classmethod
    def validate_required(cls, v: str) -> str:
        return validate_non_empty_string(v).strip()

    @field_validator("path_restriction")
    @classmethod
    def normalize_restriction(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().replace("\\", "/").strip("/")
        return v or None

    def with_branch(self, branch: str) -> "RepositoryAccessData":
        """The same repository, looking at another branch."""
        return self.model_validate({**self.model_dump(), "branch": branch})


class RepositoryConfig(BaseModel):
    """Per-repository configuration used to select and drive an operation helper."""

    model_config = ConfigDict(frozen=True)

    access_data: RepositoryAccessData
    git_capability: Optional[str] = Field(
        None, description="Path to a native git executable"
    )
    cache_dir: Optional[Path] = Field(None, description="Mirror cache directory")
    fetch_timeout: float = Field(
        300.0, gt=0, description="Seconds a fetch may take before it is aborted"
    )
    lock_timeout: float = Field(600.0, description="Seconds to wait for a mirror lock")
    max_changes: int = Field(100, ge=1, description="Maximum reported changes")

    @classmethod
    def from_defaults(
        cls, access_data: RepositoryAccessData, **overrides
    ) -> "RepositoryConfig":
        """Build a config, filling unspecified values from the gitdelta config file."""
        from gitdelta import config as cfg

        values = {
            "git_capability": cfg.get_git_capability(),
            "fetch_timeout": cfg.get_fetch_timeout(),
            "lock_timeout": cfg.get_lock_timeout(),
            "max_changes": cfg.get_max_changes(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(access_data=access_data, **values)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "RepositoryConfig":
        """Alternative constructor that loads from YAML string"""
        data = yaml.safe_load(yaml_str) or {}
        access = data.pop("repository", None)
        if access is None:
            raise ValueError("Repository configuration requires a 'repository' section")
        return cls.from_defaults(RepositoryAccessData(**access), **data)
