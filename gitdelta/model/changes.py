"""Commit and change records produced by change detection."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Commit(BaseModel):
    """One commit as read from a mirror. Never mutated once observed."""

    model_config = ConfigDict(frozen=True)

    revision: str = Field(..., description="Commit id as lowercase hex")
    parents: Tuple[str, ...] = Field((), description="Parent commit ids")
    author: str = Field("", description="Author as 'Name <email>'")
    comment: str = Field("", description="Commit message")
    timestamp: int = Field(0, description="Committer time, seconds since epoch")
    files: Tuple[str, ...] = Field(
        (), description="Paths changed relative to the first parent"
    )

    def touches(self, path: str) -> bool:
        """True if any changed file is ``path`` or lies below it."""
        prefix = path + "/"
        return any(f == path or f.startswith(prefix) for f in self.files)


class Change(BaseModel):
    """A commit reported by change detection."""

    model_config = ConfigDict(frozen=True)

    revision: str
    comment: str
    author: str
    timestamp: int
    files: Tuple[str, ...] = ()

    @classmethod
    def from_commit(cls, commit: Commit) -> "Change":
        return cls(
            revision=commit.revision,
            comment=commit.comment,
            author=commit.author,
            timestamp=commit.timestamp,
            files=commit.files,
        )


class BuildRepositoryChanges(BaseModel):
    """Result of a single detection: the new revision key and the changes since the last one."""

    model_config = ConfigDict(frozen=True)

    new_revision: Optional[str] = Field(
        None, description="Head revision to record as last seen"
    )
    changes: List[Change] = Field(
        default_factory=list, description="Changes ordered most recent first"
    )
    skipped_commits: int = Field(
        0, description="Commits left out because of the change limit"
    )

    @property
    def comments(self) -> List[str]:
        return [change.comment for change in self.changes]
