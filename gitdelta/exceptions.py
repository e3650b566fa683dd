"""
Exception classes for repository change detection and checkout.
"""

from pathlib import Path
from typing import Optional, Union


class RepositoryError(Exception):
    """Base exception for all repository-related errors."""

    pass


class UnresolvableBranch(RepositoryError):
    """Raised when a branch head or a required revision cannot be determined."""

    def __init__(self, message: str, branch: Optional[str] = None):
        self.branch = branch
        super().__init__(message)


class RepositoryUnavailable(RepositoryError):
    """Raised when the remote or the local mirror cannot be reached or read."""

    def __init__(self, location: str, message: str = ""):
        self.location = location
        if message:
            super().__init__(f"Repository {location} is unavailable: {message}")
        else:
            super().__init__(f"Repository {location} is unavailable")


class CheckoutFailure(RepositoryError):
    """Raised when a working directory cannot be prepared or populated."""

    def __init__(
        self, revision: str, directory: Union[str, Path], message: str = ""
    ):
        self.revision = revision
        self.directory = Path(directory)
        detail = f": {message}" if message else ""
        super().__init__(
            f"Cannot check out revision {revision} into {self.directory}{detail}"
        )
