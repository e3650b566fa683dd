"""Incremental change detection and checkout for git repositories."""

__version__ = "0.3.0"

from gitdelta.exceptions import (  # noqa: E402
    CheckoutFailure,
    RepositoryError,
    RepositoryUnavailable,
    UnresolvableBranch,
)
from gitdelta.model import (  # noqa: E402
    BuildRepositoryChanges,
    Change,
    Commit,
    Credentials,
    RepositoryAccessData,
    RepositoryConfig,
)
from gitdelta.repository import GitRepository  # noqa: E402

__all__ = [
    "__version__",
    "BuildRepositoryChanges",
    "Change",
    "CheckoutFailure",
    "Commit",
    "Credentials",
    "GitRepository",
    "RepositoryAccessData",
    "RepositoryConfig",
    "RepositoryError",
    "RepositoryUnavailable",
    "UnresolvableBranch",
]
