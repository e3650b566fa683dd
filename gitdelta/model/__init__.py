from .changes import BuildRepositoryChanges, Change, Commit
from .repository import Credentials, RepositoryAccessData, RepositoryConfig

__all__ = [
    "BuildRepositoryChanges",
    "Change",
    "Commit",
    "Credentials",
    "RepositoryAccessData",
    "RepositoryConfig",
]
