"""
Git operations for gitdelta.

Architecture:
    - Locator: repository descriptor -> fetchable location and cache identity
    - Mirror cache: one bare repository per identity, shared by all branches
    - Operation helpers: native git (GitPython) or embedded (dulwich), same contract
    - Change walker: ancestry difference ordered by topological recency
"""

from .embedded import DulwichOperationHelper
from .factory import create_operation_helper, is_native_git_enabled
from .helper import OperationHelper, is_revision, prepare_target_directory
from .locator import (
    LocatedRepository,
    RepositoryLocator,
    TransportProvider,
    is_local_path,
    parse_repo_url,
    resolve_local_path,
)
from .mirror import Mirror, MirrorCache, describe_cache
from .native import NativeGitOperationHelper
from .walker import ChangeWalker

__all__ = [
    "ChangeWalker",
    "DulwichOperationHelper",
    "LocatedRepository",
    "Mirror",
    "MirrorCache",
    "NativeGitOperationHelper",
    "OperationHelper",
    "RepositoryLocator",
    "TransportProvider",
    "create_operation_helper",
    "describe_cache",
    "is_local_path",
    "is_native_git_enabled",
    "is_revision",
    "parse_repo_url",
    "prepare_target_directory",
    "resolve_local_path",
]
