"""Choose between the native git and the embedded dulwich operation helpers."""

import logging
from typing import Optional

from gitdelta.git.embedded import DulwichOperationHelper
from gitdelta.git.helper import OperationHelper
from gitdelta.git.locator import RepositoryLocator, TransportProvider
from gitdelta.git.mirror import MirrorCache
from gitdelta.git.native import NativeGitOperationHelper
from gitdelta.model import RepositoryConfig

logger = logging.getLogger(__name__)


def is_native_git_enabled(config: RepositoryConfig) -> bool:
    """Native git is used whenever a git capability is configured."""
    return bool(config.git_capability and config.git_capability.strip())


def create_operation_helper(
    config: RepositoryConfig,
    mirror_cache: Optional[MirrorCache] = None,
    transport_provider: Optional[TransportProvider] = None,
) -> OperationHelper:
    """
    Build the operation helper for a repository configuration.

    Args:
        config: Repository configuration; ``git_capability`` selects the strategy
        mirror_cache: Cache handle to use (defaults to one for ``config.cache_dir``)
        transport_provider: Optional source of credentials keyed by repository URL

    Returns:
        A ``NativeGitOperationHelper`` if a git capability is configured,
        a ``DulwichOperationHelper`` otherwise
    """
    if mirror_cache is None:
        mirror_cache = MirrorCache(config.cache_dir, lock_timeout=config.lock_timeout)
    locator = RepositoryLocator(transport_provider)

    if is_native_git_enabled(config):
        logger.debug(f"Using native git at {config.git_capability}")
        return NativeGitOperationHelper(
            config.git_capability.strip(),
            mirror_cache,
            locator,
            fetch_timeout=config.fetch_timeout,
        )
    logger.debug("Using embedded git implementation")
    return DulwichOperationHelper(
        mirror_cache, locator, fetch_timeout=config.fetch_timeout
    )
