"""Entry points used by a build orchestrator: detect changes and retrieve sources."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from gitdelta.git.factory import create_operation_helper
from gitdelta.git.locator import TransportProvider
from gitdelta.git.mirror import MirrorCache
from gitdelta.git.walker import ChangeWalker
from gitdelta.model import BuildRepositoryChanges, RepositoryConfig

logger = logging.getLogger(__name__)


class GitRepository:
    """
    One configured git repository as seen by a build plan.

    The operation helper is chosen once, when the repository is created. Pass a
    shared ``MirrorCache`` to let several repositories reuse the same mirrors.

    Usage:
        repo = GitRepository(RepositoryConfig.from_defaults(access_data))
        changes = repo.collect_changes_since_last_build("PLAN-1", last_revision)
        repo.retrieve_source_code("PLAN-1-7", changes.new_revision, work_dir)
    """

    def __init__(
        self,
        config: RepositoryConfig,
        mirror_cache: Optional[MirrorCache] = None,
        transport_provider: Optional[TransportProvider] = None,
    ):
        self.config = config
        if mirror_cache is None:
            mirror_cache = MirrorCache(config.cache_dir, lock_timeout=config.lock_timeout)
        self.mirror_cache = mirror_cache
        self.helper = create_operation_helper(config, mirror_cache, transport_provider)
        self.walker = ChangeWalker(self.helper, max_changes=config.max_changes)

    @property
    def access_data(self):
        return self.config.access_data

    def collect_changes_since_last_build(
        self, build_key: str, previous_revision: Optional[str]
    ) -> BuildRepositoryChanges:
        """
        Detect the commits on the configured branch since ``previous_revision``.

        Args:
            build_key: Correlation id, used for logging only
            previous_revision: Revision recorded by the last build, or None

        Returns:
            The new revision key and the changes since the previous one
        """
        access = self.access_data
        since = previous_revision or "first build"
        logger.info(
            f"[{build_key}] Detecting changes on {access.repository_url}@{access.branch} since {since}"
        )
        mirror = self.helper.ensure_fetched(access)
        result = self.walker.detect(
            mirror, access.branch, previous_revision, access.path_restriction
        )
        logger.info(
            f"[{build_key}] {access.branch} is at {result.new_revision}, {len(result.changes)} changes"
        )
        return result

    def retrieve_source_code(
        self, build_context: Any, revision: str, target_directory: Union[str, Path]
    ) -> None:
        """Check out ``revision`` into ``target_directory``, replacing its contents."""
        logger.info(f"[{build_context}] Retrieving {revision} into {target_directory}")
        self.helper.checkout(self.access_data, revision, Path(target_directory))
