"""Compute the changes between a previously recorded revision and a branch head."""

import logging
from typing import Optional

from gitdelta.exceptions import UnresolvableBranch
from gitdelta.git.helper import OperationHelper
from gitdelta.git.mirror import Mirror
from gitdelta.model import BuildRepositoryChanges, Change

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHANGES = 100


class ChangeWalker:
    """
    Turns two points in history into an ordered list of changes.

    With no previous revision the detection is an initial one and only the new head
    is reported. Otherwise the changes are the commits reachable from the head and
    not from the previous revision, newest first. The previous revision has to be
    present in the mirror already; a revision the mirror never saw cannot be
    compared against and fails the detection.
    """

    def __init__(self, helper: OperationHelper, max_changes: int = DEFAULT_MAX_CHANGES):
        self.helper = helper
        self.max_changes = max_changes

    def detect(
        self,
        mirror: Mirror,
        branch: str,
        previous_revision: Optional[str],
        path_restriction: Optional[str] = None,
    ) -> BuildRepositoryChanges:
        """Resolve ``branch`` from the already refreshed mirror and compute changes."""
        head = self.helper.resolve_head(mirror, branch, local_only=True)
        return self.compute_changes(mirror, head, previous_revision, path_restriction)

    def compute_changes(
        self,
        mirror: Mirror,
        head_revision: str,
        previous_revision: Optional[str],
        path_restriction: Optional[str] = None,
    ) -> BuildRepositoryChanges:
        if previous_revision is None or not previous_revision.strip():
            logger.info(f"Initial detection on {mirror.identity}, head is {head_revision}")
            return BuildRepositoryChanges(new_revision=head_revision)

        previous_revision = previous_revision.strip().lower()
        if previous_revision == head_revision:
            return BuildRepositoryChanges(new_revision=head_revision)

        if not self.helper.contains_revision(mirror, previous_revision):
            raise UnresolvableBranch(
                f"Cannot determine changes since revision {previous_revision}: "
                f"it is not known to the mirror of {mirror.remote}"
            )

        commits = self.helper.ancestors_exclusive_of(
            mirror, head_revision, previous_revision
        )
        if path_restriction:
            commits = [c for c in commits if c.touches(path_restriction)]

        skipped = max(0, len(commits) - self.max_changes)
        if skipped:
            logger.info(
                f"Reporting {self.max_changes} of {len(commits)} changes on {mirror.identity}"
            )
        changes = [Change.from_commit(c) for c in commits[: self.max_changes]]
        return BuildRepositoryChanges(
            new_revision=head_revision, changes=changes, skipped_commits=skipped
        )
