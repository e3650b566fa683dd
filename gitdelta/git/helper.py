"""
The operation helper contract shared by the native and embedded git strategies.

``OperationHelper`` implements the parts of resolving, walking and checking out
that do not depend on how git is driven: locating the repository, choosing the
mirror, locking, validation and error mapping. Subclasses supply the primitive
store operations (``_init_bare``, ``_fetch``, ``_read_branch``, ``_has_commit``,
``_read_commits``, ``_materialize``), which always run with the mirror lock held.
"""

import logging
import os
import re
import shutil
import stat
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from gitdelta.config import DEFAULT_FETCH_TIMEOUT
from gitdelta.dag import CommitGraph
from gitdelta.exceptions import (
    CheckoutFailure,
    RepositoryUnavailable,
    UnresolvableBranch,
)
from gitdelta.git.locator import RepositoryLocator
from gitdelta.git.mirror import Mirror, MirrorCache
from gitdelta.model import Commit, RepositoryAccessData

logger = logging.getLogger(__name__)

REVISION_PATTERN = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")

# Tree entry names that must never be written to a working directory
UNSAFE_NAMES = {b"", b".", b"..", b".git"}


def is_revision(value: Optional[str]) -> bool:
    """True for a full SHA-1 or SHA-256 commit id."""
    return bool(value) and bool(REVISION_PATTERN.match(value.strip().lower()))


def prepare_target_directory(target: Path, revision: str) -> None:
    """
    Make ``target`` an existing, empty directory.

    The directory itself is kept; everything inside it is removed, whatever
    revision or repository it came from.
    """
    if target.exists() and not target.is_dir():
        raise CheckoutFailure(revision, target, "target exists and is not a directory")
    try:
        target.mkdir(parents=True, exist_ok=True)
        for entry in target.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as e:
        raise CheckoutFailure(revision, target, str(e)) from e


def checked_path(path: bytes, revision: str, target: Path) -> Path:
    """
    Map a slash separated tree path onto ``target``.

    Raises:
        CheckoutFailure: A component is empty, ``.``, ``..`` or ``.git``
    """
    parts = path.split(b"/")
    for part in parts:
        if part in UNSAFE_NAMES:
            raise CheckoutFailure(revision, target, f"refusing to write path {path!r}")
    return target.joinpath(*(os.fsdecode(part) for part in parts))


def write_blob(dest: Path, mode: int, data: bytes) -> None:
    """
    Write one blob entry exactly as stored: no line ending conversion, no filters.

    Symlink entries become symlinks to ``data``; executable entries get an execute
    bit wherever they are readable.
    """
    if stat.S_ISLNK(mode):
        os.symlink(os.fsdecode(data), dest)
        return
    dest.write_bytes(data)
    if mode & 0o111:
        current = dest.stat().st_mode
        dest.chmod(current | ((current & 0o444) >> 2))


class OperationHelper(ABC):
    """Resolve heads, walk history and check out trees for one repository configuration."""

    name = "abstract"

    def __init__(
        self,
        mirror_cache: MirrorCache,
        locator: Optional[RepositoryLocator] = None,
        fetch_timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT,
    ):
        self.mirror_cache = mirror_cache
        self.locator = locator or RepositoryLocator()
        self.fetch_timeout = fetch_timeout

    def mirror_for(self, access_data: RepositoryAccessData) -> Mirror:
        """The mirror handle for a repository, without touching the network."""
        return self.mirror_cache.mirror_for(self.locator.locate(access_data))

    def ensure_fetched(self, access_data: RepositoryAccessData) -> Mirror:
        """Create the mirror if needed and bring it up to date with the remote."""
        mirror = self.mirror_for(access_data)
        self.fetch(mirror)
        return mirror

    def fetch(self, mirror: Mirror) -> None:
        with mirror.locked():
            if not mirror.exists():
                self._create_mirror(mirror)
            logger.info(f"Fetching {mirror.remote} into mirror {mirror.identity}")
            self._fetch(mirror)

    def _create_mirror(self, mirror: Mirror) -> None:
        if mirror.path.exists():
            raise RepositoryUnavailable(
                mirror.remote.fetch_url,
                f"mirror directory {mirror.path} exists but is not a git repository",
            )
        # Initialize beside the final location, then move into place
        staging = mirror.path.with_name(f".{mirror.path.name}.{uuid.uuid4().hex}")
        logger.info(f"Creating mirror {mirror.identity} at {mirror.path}")
        try:
            self._init_bare(staging)
            staging.rename(mirror.path)
        except OSError as e:
            raise RepositoryUnavailable(
                mirror.remote.fetch_url, f"cannot create mirror at {mirror.path}: {e}"
            ) from e
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def resolve_head(self, mirror: Mirror, branch: str, local_only: bool = False) -> str:
        """
        Return the head commit of ``branch``.

        The mirror is refreshed from the remote first unless ``local_only`` is set.

        Raises:
            UnresolvableBranch: The branch does not exist or the repository is empty
        """
        if not local_only:
            self.fetch(mirror)
        head = None
        with mirror.locked():
            if mirror.exists():
                head = self._read_branch(mirror, branch)
        if head is None:
            raise UnresolvableBranch(
                f"Cannot determine head revision of branch '{branch}' in {mirror.remote}",
                branch=branch,
            )
        logger.debug(f"Resolved {mirror.identity}@{branch} to {head}")
        return head

    def contains_revision(self, mirror: Mirror, revision: str) -> bool:
        """True if ``revision`` is a commit already present in the mirror."""
        if not is_revision(revision):
            return False
        with mirror.locked():
            return mirror.exists() and self._has_commit(mirror, revision.strip().lower())

    def ancestors_exclusive_of(
        self, mirror: Mirror, from_revision: str, exclude_revision: Optional[str]
    ) -> List[Commit]:
        """
        Commits reachable from ``from_revision`` but not from ``exclude_revision``.

        The result is ordered newest first: every commit precedes its ancestors,
        and unrelated commits are ordered by descending timestamp.
        """
        with mirror.locked():
            commits = self._read_commits(mirror, from_revision, exclude_revision)
        logger.debug(
            f"Walked {len(commits)} commits from {from_revision} excluding {exclude_revision}"
        )
        return CommitGraph(commits).topological_order()

    def checkout(
        self,
        access_data: RepositoryAccessData,
        revision: str,
        target_directory: Union[str, Path],
    ) -> None:
        """
        Populate ``target_directory`` with exactly the tree of ``revision``.

        Raises:
            UnresolvableBranch: The revision is not known to the remote
            RepositoryUnavailable: The mirror cannot be refreshed
            CheckoutFailure: The directory cannot be prepared or written
        """
        target = Path(target_directory)
        if not is_revision(revision):
            raise UnresolvableBranch(
                f"Cannot find revision '{revision}': not a full commit id"
            )
        revision = revision.strip().lower()
        mirror = self.mirror_for(access_data)
        with mirror.locked():
            if not (mirror.exists() and self._has_commit(mirror, revision)):
                self.fetch(mirror)
            if not self._has_commit(mirror, revision):
                raise UnresolvableBranch(
                    f"Cannot find revision {revision} in {mirror.remote}"
                )
            prepare_target_directory(target, revision)
            logger.info(
                f"Checking out {mirror.remote}@{revision[:7]} to {target}"
            )
            try:
                self._materialize(mirror, revision, target)
            except OSError as e:
                raise CheckoutFailure(revision, target, str(e)) from e

    @abstractmethod
    def _init_bare(self, path: Path) -> None:
        """Initialize an empty bare repository at ``path``."""

    @abstractmethod
    def _fetch(self, mirror: Mirror) -> None:
        """Fetch every branch of the remote into ``refs/heads/*``, pruning deleted ones."""

    @abstractmethod
    def _read_branch(self, mirror: Mirror, branch: str) -> Optional[str]:
        """The commit ``refs/heads/<branch>`` points at, or None."""

    @abstractmethod
    def _has_commit(self, mirror: Mirror, revision: str) -> bool:
        pass

    @abstractmethod
    def _read_commits(
        self, mirror: Mirror, include: str, exclude: Optional[str]
    ) -> List[Commit]:
        """Unordered commits reachable from ``include`` and not from ``exclude``."""

    @abstractmethod
    def _materialize(self, mirror: Mirror, revision: str, target: Path) -> None:
        """Write the tree of ``revision`` into the empty directory ``target``."""
