"""
Durable local mirrors of remote repositories.

Cache Structure Example:
    ~/.cache/gitdelta/mirrors/
    ├── github.com/
    │   └── user/
    │       ├── repo/              # bare repository, refs/heads/* mirror the remote
    │       └── repo.lock          # per-mirror lock file
    └── local/
        └── srv/git/project/

One mirror exists per normalized repository identity, whatever the branch or the
caller's working directory. Mirrors are created lazily, refreshed on every
detection or checkout and never pruned of objects, so history seen once stays
available for later ancestry queries. Eviction is left to the caller.

Mutating access (fetch) and reads are serialized per mirror with a FileLock, which
works across threads and processes sharing the cache directory.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dulwich.errors import NotGitRepository
from dulwich.repo import Repo
from filelock import FileLock, Timeout

from gitdelta.config import get_mirror_cache_dir
from gitdelta.exceptions import RepositoryUnavailable
from gitdelta.git.locator import LocatedRepository

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


@dataclass
class Mirror:
    """Handle to one cached repository."""

    identity: str
    path: Path
    remote: LocatedRepository
    lock: FileLock = field(repr=False)
    lock_timeout: float = 600.0

    def exists(self) -> bool:
        return (self.path / "HEAD").is_file()

    def locked(self) -> "_MirrorLockContext":
        """Scoped exclusive access; re-entrant for this handle."""
        return _MirrorLockContext(self)


class _MirrorLockContext:
    def __init__(self, mirror: Mirror):
        self.mirror = mirror

    def __enter__(self) -> Mirror:
        try:
            self.mirror.lock.acquire(timeout=self.mirror.lock_timeout)
        except Timeout as e:
            raise RepositoryUnavailable(
                self.mirror.remote.fetch_url,
                f"timed out waiting for lock {self.mirror.lock.lock_file}",
            ) from e
        return self.mirror

    def __exit__(self, exc_type, exc, tb) -> None:
        self.mirror.lock.release()


class MirrorCache:
    """
    Explicit handle on a mirror cache directory.

    Hands out one ``Mirror`` per identity so that nested lock acquisitions within a
    process reuse the same lock object.

    Usage:
        cache = MirrorCache(tmp_path / "mirrors")
        mirror = cache.mirror_for(located)
        with mirror.locked():
            ...
    """

    def __init__(self, cache_dir: Optional[Path] = None, lock_timeout: float = 600.0):
        if cache_dir is None:
            cache_dir = get_mirror_cache_dir()
        self.cache_dir = Path(cache_dir).expanduser()
        self.lock_timeout = lock_timeout
        self._mirrors: Dict[str, Mirror] = {}

    def path_for(self, identity: str) -> Path:
        """
        The mirror directory for ``identity``.

        Raises:
            RepositoryUnavailable: The path would lie outside the cache directory
        """
        root = self.cache_dir.resolve()
        path = self.cache_dir / identity
        if path.resolve() == root or not path.resolve().is_relative_to(root):
            raise RepositoryUnavailable(
                identity, f"mirror path escapes the cache directory {self.cache_dir}"
            )
        return path

    def mirror_for(self, remote: LocatedRepository) -> Mirror:
        """Return the mirror handle for a located repository; nothing is fetched."""
        mirror = self._mirrors.get(remote.identity)
        if mirror is not None:
            if mirror.remote != remote:
                # Same identity reached through a different URL or credentials
                mirror.remote = remote
            return mirror

        path = self.path_for(remote.identity)
        path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(path) + LOCK_SUFFIX)
        mirror = Mirror(
            identity=remote.identity,
            path=path,
            remote=remote,
            lock=lock,
            lock_timeout=self.lock_timeout,
        )
        self._mirrors[remote.identity] = mirror
        return mirror

    def list_mirrors(self) -> List[Path]:
        """Paths of all initialized mirrors below the cache directory."""
        if not self.cache_dir.exists():
            return []
        return sorted(
            head.parent
            for head in self.cache_dir.rglob("HEAD")
            if head.is_file()
            and (head.parent / "objects").is_dir()
            and (head.parent / "refs").is_dir()
        )


def describe_cache(cache_dir: Optional[Path] = None) -> list:
    """
    Describe the mirrors held in a cache directory.

    Returns:
        List of dictionaries with mirror information:
        - identity: Relative path in cache (e.g., "github.com/user/repo")
        - url: Remote URL the mirror was last fetched from
        - branches: Mapping of branch name to head commit
    """
    cache = MirrorCache(cache_dir)
    results = []
    for path in cache.list_mirrors():
        identity = path.relative_to(cache.cache_dir).as_posix()
        try:
            repo = Repo(str(path))
        except NotGitRepository as e:
            logger.debug(f"Skipping unreadable mirror at {path}: {e}")
            continue
        try:
            config = repo.get_config()
            try:
                url = config.get((b"remote", b"origin"), b"url").decode("utf-8")
            except KeyError:
                url = "unknown"
            branches = {
                name.decode("utf-8"): sha.decode("ascii")
                for name, sha in repo.refs.as_dict(b"refs/heads").items()
            }
        finally:
            repo.close()
        results.append({"identity": identity, "url": url, "branches": branches})
    return results
