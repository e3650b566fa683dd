"""Operation helper backed by dulwich, a pure-Python git implementation."""

import logging
import os
import socket
import stat
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from dulwich.client import get_transport_and_path
from dulwich.config import ConfigDict, StackedConfig
from dulwich.diff_tree import tree_changes
from dulwich.errors import NotGitRepository
from dulwich.objects import S_ISGITLINK
from dulwich.objects import Commit as GitCommit
from dulwich.repo import Repo

from gitdelta.exceptions import CheckoutFailure, RepositoryUnavailable
from gitdelta.git.helper import OperationHelper, checked_path, write_blob
from gitdelta.git.mirror import Mirror
from gitdelta.model import Commit

logger = logging.getLogger(__name__)

HEADS_PREFIX = b"refs/heads/"


def _decode(value: bytes, encoding: str = "utf-8") -> str:
    try:
        return value.decode(encoding, errors="replace")
    except LookupError:
        return value.decode("utf-8", errors="replace")


@contextmanager
def socket_timeout(seconds: Optional[float]) -> Iterator[None]:
    """Give sockets created inside the block a blocking timeout of ``seconds``."""
    if seconds is None:
        yield
        return
    previous = socket.getdefaulttimeout()
    socket.setdefaulttimeout(seconds)
    try:
        yield
    finally:
        socket.setdefaulttimeout(previous)


def ssh_command(timeout: float) -> str:
    """The ssh command line, with connect and keepalive limits of ``timeout`` seconds."""
    base = os.environ.get("GIT_SSH_COMMAND") or "ssh"
    seconds = max(1, int(timeout))
    return (
        f"{base} -o ConnectTimeout={seconds}"
        f" -o ServerAliveInterval={seconds} -o ServerAliveCountMax=1"
    )


class DulwichOperationHelper(OperationHelper):
    """
    Embedded strategy: every operation runs in-process through dulwich.

    Fetches use dulwich's transport clients (local, ssh, smart http); reads walk the
    object store directly.
    """

    name = "embedded"

    @contextmanager
    def _open(self, mirror: Mirror) -> Iterator[Repo]:
        try:
            repo = Repo(str(mirror.path))
        except NotGitRepository as e:
            raise RepositoryUnavailable(
                mirror.remote.fetch_url, f"mirror at {mirror.path} is corrupt: {e}"
            ) from e
        try:
            yield repo
        finally:
            repo.close()

    def _init_bare(self, path: Path) -> None:
        Repo.init_bare(str(path), mkdir=True).close()

    def _client(self, mirror: Mirror):
        remote = mirror.remote
        kwargs = {}
        if remote.is_http:
            overrides = ConfigDict()
            if self.fetch_timeout is not None:
                overrides.set((b"http",), b"timeout", str(int(self.fetch_timeout)))
            kwargs["config"] = StackedConfig(
                [overrides] + StackedConfig.default_backends()
            )
            credentials = remote.credentials
            if credentials is not None and not credentials.is_empty:
                kwargs["username"] = credentials.username
                kwargs["password"] = credentials.password
        elif remote.is_ssh and self.fetch_timeout is not None:
            kwargs["ssh_command"] = ssh_command(self.fetch_timeout)
        return get_transport_and_path(remote.fetch_url, **kwargs)

    def _fetch(self, mirror: Mirror) -> None:
        with self._open(mirror) as repo:
            try:
                client, path = self._client(mirror)
                # git:// connections are plain sockets
                timeout = None if mirror.remote.is_http else self.fetch_timeout
                with socket_timeout(timeout):
                    result = client.fetch(path, repo)
            except Exception as e:
                logger.error(f"Failed to fetch {mirror.remote}: {e}")
                raise RepositoryUnavailable(mirror.remote.fetch_url, str(e)) from e

            remote_heads = {
                name: sha
                for name, sha in result.refs.items()
                if name.startswith(HEADS_PREFIX) and sha is not None
            }
            local_heads = repo.refs.as_dict(HEADS_PREFIX.rstrip(b"/"))
            for name in local_heads:
                if HEADS_PREFIX + name not in remote_heads:
                    logger.debug(f"Pruning deleted branch {name.decode('utf-8')}")
                    del repo.refs[HEADS_PREFIX + name]
            for name, sha in remote_heads.items():
                if local_heads.get(name[len(HEADS_PREFIX) :]) != sha:
                    repo.refs[name] = sha

            config = repo.get_config()
            url = mirror.remote.fetch_url.encode("utf-8")
            try:
                current = config.get((b"remote", b"origin"), b"url")
            except KeyError:
                current = None
            if current != url:
                config.set((b"remote", b"origin"), b"url", url)
                config.write_to_path()

    def _read_branch(self, mirror: Mirror, branch: str) -> Optional[str]:
        with self._open(mirror) as repo:
            try:
                sha = repo.refs[HEADS_PREFIX + branch.encode("utf-8")]
            except KeyError:
                return None
            if not isinstance(repo.get_object(sha), GitCommit):
                return None
            return sha.decode("ascii")

    def _has_commit(self, mirror: Mirror, revision: str) -> bool:
        with self._open(mirror) as repo:
            try:
                return isinstance(repo[revision.encode("ascii")], GitCommit)
            except KeyError:
                return False

    def _read_commits(
        self, mirror: Mirror, include: str, exclude: Optional[str]
    ) -> List[Commit]:
        with self._open(mirror) as repo:
            walker = repo.get_walker(
                include=[include.encode("ascii")],
                exclude=[exclude.encode("ascii")] if exclude else None,
            )
            return [self._to_commit(repo, entry.commit) for entry in walker]

    def _to_commit(self, repo: Repo, commit: GitCommit) -> Commit:
        encoding = commit.encoding.decode("ascii") if commit.encoding else "utf-8"
        parent_tree = repo[commit.parents[0]].tree if commit.parents else None
        files = set()
        for change in tree_changes(repo.object_store, parent_tree, commit.tree):
            for entry in (change.old, change.new):
                if entry is not None and entry.path is not None:
                    files.add(_decode(entry.path))
        return Commit(
            revision=commit.id.decode("ascii"),
            parents=tuple(p.decode("ascii") for p in commit.parents),
            author=_decode(commit.author, encoding),
            comment=_decode(commit.message, encoding).rstrip(),
            timestamp=commit.commit_time,
            files=tuple(sorted(files)),
        )

    def _materialize(self, mirror: Mirror, revision: str, target: Path) -> None:
        with self._open(mirror) as repo:
            tree_id = repo[revision.encode("ascii")].tree
            self._write_tree(repo, tree_id, target, revision)

    def _write_tree(self, repo: Repo, tree_id: bytes, directory: Path, revision: str):
        for entry in repo[tree_id].items():
            if b"/" in entry.path:
                raise CheckoutFailure(
                    revision, directory, f"refusing to write path {entry.path!r}"
                )
            dest = checked_path(entry.path, revision, directory)
            if stat.S_ISDIR(entry.mode):
                dest.mkdir()
                self._write_tree(repo, entry.sha, dest, revision)
            elif S_ISGITLINK(entry.mode):
                # Submodules are not fetched; leave an empty directory like git does
                dest.mkdir()
            else:
                write_blob(dest, entry.mode, repo[entry.sha].as_raw_string())
