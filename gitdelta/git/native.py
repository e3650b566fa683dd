"""Operation helper that drives a native git executable through GitPython."""

import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from git import Git
from git.exc import GitCommandError, GitCommandNotFound

from gitdelta.config import DEFAULT_FETCH_TIMEOUT
from gitdelta.exceptions import CheckoutFailure, RepositoryUnavailable
from gitdelta.git.helper import OperationHelper, checked_path, write_blob
from gitdelta.git.locator import RepositoryLocator
from gitdelta.git.mirror import Mirror, MirrorCache
from gitdelta.model import Commit

logger = logging.getLogger(__name__)

# One record per commit: id, parents, author, committer time, raw message
LOG_FORMAT = "%H%x00%P%x00%an <%ae>%x00%ct%x00%B%x1e"

# Never prompt for credentials; a missing credential is a fetch failure
FETCH_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class NativeGitOperationHelper(OperationHelper):
    """
    Native strategy: every operation is a ``git`` process against the bare mirror.

    The executable is the configured git capability, so no global GitPython state
    is touched. Fetches are killed after ``fetch_timeout`` seconds.
    """

    name = "native"

    def __init__(
        self,
        git_executable: str,
        mirror_cache: MirrorCache,
        locator: Optional[RepositoryLocator] = None,
        fetch_timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT,
    ):
        super().__init__(mirror_cache, locator, fetch_timeout)
        self.git_executable = git_executable

    def _git(
        self,
        git_dir: Optional[Path],
        *args: str,
        env: Optional[dict] = None,
        timeout: Optional[float] = None,
        istream=None,
    ) -> bytes:
        command = [self.git_executable]
        if git_dir is not None:
            command += ["--git-dir", str(git_dir)]
        command += list(args)
        try:
            return Git().execute(
                command,
                kill_after_timeout=timeout,
                env=env,
                istream=istream,
                stdout_as_string=False,
            )
        except GitCommandNotFound as e:
            raise RepositoryUnavailable(
                str(git_dir or ""), f"git executable '{self.git_executable}' not found"
            ) from e

    def _init_bare(self, path: Path) -> None:
        try:
            self._git(None, "init", "--bare", "--quiet", str(path))
        except GitCommandError as e:
            raise RepositoryUnavailable(str(path), f"git init failed: {e.stderr}") from e

    def _fetch(self, mirror: Mirror) -> None:
        url = mirror.remote.authenticated_url()
        try:
            self._git(
                mirror.path,
                "fetch",
                "--quiet",
                "--prune",
                "--no-tags",
                "--update-head-ok",
                url,
                "+refs/heads/*:refs/heads/*",
                env=FETCH_ENV,
                timeout=self.fetch_timeout,
            )
            self._git(mirror.path, "config", "remote.origin.url", mirror.remote.fetch_url)
        except GitCommandError as e:
            message = str(e.stderr or e).replace(url, mirror.remote.fetch_url)
            logger.error(f"Failed to fetch {mirror.remote}: {message}")
            raise RepositoryUnavailable(mirror.remote.fetch_url, message) from e

    def _read_branch(self, mirror: Mirror, branch: str) -> Optional[str]:
        refname = f"refs/heads/{branch}"
        try:
            out = self._git(
                mirror.path,
                "for-each-ref",
                "--format=%(refname)%00%(objectname)%00%(objecttype)",
                refname,
            )
        except GitCommandError as e:
            raise RepositoryUnavailable(mirror.remote.fetch_url, str(e.stderr)) from e
        for line in _decode(out).splitlines():
            name, sha, kind = line.split("\x00")
            if name == refname and kind == "commit":
                return sha
        return None

    def _has_commit(self, mirror: Mirror, revision: str) -> bool:
        try:
            out = self._git(mirror.path, "cat-file", "-t", revision)
        except GitCommandError:
            return False
        return out.strip() == b"commit"

    def _read_commits(
        self, mirror: Mirror, include: str, exclude: Optional[str]
    ) -> List[Commit]:
        args = [
            "log",
            "--no-show-signature",
            "--encoding=UTF-8",
            f"--format={LOG_FORMAT}",
            include,
        ]
        if exclude:
            args.append(f"^{exclude}")
        args.append("--")
        try:
            out = self._git(mirror.path, *args)
        except GitCommandError as e:
            raise RepositoryUnavailable(mirror.remote.fetch_url, str(e.stderr)) from e

        commits = []
        for record in out.split(b"\x1e"):
            record = record.lstrip(b"\n")
            if not record:
                continue
            revision, parents, author, timestamp, message = record.split(b"\x00", 4)
            revision = _decode(revision)
            parent_list = tuple(_decode(parents).split())
            commits.append(
                Commit(
                    revision=revision,
                    parents=parent_list,
                    author=_decode(author),
                    comment=_decode(message).rstrip(),
                    timestamp=int(timestamp),
                    files=self._changed_files(mirror, revision, parent_list),
                )
            )
        return commits

    def _changed_files(self, mirror: Mirror, revision: str, parents: tuple) -> tuple:
        args = ["diff-tree", "-r", "--name-only", "-z", "--no-renames"]
        if parents:
            args += [parents[0], revision]
        else:
            args += ["--root", "--no-commit-id", revision]
        try:
            out = self._git(mirror.path, *args)
        except GitCommandError as e:
            raise RepositoryUnavailable(mirror.remote.fetch_url, str(e.stderr)) from e
        return tuple(sorted({_decode(p) for p in out.split(b"\x00") if p}))

    def _materialize(self, mirror: Mirror, revision: str, target: Path) -> None:
        # Blobs are written as stored, so .gitattributes and filters never apply
        try:
            listing = self._git(
                mirror.path, "ls-tree", "-r", "-z", "--full-tree", revision
            )
        except GitCommandError as e:
            raise CheckoutFailure(revision, target, str(e.stderr)) from e

        entries = []
        for record in listing.split(b"\x00"):
            if not record:
                continue
            info, path = record.split(b"\t", 1)
            mode, kind, sha = info.split()
            entries.append((int(mode, 8), kind, sha, path))

        wanted = [sha for _, kind, sha, _ in entries if kind == b"blob"]
        blobs = self._read_blobs(mirror, revision, target, wanted)
        for mode, kind, sha, path in entries:
            dest = checked_path(path, revision, target)
            dest.parent.mkdir(parents=True, exist_ok=True)
            if kind == b"commit":
                # Submodules are not fetched; leave an empty directory like git does
                dest.mkdir()
            else:
                write_blob(dest, mode, blobs[sha])

    def _read_blobs(
        self, mirror: Mirror, revision: str, target: Path, shas: List[bytes]
    ) -> Dict[bytes, bytes]:
        """Raw contents of ``shas``, read through one ``cat-file --batch`` process."""
        shas = list(dict.fromkeys(shas))
        if not shas:
            return {}
        with tempfile.TemporaryFile() as request:
            request.write(b"".join(sha + b"\n" for sha in shas))
            request.seek(0)
            try:
                out = self._git(mirror.path, "cat-file", "--batch", istream=request)
            except GitCommandError as e:
                raise CheckoutFailure(revision, target, str(e.stderr)) from e

        blobs = {}
        offset = 0
        for _ in shas:
            end = out.index(b"\n", offset)
            header = out[offset:end].split()
            if len(header) != 3:
                raise CheckoutFailure(
                    revision, target, f"cannot read object {_decode(header[0])}"
                )
            sha, _kind, size = header
            start = end + 1
            blobs[sha] = out[start : start + int(size)]
            # Every object is followed by a newline
            offset = start + int(size) + 1
        return blobs
