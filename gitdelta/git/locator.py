"""
Resolve a repository descriptor into something a git operation helper can fetch from.

A repository is identified by a normalized form of its locator, in the Go module
cache style:

    https://github.com/user/repo.git  -> github.com/user/repo
    git@github.com:user/repo.git      -> github.com/user/repo
    /srv/git/project                  -> local/srv/git/project

The identity is independent of branch and of credentials, so every branch and
every user of the same remote shares one mirror.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote, urlparse, urlunparse

from gitdelta.exceptions import RepositoryUnavailable
from gitdelta.model import Credentials, RepositoryAccessData

logger = logging.getLogger(__name__)

# scp-like syntax: [user@]host:path
SCP_PATTERN = re.compile(r"^(?:[^@/]+@)?([^:/]+):(?!//)(.+)$")


class TransportProvider(Protocol):
    """Supplies transport credentials for a repository locator."""

    def credentials_for(self, repository_url: str) -> Optional[Credentials]: ...


def is_local_path(url: str) -> bool:
    """
    Check if a repository URL is a local filesystem path rather than a remote URL.

    Local paths include ".", "..", relative paths, absolute paths, and file:// URLs.
    """
    url = url.strip()
    if url in (".", "..") or url.startswith("./") or url.startswith("../"):
        return True
    if url.startswith("/"):
        return True
    if url.startswith("file://"):
        return True
    if re.match(r"^[A-Za-z]:[\\/]", url):
        # Windows drive path
        return True
    return False


def resolve_local_path(url: str, base_dir: Optional[Path] = None) -> Path:
    """
    Resolve a local repository URL to an absolute filesystem path.

    Args:
        url: Local path (e.g., ".", "/home/user/repo", "file:///path/to/repo")
        base_dir: Directory relative paths are resolved against. Defaults to cwd.
    """
    url = url.strip()
    if url.startswith("file://"):
        url = url[len("file://") :]
    p = Path(url)
    if not p.is_absolute():
        base = base_dir or Path.cwd()
        p = base / p
    return p.resolve()


def _checked_identity(url: str, identity: str) -> str:
    if any(segment in ("", ".", "..") for segment in identity.split("/")):
        raise RepositoryUnavailable(url, f"invalid path segment in '{identity}'")
    return identity


def parse_repo_url(url: str) -> str:
    """
    Parse a git repository URL into a Go-style cache path.

    Examples:
        https://github.com/user/repo.git -> github.com/user/repo
        git@github.com:user/repo.git -> github.com/user/repo
        ssh://git@host:2222/group/project -> host/group/project

    Args:
        url: Git repository URL or local path

    Returns:
        Path-like string (e.g., "github.com/user/repo")

    Raises:
        RepositoryUnavailable: A remote path has an empty, ``.`` or ``..`` segment
    """
    url = url.strip()
    if is_local_path(url):
        path = resolve_local_path(url).as_posix()
        path = re.sub(r"^[A-Za-z]:", "", path).lstrip("/")
        return f"local/{path}"

    original = url
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]

    scp_match = SCP_PATTERN.match(url)
    if scp_match:
        host, path = scp_match.groups()
        return _checked_identity(original, f"{host}/{path.lstrip('/')}")

    parsed = urlparse(url)
    if parsed.hostname:
        path = parsed.path.lstrip("/")
        identity = f"{parsed.hostname}/{path}" if path else parsed.hostname
        return _checked_identity(original, identity)

    # Fallback: treat as is
    return _checked_identity(original, url.replace(":", "/").lstrip("/"))


@dataclass(frozen=True)
class LocatedRepository:
    """A concrete, addressable source for one repository."""

    fetch_url: str
    identity: str
    credentials: Optional[Credentials] = None

    @property
    def is_local(self) -> bool:
        return is_local_path(self.fetch_url)

    @property
    def is_http(self) -> bool:
        return urlparse(self.fetch_url).scheme in ("http", "https")

    @property
    def is_ssh(self) -> bool:
        if self.is_local:
            return False
        if "://" in self.fetch_url:
            return urlparse(self.fetch_url).scheme in ("ssh", "git+ssh")
        return SCP_PATTERN.match(self.fetch_url) is not None

    def authenticated_url(self) -> str:
        """The fetch URL with credentials embedded, for http(s) remotes only."""
        if not self.is_http or self.credentials is None or self.credentials.is_empty:
            return self.fetch_url
        parsed = urlparse(self.fetch_url)
        userinfo = quote(self.credentials.username or "", safe="")
        if self.credentials.password:
            userinfo += ":" + quote(self.credentials.password, safe="")
        netloc = f"{userinfo}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))

    def __str__(self) -> str:
        return self.fetch_url


class RepositoryLocator:
    """Turns ``RepositoryAccessData`` into ``LocatedRepository`` instances."""

    def __init__(
        self,
        transport_provider: Optional[TransportProvider] = None,
        base_dir: Optional[Path] = None,
    ):
        self.transport_provider = transport_provider
        self.base_dir = base_dir

    def locate(self, access_data: RepositoryAccessData) -> LocatedRepository:
        url = access_data.repository_url.strip()
        if not url:
            raise RepositoryUnavailable(url, "no repository location configured")

        if is_local_path(url):
            fetch_url = str(resolve_local_path(url, self.base_dir))
        else:
            fetch_url = url

        credentials = access_data.authentication
        if self.transport_provider is not None:
            provided = self.transport_provider.credentials_for(url)
            if provided is not None:
                credentials = provided

        identity = parse_repo_url(fetch_url)
        logger.debug(f"Located {url} as {identity}")
        return LocatedRepository(
            fetch_url=fetch_url, identity=identity, credentials=credentials
        )
