import io
import logging
from pathlib import Path

import pytest

from gitdelta import GitRepository, RepositoryAccessData, RepositoryConfig
from gitdelta.git import MirrorCache
from tests.git_history import GIT_EXECUTABLE, MultipleBranches


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("gitdelta")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream

    logger.removeHandler(handler)
    log_stream.close()


# git fixtures


@pytest.fixture(scope="session")
def multiple_branches(tmp_path_factory) -> MultipleBranches:
    """The five snapshots of the multiple-branches history, built once per session."""
    return MultipleBranches(tmp_path_factory.mktemp("snapshots"))


@pytest.fixture(params=["embedded", "native"])
def helper_kind(request) -> str:
    """Run a test against both operation helpers."""
    if request.param == "native" and GIT_EXECUTABLE is None:
        pytest.skip("git executable not available")
    return request.param


@pytest.fixture
def git_capability(helper_kind):
    return GIT_EXECUTABLE if helper_kind == "native" else None


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    return tmp_path / "mirrors"


@pytest.fixture
def mirror_cache(cache_dir) -> MirrorCache:
    return MirrorCache(cache_dir, lock_timeout=5)


@pytest.fixture
def remote(tmp_path) -> Path:
    """Location of a source repository whose content tests swap between snapshots."""
    return tmp_path / "remote"


@pytest.fixture
def make_repository(git_capability, cache_dir, mirror_cache):
    """Factory for GitRepository instances sharing one mirror cache."""

    def _make(
        source,
        branch: str = "master",
        path_restriction=None,
        max_changes: int = 100,
    ) -> GitRepository:
        config = RepositoryConfig(
            access_data=RepositoryAccessData(
                repository_url=str(source),
                branch=branch,
                path_restriction=path_restriction,
            ),
            git_capability=git_capability,
            cache_dir=cache_dir,
            lock_timeout=5,
            max_changes=max_changes,
        )
        return GitRepository(config, mirror_cache=mirror_cache)

    return _make
