"""
Build source repositories with fully deterministic history for tests.

Commits are written straight into a bare repository with dulwich object APIs and
fixed timestamps, so every commit id below is stable across runs and machines.

The multiple-branches layout used throughout the tests:

    * S5 commit 5 on second
    * S3 commit 3 on second
    | * M4 commit 4 on master
    | * M2 commit 2 on master
    |/
    * M1 initial commit

Snapshot "n" is the source repository as it looked right after commit n.
"""

import os
import shutil
import stat
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

GIT_EXECUTABLE = shutil.which("git")

AUTHOR = b"Test Author <author@example.com>"
BASE_TIME = 1_300_000_000

FILE_MODE = 0o100644
EXEC_MODE = 0o100755
LINK_MODE = 0o120000

# path -> content, or path -> (mode, content)
TreeLayout = Dict[str, Union[bytes, Tuple[int, bytes]]]


class HistoryBuilder:
    """Writes commits into a bare repository and remembers each commit's tree."""

    def __init__(self, path: Path):
        self.path = path
        if (path / "HEAD").exists():
            self.repo = Repo(str(path))
        else:
            self.repo = Repo.init_bare(str(path), mkdir=True)
        self.trees: Dict[str, TreeLayout] = {}

    def close(self):
        self.repo.close()

    def _write_tree(self, entries: Dict[str, Tuple[int, bytes]]) -> bytes:
        tree = Tree()
        subdirs: Dict[str, Dict[str, Tuple[int, bytes]]] = {}
        for path, (mode, content) in entries.items():
            head, _, rest = path.partition("/")
            if rest:
                subdirs.setdefault(head, {})[rest] = (mode, content)
                continue
            blob = Blob.from_string(content)
            self.repo.object_store.add_object(blob)
            tree.add(head.encode("utf-8"), mode, blob.id)
        for name, sub_entries in subdirs.items():
            tree.add(name.encode("utf-8"), stat.S_IFDIR, self._write_tree(sub_entries))
        self.repo.object_store.add_object(tree)
        return tree.id

    def commit(
        self,
        files: TreeLayout,
        message: str,
        timestamp: int,
        parents: Optional[List[str]] = None,
        branch: Optional[str] = None,
    ) -> str:
        entries = {
            path: value if isinstance(value, tuple) else (FILE_MODE, value)
            for path, value in files.items()
        }
        commit = Commit()
        commit.tree = self._write_tree(entries)
        commit.parents = [p.encode("ascii") for p in parents or []]
        commit.author = commit.committer = AUTHOR
        commit.author_time = commit.commit_time = timestamp
        commit.author_timezone = commit.commit_timezone = 0
        commit.message = message.encode("utf-8") + b"\n"
        self.repo.object_store.add_object(commit)
        revision = commit.id.decode("ascii")
        self.trees[revision] = files
        if branch is not None:
            self.set_branch(branch, revision)
        return revision

    def set_branch(self, branch: str, revision: str):
        self.repo.refs[b"refs/heads/" + branch.encode("utf-8")] = revision.encode(
            "ascii"
        )

    def delete_branch(self, branch: str):
        del self.repo.refs[b"refs/heads/" + branch.encode("utf-8")]


COMMENT_M_1 = "initial commit"
COMMENT_M_2 = "commit 2 on master"
COMMENT_S_3 = "commit 3 on second"
COMMENT_M_4 = "commit 4 on master"
COMMENT_S_5 = "commit 5 on second"

TREE_M_1: TreeLayout = {
    "README": b"multiple branches\n",
    "shared.txt": b"initial\n",
}
TREE_M_2: TreeLayout = {
    "README": b"multiple branches\n",
    "shared.txt": b"changed on master in 2\n",
    "master.txt": b"2\n",
}
TREE_S_3: TreeLayout = {
    "README": b"multiple branches\n",
    "shared.txt": b"changed on second in 3\n",
    "second/notes.txt": b"3\n",
}
TREE_M_4: TreeLayout = {
    "README": b"multiple branches\n",
    "shared.txt": b"changed on master in 4\n",
    "master.txt": b"4\n",
    "bin/run.sh": (EXEC_MODE, b"#!/bin/sh\necho 4\n"),
}
TREE_S_5: TreeLayout = {
    "README": b"multiple branches\n",
    "shared.txt": b"changed on second in 5\n",
    "second/notes.txt": b"5\n",
    "second/deep/more.txt": b"five\n",
    "readme-link": (LINK_MODE, b"README"),
}


class MultipleBranches:
    """Revisions and trees of the multiple-branches history."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.revisions: Dict[str, str] = {}
        self.trees: Dict[str, TreeLayout] = {}
        for n in range(1, 6):
            self._build_snapshot(n)

    def _build_snapshot(self, n: int) -> Path:
        builder = HistoryBuilder(self.snapshot(n))
        try:
            m1 = builder.commit(TREE_M_1, COMMENT_M_1, BASE_TIME, branch="master")
            if n >= 2:
                m2 = builder.commit(
                    TREE_M_2, COMMENT_M_2, BASE_TIME + 100, [m1], branch="master"
                )
            if n >= 3:
                s3 = builder.commit(
                    TREE_S_3, COMMENT_S_3, BASE_TIME + 200, [m1], branch="second"
                )
            if n >= 4:
                builder.commit(
                    TREE_M_4, COMMENT_M_4, BASE_TIME + 300, [m2], branch="master"
                )
            if n >= 5:
                builder.commit(
                    TREE_S_5, COMMENT_S_5, BASE_TIME + 400, [s3], branch="second"
                )
            self.trees.update(builder.trees)
            names = ["M1", "M2", "S3", "M4", "S5"]
            for name, revision in zip(names, builder.trees):
                self.revisions[name] = revision
        finally:
            builder.close()
        return self.snapshot(n)

    def snapshot(self, n: Union[int, str]) -> Path:
        return self.base_dir / str(n)

    def head(self, n: int, branch: str) -> str:
        """Head of ``branch`` in snapshot ``n``."""
        if branch == "master":
            return self.revisions["M4" if n >= 4 else "M2" if n >= 2 else "M1"]
        return self.revisions["S5" if n >= 5 else "S3"]

    def copy_snapshot(self, n: int, target: Path) -> Path:
        """Replace ``target`` with a copy of snapshot ``n``."""
        if target.exists():
            shutil.rmtree(target)
        shutil.copytree(self.snapshot(n), target)
        return target


def expected_tree(layout: TreeLayout) -> Dict[str, Tuple[str, bytes]]:
    """Turn a tree layout into the shape ``read_tree`` returns."""
    result = {}
    for path, value in layout.items():
        mode, content = value if isinstance(value, tuple) else (FILE_MODE, value)
        if mode == LINK_MODE:
            result[path] = ("link", content)
        elif mode == EXEC_MODE:
            result[path] = ("exec", content)
        else:
            result[path] = ("file", content)
    return result


def read_tree(directory: Path) -> Dict[str, Tuple[str, bytes]]:
    """Snapshot a checked out directory: kind and content per relative path."""
    result = {}
    for root, dirs, files in os.walk(directory):
        for name in files + [d for d in dirs if os.path.islink(os.path.join(root, d))]:
            full = Path(root) / name
            rel = full.relative_to(directory).as_posix()
            if full.is_symlink():
                result[rel] = ("link", os.fsencode(os.readlink(full)))
            elif os.access(full, os.X_OK):
                result[rel] = ("exec", full.read_bytes())
            else:
                result[rel] = ("file", full.read_bytes())
    return result
