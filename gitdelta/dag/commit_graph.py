"""Arena-backed commit graph used to order commits by topological recency."""

import heapq
from typing import Dict, Iterable, List, Tuple

from gitdelta.model import Commit


class CommitGraph:
    """
    A flat table of commits addressed by revision.

    Commits live in a list (the arena); ``_index`` maps a revision to its slot and
    ``_parents`` holds, per slot, the slots of the parents that are present in the
    graph. Parents outside the graph are kept on the ``Commit`` record but ignored
    for traversal, so a graph may hold any slice of a larger history.

    Example:
        >>> graph = CommitGraph(commits)
        >>> [c.revision for c in graph.topological_order()]
    """

    def __init__(self, commits: Iterable[Commit] = ()) -> None:
        self._commits: List[Commit] = []
        self._index: Dict[str, int] = {}
        self._parents: List[Tuple[int, ...]] = []
        self._pending: List[int] = []
        for commit in commits:
            self.add(commit)

    def add(self, commit: Commit) -> int:
        """Add a commit and return its slot. Re-adding a known revision is a no-op."""
        slot = self._index.get(commit.revision)
        if slot is not None:
            return slot
        slot = len(self._commits)
        self._commits.append(commit)
        self._index[commit.revision] = slot
        self._parents.append(())
        self._pending.append(slot)
        return slot

    def _link(self) -> None:
        # Parent slots are resolved lazily since parents may be added after children
        if not self._pending:
            return
        for slot in range(len(self._commits)):
            self._parents[slot] = tuple(
                self._index[p]
                for p in self._commits[slot].parents
                if p in self._index
            )
        self._pending = []

    def __contains__(self, revision: object) -> bool:
        return revision in self._index

    def __len__(self) -> int:
        return len(self._commits)

    def __getitem__(self, revision: str) -> Commit:
        return self._commits[self._index[revision]]

    def topological_order(self) -> List[Commit]:
        """
        Return all commits, each before every one of its ancestors.

        Among commits whose children have all been emitted, the most recent
        timestamp goes first; equal timestamps fall back to the revision id, both
        descending. The result only depends on the commits in the graph, not on
        insertion order.
        """
        self._link()
        children_left = [0] * len(self._commits)
        for parents in self._parents:
            for parent in parents:
                children_left[parent] += 1

        def key(slot: int) -> Tuple[int, str]:
            commit = self._commits[slot]
            # heapq is a min-heap; negate to pop the newest first. Revision ids are
            # hex strings, so descending order is taken on their complement.
            return (-commit.timestamp, _descending(commit.revision))

        ready = [(key(slot), slot) for slot, n in enumerate(children_left) if n == 0]
        heapq.heapify(ready)
        result: List[Commit] = []
        while ready:
            _, slot = heapq.heappop(ready)
            result.append(self._commits[slot])
            for parent in self._parents[slot]:
                children_left[parent] -= 1
                if children_left[parent] == 0:
                    heapq.heappush(ready, (key(parent), parent))

        if len(result) != len(self._commits):
            raise ValueError("The commit graph contains a cycle")
        return result


_HEX_COMPLEMENT = str.maketrans("0123456789abcdef", "fedcba9876543210")


def _descending(revision: str) -> str:
    return revision.lower().translate(_HEX_COMPLEMENT)
