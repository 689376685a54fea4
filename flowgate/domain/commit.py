"""
Commit domain objects for flowgate.

Commits are immutable nodes of a directed acyclic graph. The graph is an
append-only arena addressed by commit id: nodes refer to their parents by
id, never by object reference.
"""

from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, Optional, Set, Tuple


@dataclass(frozen=True)
class Commit:
    """
    A commit as seen by flowgate.

    Attributes:
        oid: Content hash, opaque to flowgate
        parents: Parent ids (0 for root, 1 for normal, 2 for merge commits)
        message: Commit message
        paths: Paths touched by this commit (used for conflict detection)
    """

    oid: str
    parents: Tuple[str, ...] = ()
    message: str = ""
    paths: FrozenSet[str] = frozenset()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def is_root(self) -> bool:
        return not self.parents

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'oid': self.oid,
            'parents': list(self.parents),
            'message': self.message,
        }


class CommitGraph:
    """
    Append-only arena of commits addressed by id.

    Example:
        graph = CommitGraph()
        graph.add(Commit("a"))
        graph.add(Commit("b", parents=("a",)))
        graph.is_ancestor("a", "b")  # True
    """

    def __init__(self):
        self._commits: Dict[str, Commit] = {}

    def __contains__(self, oid: str) -> bool:
        return oid in self._commits

    def __len__(self) -> int:
        return len(self._commits)

    def __iter__(self) -> Iterator[Commit]:
        return iter(self._commits.values())

    def add(self, commit: Commit) -> Commit:
        """
        Add a commit to the arena.

        Parents must already be present. Re-adding an identical commit is
        a no-op.

        Raises:
            KeyError: A parent id is unknown
            ValueError: A different commit is already stored under this id
        """
        existing = self._commits.get(commit.oid)
        if existing is not None:
            if existing != commit:
                raise ValueError(f"Commit id collision: {commit.oid}")
            return existing

        for parent in commit.parents:
            if parent not in self._commits:
                raise KeyError(f"Unknown parent {parent} of commit {commit.oid}")

        self._commits[commit.oid] = commit
        return commit

    def get(self, oid: str) -> Commit:
        """Get a commit by id (KeyError if unknown)."""
        return self._commits[oid]

    def ancestors(self, oid: str) -> Set[str]:
        """All commits reachable from ``oid``, including ``oid`` itself."""
        seen: Set[str] = set()
        queue = deque([oid])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._commits[current].parents)
        return seen

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True if ``ancestor`` is reachable from ``descendant``."""
        return ancestor in self.ancestors(descendant)

    def changed_paths(self, since: Optional[str], until: str) -> Set[str]:
        """Paths touched by commits reachable from ``until`` but not ``since``."""
        excluded = self.ancestors(since) if since else set()
        paths: Set[str] = set()
        for oid in self.ancestors(until) - excluded:
            paths.update(self._commits[oid].paths)
        return paths
