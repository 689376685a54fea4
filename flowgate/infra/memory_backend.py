"""
In-memory version-control backend.

Keeps commits in a CommitGraph arena and branches/tags in dictionaries.
Ref updates are compare-and-swap operations guarded by a lock, which stands
in for the atomic ref update of a real VCS. Conflicts are detected when both
sides of a merge touched the same path in commits the other side lacks.

Used by the test suite and by ``flowgate.api.create(sandbox=True)``.
"""

import hashlib
import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..domain.branch import Lineage
from ..domain.commit import Commit, CommitGraph
from ..errors import (
    BackendError,
    ConflictError,
    RefExistsError,
    RefNotFoundError,
    StaleRefError,
    TagExistsError,
)
from .backend import LATEST_RELEASE_REF, MergeResult, TagRecord, VcsBackend

logger = logging.getLogger(__name__)


class InMemoryBackend(VcsBackend):
    """
    Backend holding a whole repository in memory.

    Example:
        backend = InMemoryBackend()
        backend.init_repository()            # main + develop at a root commit
        backend.create_branch("feature/x", backend.get_head("develop"))
        backend.commit("feature/x", "Add x", paths=["x.py"])
    """

    def __init__(self):
        self.graph = CommitGraph()
        self._branches: Dict[str, str] = {}
        self._tags: Dict[str, TagRecord] = {}
        self._lineage: Dict[str, Lineage] = {}
        self._remote: Dict[str, str] = {}
        self._latest_release: Optional[str] = None
        self._lock = threading.Lock()
        self._counter = itertools.count()
        self.pushed: List[str] = []
        self.pulled: List[str] = []

    # --- helpers for building repositories -------------------------------

    def _new_oid(self, parents: Iterable[str], message: str) -> str:
        seed = f"{next(self._counter)}\0{' '.join(parents)}\0{message}"
        return hashlib.sha1(seed.encode()).hexdigest()

    def _store(self, parents, message: str, paths=()) -> Commit:
        parents = tuple(parents)
        commit = Commit(
            oid=self._new_oid(parents, message),
            parents=parents,
            message=message,
            paths=frozenset(paths),
        )
        return self.graph.add(commit)

    def init_repository(self, main: str = "main", develop: Optional[str] = "develop") -> str:
        """Create a root commit with ``main`` (and ``develop``) pointing at it."""
        with self._lock:
            if self._branches:
                raise BackendError("Repository already initialized")
            root = self._store((), "Initial commit")
            self._branches[main] = root.oid
            if develop:
                self._branches[develop] = root.oid
        return root.oid

    def commit(self, branch: str, message: str, paths: Iterable[str] = ()) -> str:
        """Append a commit to ``branch`` and advance it."""
        with self._lock:
            head = self._require(branch)
            commit = self._store((head,), message, paths)
            self._branches[branch] = commit.oid
        return commit.oid

    def _require(self, name: str) -> str:
        try:
            return self._branches[name]
        except KeyError:
            raise RefNotFoundError(f"Branch '{name}' not found") from None

    # --- VcsBackend -------------------------------------------------------

    def create_branch(self, name: str, commit: str) -> str:
        with self._lock:
            if name in self._branches:
                raise RefExistsError(f"Branch '{name}' already exists")
            if commit not in self.graph:
                raise RefNotFoundError(f"Commit {commit} not found")
            self._branches[name] = commit
        logger.debug(f"Created branch {name} at {commit[:10]}")
        return commit

    def get_head(self, name: str) -> str:
        with self._lock:
            return self._require(name)

    def merge(self, source, target, expected_target_head, message=None) -> MergeResult:
        with self._lock:
            source_head = self._require(source)
            target_head = self._require(target)
            if target_head != expected_target_head:
                raise StaleRefError(target, expected_target_head, target_head)

            if self.graph.is_ancestor(source_head, target_head):
                return MergeResult(success=True, new_head=target_head, already_merged=True)

            # Paths touched on both sides since the histories diverged
            conflicts = (
                self.graph.changed_paths(target_head, source_head)
                & self.graph.changed_paths(source_head, target_head)
            )
            if conflicts:
                raise ConflictError(conflicts, f"Merging {source} into {target} conflicts")

            merge_commit = self._store(
                (target_head, source_head),
                message or f"Merge branch '{source}' into {target}",
            )
            self._branches[target] = merge_commit.oid
        return MergeResult(success=True, new_head=merge_commit.oid)

    def delete_branch(self, name: str) -> None:
        with self._lock:
            self._require(name)
            del self._branches[name]

    def create_tag(self, name: str, commit: str, expected_latest: Optional[str] = None) -> TagRecord:
        with self._lock:
            if name in self._tags:
                raise TagExistsError(f"Tag '{name}' already exists")
            if commit not in self.graph:
                raise RefNotFoundError(f"Commit {commit} not found")
            if self._latest_release != expected_latest:
                raise StaleRefError(LATEST_RELEASE_REF, expected_latest, self._latest_release)
            record = TagRecord(name=name, commit=commit, created_at=datetime.now(timezone.utc))
            self._tags[name] = record
            self._latest_release = name
        return record

    def latest_release_tag(self) -> Optional[str]:
        with self._lock:
            return self._latest_release

    def push(self, name: str) -> None:
        with self._lock:
            self._remote[name] = self._require(name)
            self.pushed.append(name)

    def pull(self, name: str) -> None:
        with self._lock:
            remote_head = self._remote.get(name)
            if remote_head is not None:
                local_head = self._require(name)
                if not self.graph.is_ancestor(local_head, remote_head):
                    if not self.graph.is_ancestor(remote_head, local_head):
                        raise BackendError(f"Branch '{name}' has diverged from the remote")
                else:
                    self._branches[name] = remote_head
            self.pulled.append(name)

    def list_branches(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._branches)

    def list_tags(self) -> List[TagRecord]:
        with self._lock:
            return list(self._tags.values())

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return self.graph.is_ancestor(ancestor, descendant)

    def get_commit(self, oid: str) -> Commit:
        try:
            return self.graph.get(oid)
        except KeyError:
            raise RefNotFoundError(f"Commit {oid} not found") from None

    def record_lineage(self, name: str, lineage: Lineage) -> None:
        with self._lock:
            self._lineage[name] = lineage

    def get_lineage(self, name: str) -> Optional[Lineage]:
        return self._lineage.get(name)

    def clear_lineage(self, name: str) -> None:
        with self._lock:
            self._lineage.pop(name, None)
