"""
Version-control backend interface for flowgate.

flowgate never stores commits or computes merges itself. Everything that
touches repository content goes through a VcsBackend, whose ref updates are
compare-and-swap operations and the only serialization point.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from ..domain.branch import Lineage
from ..domain.commit import Commit

# Ref recording the name of the most recent release tag
LATEST_RELEASE_REF = "refs/flowgate/latest-release"


@dataclass(frozen=True)
class MergeResult:
    """Result of a successful backend merge."""
    success: bool
    new_head: str
    already_merged: bool = False


@dataclass(frozen=True)
class TagRecord:
    """A tag as stored by the backend."""
    name: str
    commit: str
    created_at: Optional[datetime] = None


class VcsBackend(ABC):
    """
    Primitives flowgate consumes from a version-control system.

    Implementations raise the errors from ``flowgate.errors``:
    RefExistsError, RefNotFoundError, TagExistsError, ConflictError,
    StaleRefError, BackendError.
    """

    # --- write primitives -------------------------------------------------

    @abstractmethod
    def create_branch(self, name: str, commit: str) -> str:
        """Create branch ``name`` at ``commit``; RefExistsError if present."""

    @abstractmethod
    def merge(
        self,
        source: str,
        target: str,
        expected_target_head: str,
        message: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge branch ``source`` into branch ``target``.

        The target ref is only advanced if it still points at
        ``expected_target_head`` (StaleRefError otherwise). Conflicts raise
        ConflictError and leave the target untouched.
        """

    @abstractmethod
    def delete_branch(self, name: str) -> None:
        """Delete branch ``name``; RefNotFoundError if missing."""

    @abstractmethod
    def create_tag(
        self,
        name: str,
        commit: str,
        expected_latest: Optional[str] = None,
    ) -> TagRecord:
        """
        Create release tag ``name`` at ``commit``; TagExistsError if present.

        Creating the tag also moves the latest-release pointer to ``name``.
        Both happen atomically, and only if the pointer still names
        ``expected_latest`` (None: no release tag recorded yet). A moved
        pointer raises StaleRefError and creates nothing.
        """

    @abstractmethod
    def latest_release_tag(self) -> Optional[str]:
        """Name of the most recently created release tag, or None."""

    @abstractmethod
    def push(self, name: str) -> None:
        """Publish branch ``name`` to the remote."""

    @abstractmethod
    def pull(self, name: str) -> None:
        """Update branch ``name`` from the remote."""

    # --- read primitives --------------------------------------------------

    @abstractmethod
    def get_head(self, name: str) -> str:
        """Current head of branch ``name``; RefNotFoundError if missing."""

    @abstractmethod
    def list_branches(self) -> Dict[str, str]:
        """All branches as a name -> head mapping."""

    @abstractmethod
    def list_tags(self) -> List[TagRecord]:
        """All tags."""

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True if ``ancestor`` is reachable from ``descendant``."""

    @abstractmethod
    def get_commit(self, oid: str) -> Commit:
        """Look up a commit by id."""

    # --- lineage metadata -------------------------------------------------

    @abstractmethod
    def record_lineage(self, name: str, lineage: Lineage) -> None:
        """Remember which branch ``name`` was forked from (and its role)."""

    @abstractmethod
    def get_lineage(self, name: str) -> Optional[Lineage]:
        """Recorded lineage of ``name``, or None."""

    @abstractmethod
    def clear_lineage(self, name: str) -> None:
        """Forget the lineage of ``name`` (no-op if none recorded)."""

    def branch_exists(self, name: str) -> bool:
        return name in self.list_branches()
