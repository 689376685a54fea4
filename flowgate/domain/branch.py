"""
Branch domain objects for flowgate.

A branch role is a plain tagged variant; behaviour per role lives in the
policy tables, not on the branch objects.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class BranchRole(Enum):
    """Functional category of a branch."""
    MAIN = "main"
    DEVELOP = "develop"
    FEATURE = "feature"
    RELEASE = "release"
    MAINTENANCE = "maintenance"

    @property
    def ephemeral(self) -> bool:
        """Ephemeral branches are deleted once merged."""
        return self not in (BranchRole.MAIN, BranchRole.DEVELOP)

    @classmethod
    def parse(cls, value: str) -> 'BranchRole':
        """Parse a role name; ``hotfix`` is accepted for Maintenance."""
        value = value.strip().lower()
        if value == "hotfix":
            return cls.MAINTENANCE
        return cls(value)


@dataclass(frozen=True)
class Lineage:
    """Recorded fork parent and, when given explicitly, the role of a branch."""
    parent: Optional[str] = None
    role: Optional[BranchRole] = None

    def to_dict(self) -> dict:
        return {
            'parent': self.parent,
            'role': self.role.value if self.role else None,
        }


@dataclass(frozen=True)
class BranchRef:
    """
    A named pointer to a head commit.

    Attributes:
        name: Branch name (e.g. "feature/login")
        role: Role of the branch
        head: Commit id the branch points at
        forked_from: Name of the branch this one was forked from
    """

    name: str
    role: BranchRole
    head: str
    forked_from: Optional[str] = None

    def advanced(self, new_head: str) -> 'BranchRef':
        """Return a copy of this ref pointing at ``new_head``."""
        return replace(self, head=new_head)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            'name': self.name,
            'role': self.role.value,
            'head': self.head,
        }
        if self.forked_from:
            result['forked_from'] = self.forked_from
        return result

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class MergeRequest:
    """
    Request to merge one branch into another.

    The ``head`` of each ref is the head the caller last observed; the
    orchestrator rejects the request with StaleRef if the backend has moved.
    """

    source: BranchRef
    target: BranchRef
    requested_by: str = "unknown"

    def to_dict(self) -> dict:
        return {
            'source': self.source.to_dict(),
            'target': self.target.to_dict(),
            'requested_by': self.requested_by,
        }
