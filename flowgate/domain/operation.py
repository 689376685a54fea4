"""
Operation result domain objects for flowgate.

Provides standardized result types for the write operations (fork, land,
finish) that change a repository.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .branch import BranchRole
from .tag import ReleaseTag


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass
class MergeOutcome:
    """
    Result of merging one branch into another.

    A paired merge carries its companion (the merge into Develop or the
    active release) in ``companion``; the tag created on Main, if any, is
    recorded on the outer outcome.
    """
    source: str
    target: str
    source_role: BranchRole
    target_role: BranchRole
    status: OperationStatus
    new_head: Optional[str] = None
    requested_by: str = "unknown"
    companion: Optional['MergeOutcome'] = None
    tag: Optional[ReleaseTag] = None
    deleted: bool = False
    pushed: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def paired(self) -> bool:
        return self.companion is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            'action': 'land',
            'source': self.source,
            'target': self.target,
            'source_role': self.source_role.value,
            'target_role': self.target_role.value,
            'status': self.status.value,
            'new_head': self.new_head,
            'requested_by': self.requested_by,
            'deleted': self.deleted,
        }
        if self.companion:
            result['companion'] = self.companion.to_dict()
        if self.tag:
            result['tag'] = self.tag.to_dict()
        if self.pushed:
            result['pushed'] = list(self.pushed)
        if self.message:
            result['message'] = self.message
        return result


@dataclass
class ForkOutcome:
    """Result of creating a branch."""
    name: str
    role: BranchRole
    parent: str
    head: str
    requested_by: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': 'fork',
            'name': self.name,
            'role': self.role.value,
            'parent': self.parent,
            'head': self.head,
            'requested_by': self.requested_by,
        }
