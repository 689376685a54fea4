"""
Repository model for flowgate.

A RepositoryModel is a snapshot of the branches and tags a backend exposes,
each branch already classified. It holds no policy and performs no I/O.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ClassificationError, InvariantViolation, RefNotFoundError
from .branch import BranchRef, BranchRole
from .tag import ReleaseTag


@dataclass(frozen=True)
class RepositoryModel:
    """
    Snapshot of a repository's flow branches and release tags.

    Construction fails with InvariantViolation unless exactly one Main and
    exactly one Develop branch are present.

    Attributes:
        branches: Branch refs keyed by name
        tags: Release tags in version order
        unclassified: Names of branches outside the flow (no role)
    """

    branches: Dict[str, BranchRef]
    tags: Tuple[ReleaseTag, ...] = ()
    unclassified: Tuple[str, ...] = ()
    _by_role: Dict[BranchRole, List[BranchRef]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        by_role: Dict[BranchRole, List[BranchRef]] = {role: [] for role in BranchRole}
        for ref in self.branches.values():
            by_role[ref.role].append(ref)
        for role in (BranchRole.MAIN, BranchRole.DEVELOP):
            count = len(by_role[role])
            if count != 1:
                names = ', '.join(r.name for r in by_role[role]) or 'none'
                raise InvariantViolation(
                    f"Repository must have exactly one {role.value} branch, found {count} ({names})"
                )
        for refs in by_role.values():
            refs.sort(key=lambda r: r.name)
        object.__setattr__(self, '_by_role', by_role)

    @property
    def main(self) -> BranchRef:
        return self._by_role[BranchRole.MAIN][0]

    @property
    def develop(self) -> BranchRef:
        return self._by_role[BranchRole.DEVELOP][0]

    def get(self, name: str) -> BranchRef:
        """
        Get a branch ref by name.

        Raises ClassificationError for an existing branch that has no role,
        RefNotFoundError for a missing one.
        """
        if name in self.unclassified:
            raise ClassificationError(name)
        try:
            return self.branches[name]
        except KeyError:
            raise RefNotFoundError(f"Branch '{name}' not found") from None

    def has(self, name: str) -> bool:
        return name in self.branches

    def by_role(self, role: BranchRole) -> List[BranchRef]:
        """All branches with ``role``, sorted by name."""
        return list(self._by_role[role])

    def active_release(self) -> Optional[BranchRef]:
        """The open release branch, if any (first by name when several)."""
        releases = self._by_role[BranchRole.RELEASE]
        return releases[0] if releases else None

    def active_hotfix(self) -> Optional[BranchRef]:
        hotfixes = self._by_role[BranchRole.MAINTENANCE]
        return hotfixes[0] if hotfixes else None

    def latest_tag(self) -> Optional[ReleaseTag]:
        return self.tags[-1] if self.tags else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        release = self.active_release()
        latest = self.latest_tag()
        return {
            'main': self.main.name,
            'develop': self.develop.name,
            'branches': [self.branches[name].to_dict() for name in sorted(self.branches)],
            'active_release': release.name if release else None,
            'latest_tag': latest.name if latest else None,
            'unclassified': list(self.unclassified),
        }
