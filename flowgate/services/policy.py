"""
Policy engine for flowgate.

The branching model as two tables over BranchRole:

    fork:   main -> {maintenance}; develop -> {feature, release}
    merge:  feature -> develop
            release -> main       (paired with develop)
            maintenance -> main   (paired with develop, or the open release)

The engine only looks at roles, never at commit content, and has no side
effects.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from ..domain.branch import BranchRef, BranchRole
from ..domain.repository import RepositoryModel
from ..errors import ForkNotAllowed, MergeNotAllowed

logger = logging.getLogger(__name__)


FORK_RULES: Dict[BranchRole, FrozenSet[BranchRole]] = {
    BranchRole.MAIN: frozenset({BranchRole.MAINTENANCE}),
    BranchRole.DEVELOP: frozenset({BranchRole.FEATURE, BranchRole.RELEASE}),
    BranchRole.FEATURE: frozenset(),
    BranchRole.RELEASE: frozenset(),
    BranchRole.MAINTENANCE: frozenset(),
}

# (source, target) -> paired
MERGE_RULES: Dict[Tuple[BranchRole, BranchRole], bool] = {
    (BranchRole.FEATURE, BranchRole.DEVELOP): False,
    (BranchRole.RELEASE, BranchRole.MAIN): True,
    (BranchRole.MAINTENANCE, BranchRole.MAIN): True,
}


@dataclass(frozen=True)
class MergeDecision:
    """Whether a merge may proceed and whether it needs a companion merge."""
    allowed: bool
    paired: bool = False

    def __bool__(self) -> bool:
        return self.allowed


class PolicyEngine:
    """
    Decides which forks and merges the branching model allows.

    Example:
        policy = PolicyEngine()
        policy.can_fork(BranchRole.DEVELOP)
        # frozenset({BranchRole.FEATURE, BranchRole.RELEASE})
        policy.can_merge(BranchRole.RELEASE, BranchRole.MAIN)
        # MergeDecision(allowed=True, paired=True)
    """

    def __init__(self, allow_concurrent_releases: bool = False):
        self.allow_concurrent_releases = allow_concurrent_releases

    def can_fork(self, parent_role: BranchRole) -> FrozenSet[BranchRole]:
        """Roles that may be forked from a branch of ``parent_role``."""
        return FORK_RULES[parent_role]

    def check_fork(self, parent_role: BranchRole, child_role: BranchRole) -> None:
        if child_role not in self.can_fork(parent_role):
            logger.info(f"Rejected fork of {child_role.value} from {parent_role.value}")
            raise ForkNotAllowed(
                f"A {child_role.value} branch cannot be forked from a {parent_role.value} branch"
            )

    def check_single_open(self, child_role: BranchRole, model: RepositoryModel) -> None:
        """Only one release and one hotfix may be open at a time."""
        if self.allow_concurrent_releases:
            return
        if child_role in (BranchRole.RELEASE, BranchRole.MAINTENANCE):
            open_branches = model.by_role(child_role)
            if open_branches:
                raise ForkNotAllowed(
                    f"There is already an open {child_role.value} branch "
                    f"'{open_branches[0].name}'; finish it first"
                )

    def can_merge(self, source_role: BranchRole, target_role: BranchRole) -> MergeDecision:
        paired = MERGE_RULES.get((source_role, target_role))
        if paired is None:
            return MergeDecision(allowed=False)
        return MergeDecision(allowed=True, paired=paired)

    def check_merge(self, source_role: BranchRole, target_role: BranchRole) -> MergeDecision:
        decision = self.can_merge(source_role, target_role)
        if not decision.allowed:
            logger.info(f"Rejected merge of {source_role.value} into {target_role.value}")
            raise MergeNotAllowed(
                f"A {source_role.value} branch cannot be merged into a {target_role.value} branch"
            )
        return decision

    def companion_target(self, source_role: BranchRole, model: RepositoryModel) -> Optional[BranchRef]:
        """
        Second target of a paired merge.

        Release merges pair with Develop. Maintenance merges pair with the
        open release branch if there is one, otherwise with Develop.
        """
        if source_role == BranchRole.RELEASE:
            return model.develop
        if source_role == BranchRole.MAINTENANCE:
            return model.active_release() or model.develop
        return None
