"""
Invariant checks for a repository under flowgate.

Reports, rather than repairs, any state that breaks the branching model:

- main and develop exist (exactly one each)
- everything on main is reachable from develop (or the open release)
- ephemeral branches were forked from the branch their role requires
- tags sit on main and their versions increase in creation order
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from ..domain.branch import BranchRole
from ..errors import InvariantViolation
from .context import RepositoryContext

logger = logging.getLogger(__name__)

EXPECTED_PARENT = {
    BranchRole.FEATURE: BranchRole.DEVELOP,
    BranchRole.RELEASE: BranchRole.DEVELOP,
    BranchRole.MAINTENANCE: BranchRole.MAIN,
}


@dataclass(frozen=True)
class Violation:
    """One broken invariant."""
    invariant: str
    message: str
    subject: str = ""

    def to_dict(self) -> dict:
        return {
            'invariant': self.invariant,
            'subject': self.subject,
            'message': self.message,
        }


def check_invariants(context: RepositoryContext) -> List[Violation]:
    """Check the repository behind ``context``; an empty list means clean."""
    try:
        model = context.refresh()
    except InvariantViolation as e:
        return [Violation('reserved-branches', str(e))]

    backend = context.backend
    violations: List[Violation] = []

    main, develop = model.main, model.develop
    integrated = [develop] + model.by_role(BranchRole.RELEASE)
    if not any(backend.is_ancestor(main.head, ref.head) for ref in integrated):
        violations.append(Violation(
            'main-reachable-from-develop',
            f"{main.name} head {main.head[:10]} is not reachable from {develop.name}",
            subject=main.name,
        ))

    for role, parent_role in EXPECTED_PARENT.items():
        for ref in model.by_role(role):
            if not ref.forked_from or not model.has(ref.forked_from):
                continue
            actual = model.get(ref.forked_from).role
            if actual != parent_role:
                violations.append(Violation(
                    'fork-parent',
                    f"{role.value} branch {ref.name} was forked from {actual.value} "
                    f"branch {ref.forked_from}, expected {parent_role.value}",
                    subject=ref.name,
                ))

    for tag in model.tags:
        if not backend.is_ancestor(tag.commit, main.head):
            violations.append(Violation(
                'tag-on-main',
                f"Tag {tag.name} points at {tag.commit[:10]}, which is not on {main.name}",
                subject=tag.name,
            ))

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    by_creation = sorted(model.tags, key=lambda t: t.created_at or epoch)
    for earlier, later in zip(by_creation, by_creation[1:]):
        if later.parsed_version <= earlier.parsed_version:
            violations.append(Violation(
                'monotonic-versions',
                f"Tag {later.name} was created after {earlier.name} but is not a higher version",
                subject=later.name,
            ))

    for violation in violations:
        logger.warning(f"Invariant {violation.invariant} violated: {violation.message}")
    return violations
