"""
Branch classification for flowgate.

Maps a branch name (and its recorded lineage) to a BranchRole:

    main, develop             -> reserved names from configuration
    feature/*                 -> Feature
    release/*                 -> Release
    hotfix/*, maintenance/*   -> Maintenance
    anything else             -> explicit role from lineage, or an error
"""

from typing import Dict, Optional, Tuple

from ..config import FlowSettings
from ..domain.branch import BranchRole, Lineage
from ..errors import ClassificationError


class BranchClassifier:
    """Pure function of (name, lineage) to role."""

    def __init__(self, settings: Optional[FlowSettings] = None):
        self.settings = settings or FlowSettings()
        self._prefixes: Tuple[Tuple[str, BranchRole], ...] = self._build_prefixes(self.settings.prefixes)

    @staticmethod
    def _build_prefixes(prefixes: Dict[str, Tuple[str, ...]]) -> Tuple[Tuple[str, BranchRole], ...]:
        rules = []
        for role_name, role_prefixes in prefixes.items():
            role = BranchRole.parse(role_name)
            for prefix in role_prefixes:
                if prefix:
                    rules.append((prefix, role))
        # Longest prefix wins when prefixes nest
        rules.sort(key=lambda rule: len(rule[0]), reverse=True)
        return tuple(rules)

    def classify(self, name: str, lineage: Optional[Lineage] = None) -> BranchRole:
        """
        Determine the role of a branch.

        Raises:
            ClassificationError: No rule matches and no explicit role is recorded
        """
        if name == self.settings.main_branch:
            return BranchRole.MAIN
        if name == self.settings.develop_branch:
            return BranchRole.DEVELOP

        role = self.role_from_prefix(name)
        if role is not None:
            return role

        if lineage is not None and lineage.role is not None:
            return lineage.role

        raise ClassificationError(name)

    def role_from_prefix(self, name: str) -> Optional[BranchRole]:
        for prefix, role in self._prefixes:
            if name.startswith(prefix) and len(name) > len(prefix):
                return role
        return None

    def suffix(self, name: str) -> Optional[str]:
        """Name with its role prefix removed ("release/1.2.0" -> "1.2.0")."""
        for prefix, _ in self._prefixes:
            if name.startswith(prefix) and len(name) > len(prefix):
                return name[len(prefix):]
        return None

    def branch_name(self, role: BranchRole, short_name: str) -> str:
        """Build a branch name from the shortest configured prefix of ``role``."""
        if role == BranchRole.MAIN:
            return self.settings.main_branch
        if role == BranchRole.DEVELOP:
            return self.settings.develop_branch
        for prefix, prefix_role in reversed(self._prefixes):
            if prefix_role == role:
                return f"{prefix}{short_name}"
        return short_name

    def default_parent(self, role: BranchRole) -> Optional[str]:
        """Branch a role forks from when no parent is given."""
        if role in (BranchRole.FEATURE, BranchRole.RELEASE):
            return self.settings.develop_branch
        if role == BranchRole.MAINTENANCE:
            return self.settings.main_branch
        return None
