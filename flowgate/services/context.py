"""
Repository context for flowgate.

One RepositoryContext per repository: it owns the backend handle, reads
classified snapshots (RepositoryModel) from it, and is passed explicitly to
the services that need it. It holds no locks; writes go through the
backend's compare-and-swap ref updates.
"""

import logging
from typing import Optional

from ..config import FlowSettings
from ..domain.branch import BranchRef, BranchRole, Lineage
from ..domain.repository import RepositoryModel
from ..domain.tag import ReleaseTag, parse_version, version_from_tag_name
from ..errors import ClassificationError
from ..infra.backend import VcsBackend
from .classifier import BranchClassifier

logger = logging.getLogger(__name__)


class RepositoryContext:
    """
    Classified view of one repository behind a backend.

    Example:
        context = RepositoryContext(backend, settings)
        model = context.refresh()
        print(model.develop.head)
    """

    def __init__(
        self,
        backend: VcsBackend,
        settings: Optional[FlowSettings] = None,
        classifier: Optional[BranchClassifier] = None,
    ):
        self.backend = backend
        self.settings = settings or FlowSettings()
        self.classifier = classifier or BranchClassifier(self.settings)
        self._model: Optional[RepositoryModel] = None

    @property
    def model(self) -> RepositoryModel:
        """Last snapshot taken (a fresh one if none yet)."""
        if self._model is None:
            return self.refresh()
        return self._model

    def refresh(self) -> RepositoryModel:
        """Read branches and tags from the backend into a new snapshot."""
        branches = {}
        unclassified = []
        for name, head in sorted(self.backend.list_branches().items()):
            lineage = self.backend.get_lineage(name)
            try:
                role = self.classifier.classify(name, lineage)
            except ClassificationError:
                logger.debug(f"Branch {name} is outside the flow")
                unclassified.append(name)
                continue
            branches[name] = BranchRef(
                name=name,
                role=role,
                head=head,
                forked_from=self._parent_of(name, role, lineage),
            )

        self._model = RepositoryModel(
            branches=branches,
            tags=tuple(self.release_tags()),
            unclassified=tuple(unclassified),
        )
        return self._model

    def _parent_of(self, name: str, role: BranchRole, lineage: Optional[Lineage]) -> Optional[str]:
        if lineage is not None and lineage.parent:
            return lineage.parent
        return self.classifier.default_parent(role)

    def release_tags(self) -> list:
        """Version tags in ascending version order."""
        prefix = self.settings.versiontag_prefix
        tags = []
        for record in self.backend.list_tags():
            version = version_from_tag_name(record.name, prefix)
            if version is None:
                continue
            tags.append(ReleaseTag(
                name=record.name,
                version=version,
                commit=record.commit,
                created_at=record.created_at,
            ))
        tags.sort(key=lambda tag: parse_version(tag.version))
        return tags

    def role_of(self, name: str) -> BranchRole:
        """Classify a branch using its recorded lineage."""
        return self.classifier.classify(name, self.backend.get_lineage(name))

    def ref(self, name: str) -> BranchRef:
        """Branch ref from the current snapshot."""
        return self.model.get(name)
