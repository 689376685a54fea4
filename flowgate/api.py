"""
High-level Python API for flowgate.

Example:
    import flowgate

    # Drive a git repository (uses config defaults)
    flow = flowgate.Flow(repo_path="~/projects/app")

    # Or an in-memory sandbox
    flow = flowgate.create(sandbox=True)

    # Feature work
    flow.start_feature("login")
    flow.finish_feature("login")

    # Releases
    flow.start_release("1.0.0")
    outcome = flow.finish_release("release/1.0.0", "1.0.0")
    print(outcome.tag)

    # Hotfixes
    flow.start_hotfix("1.0.1")
    flow.finish_hotfix("hotfix/1.0.1", "1.0.1")

    # Low-level access to services
    flow.context
    flow.orchestrator
    flow.tagger
"""

import logging
import os
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .config import FlowSettings, load_config
from .domain import (
    BranchRole,
    ForkOutcome,
    MergeOutcome,
    MergeRequest,
    ReleaseTag,
    RepositoryModel,
)
from .errors import MergeNotAllowed, RefNotFoundError
from .infra import GitBackend, InMemoryBackend, VcsBackend
from .services import (
    MergeOrchestrator,
    PolicyEngine,
    ReleaseTagger,
    RepositoryContext,
    Violation,
    check_invariants,
)

logger = logging.getLogger(__name__)


def default_actor() -> str:
    """Actor id recorded on operations when none is given."""
    return os.environ.get('FLOWGATE_ACTOR') or os.environ.get('USER') or "unknown"


class Flow:
    """
    High-level API for one repository.

    Example:
        flow = Flow(repo_path=".")
        flow.fork("feature/login")
        flow.land("feature/login", "develop")
    """

    def __init__(
        self,
        backend: Optional[VcsBackend] = None,
        repo_path: str = ".",
        config: Optional[Dict[str, Any]] = None,
        config_path: Optional[str] = None,
    ):
        """
        Initialize Flow.

        Args:
            backend: Backend to drive (default: GitBackend on ``repo_path``)
            repo_path: Git repository path when no backend is given
            config: Full config dict (overrides file if provided)
            config_path: Path to config file (default: ~/.flowgate/config.json)
        """
        self._config = config if config is not None else load_config(config_path)
        self.settings = FlowSettings.from_config(self._config)

        if backend is None:
            backend = GitBackend(
                repo_path,
                remote=self.settings.remote,
                timeout=self.settings.timeout_seconds,
                user_name=self.settings.git_user_name,
                user_email=self.settings.git_user_email,
            )
        self.backend = backend

        self.context = RepositoryContext(backend, self.settings)
        self.policy = PolicyEngine(self.settings.allow_concurrent_releases)
        self.tagger = ReleaseTagger(self.context)
        self.orchestrator = MergeOrchestrator(self.context, self.policy, self.tagger)

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    @property
    def classifier(self):
        return self.context.classifier

    def override(self, **changes) -> 'Flow':
        """
        Replace settings for subsequent operations.

        Example:
            flow.override(fetch_before_merge=True, push_after_finish=True)
        """
        changes = {key: value for key, value in changes.items() if value is not None}
        if changes:
            self.settings = replace(self.settings, **changes)
            self.context.settings = self.settings
            self.policy.allow_concurrent_releases = self.settings.allow_concurrent_releases
        return self

    # =========================================================================
    # READ
    # =========================================================================

    def status(self) -> RepositoryModel:
        """Fresh snapshot of the repository."""
        return self.context.refresh()

    def tags(self) -> List[ReleaseTag]:
        return self.tagger.list()

    def check(self) -> List[Violation]:
        return check_invariants(self.context)

    # =========================================================================
    # WRITE
    # =========================================================================

    def init(self) -> Dict[str, Any]:
        """Create develop from main if it does not exist yet."""
        main, develop = self.settings.main_branch, self.settings.develop_branch
        branches = self.backend.list_branches()
        if main not in branches:
            raise RefNotFoundError(f"Main branch '{main}' not found; commit to it first")

        created = False
        if develop not in branches:
            self.backend.create_branch(develop, branches[main])
            logger.info(f"Created {develop} from {main}")
            created = True

        model = self.context.refresh()
        return {
            'action': 'init',
            'main': model.main.name,
            'develop': model.develop.name,
            'created': created,
        }

    def fork(
        self,
        name: str,
        role: Optional[BranchRole] = None,
        from_branch: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> ForkOutcome:
        self.context.refresh()
        try:
            return self.orchestrator.fork(
                name, role=role, from_branch=from_branch,
                requested_by=requested_by or default_actor(),
            )
        finally:
            self.context.refresh()

    def land(
        self,
        source: str,
        target: str,
        expected_head: Optional[str] = None,
        version: Optional[str] = None,
        keep_branch: Optional[bool] = None,
        requested_by: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> MergeOutcome:
        """
        Merge ``source`` into ``target``.

        Args:
            source: Source branch name
            target: Target branch name
            expected_head: Target head the caller last saw (default: current)
            version: Version to tag when a release/hotfix lands on main
            keep_branch: Keep the source branch after merging
            requested_by: Actor id (default: $FLOWGATE_ACTOR or $USER)
            cancel: Event that cancels the merge before it starts

        Raises:
            ClassificationError: ``source`` or ``target`` exists but has no role
            RefNotFoundError: ``source`` or ``target`` does not exist
        """
        model = self.context.refresh()
        target_ref = model.get(target)
        if expected_head:
            target_ref = target_ref.advanced(expected_head)
        request = MergeRequest(
            source=model.get(source),
            target=target_ref,
            requested_by=requested_by or default_actor(),
        )
        try:
            return self.orchestrator.execute(
                request, version=version, cancel=cancel, keep_branch=keep_branch
            )
        finally:
            self.context.refresh()

    def _finish(self, branch: str, role: BranchRole, version: Optional[str], **kwargs) -> MergeOutcome:
        actual = self.context.role_of(branch)
        if actual != role:
            raise MergeNotAllowed(f"'{branch}' is a {actual.value} branch, not a {role.value} branch")
        return self.land(branch, self.settings.main_branch, version=version, **kwargs)

    def finish_release(self, branch: str, version: Optional[str] = None, **kwargs) -> MergeOutcome:
        """Merge a release into main and develop, tag main, delete the branch."""
        return self._finish(branch, BranchRole.RELEASE, version, **kwargs)

    def finish_hotfix(self, branch: str, version: Optional[str] = None, **kwargs) -> MergeOutcome:
        """Merge a hotfix into main and develop (or the open release), tag main."""
        return self._finish(branch, BranchRole.MAINTENANCE, version, **kwargs)

    def start_feature(self, name: str, **kwargs) -> ForkOutcome:
        return self.fork(self.classifier.branch_name(BranchRole.FEATURE, name), **kwargs)

    def finish_feature(self, name: str, **kwargs) -> MergeOutcome:
        branch = self.classifier.branch_name(BranchRole.FEATURE, name)
        return self.land(branch, self.settings.develop_branch, **kwargs)

    def start_release(self, version: str, **kwargs) -> ForkOutcome:
        return self.fork(self.classifier.branch_name(BranchRole.RELEASE, version), **kwargs)

    def start_hotfix(self, version: str, **kwargs) -> ForkOutcome:
        return self.fork(self.classifier.branch_name(BranchRole.MAINTENANCE, version), **kwargs)


def create(
    repo_path: str = ".",
    config: Optional[Dict[str, Any]] = None,
    sandbox: bool = False,
) -> Flow:
    """
    Create a Flow instance.

    Args:
        repo_path: Git repository to drive
        config: Config dict (defaults when None in sandbox mode)
        sandbox: Use a fresh in-memory repository with main and develop

    Returns:
        Flow instance
    """
    if sandbox:
        settings = FlowSettings.from_config(config)
        backend = InMemoryBackend()
        backend.init_repository(settings.main_branch, settings.develop_branch)
        return Flow(backend=backend, config=config or {})
    return Flow(repo_path=repo_path, config=config)
