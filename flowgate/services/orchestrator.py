"""
Merge orchestration for flowgate.

Sequences the backend calls of a fork or a merge, consulting the policy
engine before anything is written:

    classify -> authorize -> fetch heads -> merge -> companion merge
             -> tag -> delete source

Paired merges (release/hotfix into main) land on main first; main is then
merged into the companion branch (develop, or the open release for a
hotfix), so everything on main is reachable from it. The two merges are not
atomic: if the companion merge fails, the main merge stays and
PartialRelease is raised. Running the same finish again skips the main
merge, because the source is then already reachable from main, and only
retries the companion.
"""

import logging
import threading
from typing import Optional

from ..domain.branch import BranchRef, BranchRole, Lineage, MergeRequest
from ..domain.operation import ForkOutcome, MergeOutcome, OperationStatus
from ..domain.tag import parse_version
from ..errors import (
    ConflictError,
    ForkNotAllowed,
    MergeConflict,
    OperationCancelled,
    PartialRelease,
    RefExistsError,
    StaleRef,
    StaleRefError,
)
from .context import RepositoryContext
from .policy import PolicyEngine
from .tagger import ReleaseTagger

logger = logging.getLogger(__name__)


class MergeOrchestrator:
    """
    Performs forks and merges against the backend under policy control.

    Example:
        orchestrator = MergeOrchestrator(context)
        orchestrator.fork("feature/login")
        model = context.refresh()
        request = MergeRequest(model.get("feature/login"), model.develop, "alice")
        outcome = orchestrator.execute(request)
    """

    def __init__(
        self,
        context: RepositoryContext,
        policy: Optional[PolicyEngine] = None,
        tagger: Optional[ReleaseTagger] = None,
    ):
        self.context = context
        self.policy = policy or PolicyEngine(context.settings.allow_concurrent_releases)
        self.tagger = tagger or ReleaseTagger(context)

    @property
    def backend(self):
        return self.context.backend

    @property
    def classifier(self):
        return self.context.classifier

    # =========================================================================
    # FORK
    # =========================================================================

    def fork(
        self,
        name: str,
        role: Optional[BranchRole] = None,
        from_branch: Optional[str] = None,
        requested_by: str = "unknown",
    ) -> ForkOutcome:
        """
        Create branch ``name`` from its parent's current head.

        Args:
            name: New branch name
            role: Explicit role (required when the name has no role prefix)
            from_branch: Parent branch (default: develop or main by role)
            requested_by: Actor id for logs and outcomes

        Raises:
            ClassificationError: No role given and the name matches no rule
            ForkNotAllowed: The parent's role may not fork this role
            RefExistsError: The branch already exists
        """
        model = self.context.model

        prefix_role = self.classifier.role_from_prefix(name)
        if role is not None and prefix_role is not None and role != prefix_role:
            raise ForkNotAllowed(
                f"Branch name '{name}' denotes a {prefix_role.value} branch, not {role.value}"
            )
        child_role = role or self.classifier.classify(name)

        parent_name = from_branch or self.classifier.default_parent(child_role)
        if parent_name is None:
            raise ForkNotAllowed(f"{child_role.value} branches cannot be forked")
        parent = model.get(parent_name)

        self.policy.check_fork(parent.role, child_role)
        self.policy.check_single_open(child_role, model)
        if model.has(name) or name in model.unclassified:
            raise RefExistsError(f"Branch '{name}' already exists")

        head = self.backend.create_branch(name, parent.head)
        self.backend.record_lineage(name, Lineage(parent=parent.name, role=child_role))
        logger.info(f"{requested_by} forked {child_role.value} branch {name} from {parent.name}")

        return ForkOutcome(
            name=name,
            role=child_role,
            parent=parent.name,
            head=head,
            requested_by=requested_by,
        )

    # =========================================================================
    # MERGE
    # =========================================================================

    def _role(self, ref: BranchRef) -> BranchRole:
        # Naming rules win over whatever role the caller attached to the ref
        return self.classifier.classify(ref.name, Lineage(parent=ref.forked_from, role=ref.role))

    def execute(
        self,
        request: MergeRequest,
        version: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
        keep_branch: Optional[bool] = None,
    ) -> MergeOutcome:
        """
        Merge ``request.source`` into ``request.target``.

        Args:
            request: Source/target refs carrying the heads the caller observed
            version: Version to tag on main after a release/hotfix merge
            cancel: Event checked before the first backend call
            keep_branch: Keep the source branch (default: from settings)

        Raises:
            MergeNotAllowed: The policy forbids this merge
            StaleRef: A head moved since the caller observed it
            MergeConflict: The backend found conflicting paths
            PartialRelease: The main merge landed but its companion failed
            NonMonotonicVersion: The version does not exceed the latest tag
        """
        source_role = self._role(request.source)
        target_role = self._role(request.target)
        decision = self.policy.check_merge(source_role, target_role)

        releases_to_main = (
            target_role == BranchRole.MAIN
            and source_role in (BranchRole.RELEASE, BranchRole.MAINTENANCE)
        )
        version = self._release_version(request.source, version) if releases_to_main else None
        if version is not None:
            self.tagger.check(version)

        companion_ref = None
        if decision.paired:
            # Companion head as the backend reports it now
            companion_ref = self.policy.companion_target(source_role, self.context.refresh())

        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"Merge of {request.source.name} cancelled")

        logger.info(
            f"{request.requested_by} merging {request.source.name} into {request.target.name}"
        )
        outcome = self._merge(request, source_role, target_role)

        if companion_ref is not None:
            # Main, now containing the source, goes back into the companion
            companion_request = MergeRequest(
                source=request.target.advanced(outcome.new_head),
                target=companion_ref,
                requested_by=request.requested_by,
            )
            try:
                outcome.companion = self._merge(
                    companion_request, target_role, self._role(companion_ref)
                )
            except Exception as e:
                logger.error(
                    f"{request.source.name} landed on {request.target.name} but not on "
                    f"{companion_ref.name}: {type(e).__name__}: {e}"
                )
                raise PartialRelease(outcome, companion_request, e) from e

        if version is not None:
            outcome.tag = self.tagger.tag(outcome.new_head, version)

        keep = self.context.settings.keep_branch if keep_branch is None else keep_branch
        if source_role.ephemeral and not keep:
            self.backend.delete_branch(request.source.name)
            self.backend.clear_lineage(request.source.name)
            outcome.deleted = True
            logger.info(f"Deleted branch {request.source.name}")

        if self.context.settings.push_after_finish:
            for merged in (outcome, outcome.companion):
                if merged is not None:
                    self.backend.push(merged.target)
                    outcome.pushed.append(merged.target)

        return outcome

    def _merge(
        self,
        request: MergeRequest,
        source_role: BranchRole,
        target_role: BranchRole,
    ) -> MergeOutcome:
        """Fetch, compare heads and ask the backend to merge."""
        source, target = request.source.name, request.target.name

        if self.context.settings.fetch_before_merge:
            self.backend.pull(source)
            self.backend.pull(target)

        source_head = self.backend.get_head(source)
        if source_head != request.source.head:
            raise StaleRef(source, request.source.head, source_head)
        target_head = self.backend.get_head(target)
        if target_head != request.target.head:
            raise StaleRef(target, request.target.head, target_head)

        try:
            result = self.backend.merge(source, target, target_head)
        except ConflictError as e:
            logger.warning(f"Merge of {source} into {target} conflicts: {', '.join(e.paths)}")
            raise MergeConflict(source, target, e.paths) from e
        except StaleRefError as e:
            raise StaleRef(target, e.expected, e.actual) from e

        if result.already_merged:
            logger.info(f"{source} is already merged into {target}")
            status = OperationStatus.SKIPPED
        else:
            status = OperationStatus.SUCCESS

        return MergeOutcome(
            source=source,
            target=target,
            source_role=source_role,
            target_role=target_role,
            status=status,
            new_head=result.new_head,
            requested_by=request.requested_by,
            message="already merged" if result.already_merged else None,
        )

    def _release_version(self, source: BranchRef, version: Optional[str]) -> Optional[str]:
        """Explicit version, or one derived from the branch name if enabled."""
        if version is not None:
            return version
        if not self.context.settings.tag_from_branch_name:
            return None
        suffix = self.classifier.suffix(source.name)
        if suffix and parse_version(suffix) is not None:
            return suffix
        logger.warning(f"No version given and none derivable from {source.name}; not tagging")
        return None
