"""
Error taxonomy for flowgate.

Every error carries the exit code the CLI reports for it:

- PolicyViolation: ForkNotAllowed, MergeNotAllowed, ClassificationError.
  Raised before any backend mutation.
- ConcurrencyConflict: StaleRef. The caller refreshes and retries.
- ContentConflict: MergeConflict. Needs human resolution.
- InvariantRisk: PartialRelease. A paired merge landed on Main only.
- DataError: caller-correctable input errors (versions, refs, tags).
- BackendError: the version-control backend failed. ConflictError and
  StaleRefError are the backend-level signals the orchestrator translates.
"""

from typing import Any, Dict, Iterable, Optional

from .exit_codes import (
    CommandError,
    FORK_NOT_ALLOWED,
    CLASSIFICATION_ERROR,
    MERGE_NOT_ALLOWED,
    MERGE_CONFLICT,
    STALE_REF,
    PARTIAL_RELEASE,
    NON_MONOTONIC_VERSION,
    BACKEND_ERROR,
    DATA_ERROR,
    INTERRUPTED,
)


class FlowError(CommandError):
    """Base class for all flowgate errors."""


# =============================================================================
# POLICY VIOLATIONS
# =============================================================================

class PolicyViolation(FlowError):
    """A requested branch operation is forbidden by the branching model."""


class ForkNotAllowed(PolicyViolation):
    exit_code = FORK_NOT_ALLOWED


class MergeNotAllowed(PolicyViolation):
    exit_code = MERGE_NOT_ALLOWED


class ClassificationError(PolicyViolation):
    """Branch name matches no role rule and no explicit role was recorded."""
    exit_code = CLASSIFICATION_ERROR

    def __init__(self, name: str):
        super().__init__(
            f"Cannot classify branch '{name}': no prefix rule matches and it is "
            f"not a reserved branch; supply an explicit role"
        )
        self.name = name


# =============================================================================
# CONCURRENCY / CONTENT CONFLICTS
# =============================================================================

class ConcurrencyConflict(FlowError):
    """Optimistic concurrency check failed."""


class StaleRef(ConcurrencyConflict):
    """The caller's known head no longer matches the backend's current head."""
    exit_code = STALE_REF

    def __init__(self, branch: str, expected: Optional[str], actual: Optional[str]):
        super().__init__(
            f"Stale ref '{branch}': expected head {expected}, backend has {actual}"
        )
        self.branch = branch
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({'branch': self.branch, 'expected': self.expected, 'actual': self.actual})
        return result


class ContentConflict(FlowError):
    """Merge content conflicts that need resolution outside flowgate."""


class MergeConflict(ContentConflict):
    exit_code = MERGE_CONFLICT

    def __init__(self, source: str, target: str, paths: Iterable[str]):
        self.paths = sorted(set(paths))
        super().__init__(
            f"Merging '{source}' into '{target}' conflicts in: {', '.join(self.paths) or '(unknown)'}"
        )
        self.source = source
        self.target = target

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['paths'] = self.paths
        return result


# =============================================================================
# INVARIANT RISK
# =============================================================================

class InvariantRisk(FlowError):
    """The repository was left in a state that needs manual reconciliation."""


class PartialRelease(InvariantRisk):
    """
    The Main-side half of a paired merge landed but its companion did not.

    Attributes:
        completed: MergeOutcome of the Main-side merge
        pending: MergeRequest of the companion merge that failed
        cause: The error the companion merge raised
    """
    exit_code = PARTIAL_RELEASE

    def __init__(self, completed, pending, cause: Exception):
        super().__init__(
            f"Partial release: '{completed.source}' landed on "
            f"'{completed.target}' but merging '{pending.source.name}' into "
            f"'{pending.target.name}' failed ({type(cause).__name__}: {cause})"
        )
        self.completed = completed
        self.pending = pending
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['completed'] = self.completed.to_dict()
        result['pending'] = self.pending.to_dict()
        result['cause'] = type(self.cause).__name__
        return result


# =============================================================================
# DATA ERRORS
# =============================================================================

class DataError(FlowError):
    """Caller-correctable input error."""
    exit_code = DATA_ERROR


class NonMonotonicVersion(DataError):
    exit_code = NON_MONOTONIC_VERSION

    def __init__(self, proposed: str, latest: str):
        super().__init__(
            f"Version {proposed} is not greater than the latest tagged version {latest}"
        )
        self.proposed = proposed
        self.latest = latest


class InvalidVersionError(DataError):
    pass


class RefExistsError(DataError):
    pass


class RefNotFoundError(DataError):
    pass


class TagExistsError(DataError):
    pass


class UnreachableCommit(DataError):
    """A tag was requested for a commit not reachable from Main."""


class InvariantViolation(DataError):
    """The repository does not satisfy a structural invariant."""


# =============================================================================
# BACKEND
# =============================================================================

class BackendError(FlowError):
    """A version-control backend call failed."""
    exit_code = BACKEND_ERROR


class ConflictError(BackendError):
    """Backend merge stopped on conflicting paths."""

    def __init__(self, paths: Iterable[str], message: str = "Merge conflict"):
        self.paths = sorted(set(paths))
        super().__init__(f"{message}: {', '.join(self.paths)}")


class StaleRefError(BackendError):
    """Backend compare-and-swap on a ref failed."""

    def __init__(self, ref: str, expected: Optional[str], actual: Optional[str]):
        super().__init__(f"Ref '{ref}' moved: expected {expected}, found {actual}")
        self.ref = ref
        self.expected = expected
        self.actual = actual


class OperationCancelled(FlowError):
    exit_code = INTERRUPTED
