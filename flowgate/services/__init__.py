"""
Service layer for flowgate.

Contains the decision and orchestration logic on top of the domain and
infrastructure layers:
- BranchClassifier: branch name -> role
- PolicyEngine: legal forks and merges between roles
- RepositoryContext: classified snapshots of one repository
- MergeOrchestrator: forks and (paired) merges against the backend
- ReleaseTagger: monotonic version tags on main
- check_invariants: report broken branching-model invariants

Services are the primary API for commands to use.
"""

from .classifier import BranchClassifier
from .policy import PolicyEngine, MergeDecision
from .context import RepositoryContext
from .tagger import ReleaseTagger
from .orchestrator import MergeOrchestrator
from .invariants import check_invariants, Violation

__all__ = [
    'BranchClassifier',
    'PolicyEngine',
    'MergeDecision',
    'RepositoryContext',
    'ReleaseTagger',
    'MergeOrchestrator',
    'check_invariants',
    'Violation',
]
