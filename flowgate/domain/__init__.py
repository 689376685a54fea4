"""
Domain layer for flowgate.

Contains pure domain objects with no I/O or side effects:
- Commit / CommitGraph: immutable commits in an append-only arena
- BranchRole / BranchRef / MergeRequest: branches and merge intents
- ReleaseTag: version tags on Main
- RepositoryModel: classified snapshot of a repository
- MergeOutcome / ForkOutcome: results of write operations

These objects are immutable where possible and provide
serialization methods for JSON output.
"""

from .commit import Commit, CommitGraph
from .branch import BranchRole, BranchRef, Lineage, MergeRequest
from .tag import ReleaseTag, parse_version, version_from_tag_name
from .repository import RepositoryModel
from .operation import OperationStatus, MergeOutcome, ForkOutcome

__all__ = [
    'Commit',
    'CommitGraph',
    'BranchRole',
    'BranchRef',
    'Lineage',
    'MergeRequest',
    'ReleaseTag',
    'parse_version',
    'version_from_tag_name',
    'RepositoryModel',
    'OperationStatus',
    'MergeOutcome',
    'ForkOutcome',
]
