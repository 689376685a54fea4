"""
flowgate - Branch lifecycle and merge-policy engine for git-flow style
repositories.

flowgate sits on top of a version-control backend and decides whether
branch operations may proceed: which roles may fork from which, which may
merge into which, and how releases are tagged.

Quick Start:
    import flowgate

    flow = flowgate.Flow(repo_path="~/projects/app")

    flow.start_feature("login")              # feature/login from develop
    flow.finish_feature("login")             # merge into develop, delete

    flow.start_release("1.0.0")              # release/1.0.0 from develop
    flow.finish_release("release/1.0.0", "1.0.0")
    # merged into main and develop, main tagged 1.0.0, branch deleted

Branch roles:
    main          production history, tagged releases
    develop       integration branch
    feature/*     forked from and merged into develop
    release/*     forked from develop, merged into main + develop
    hotfix/*      forked from main, merged into main + develop (or release)

Errors carry CLI exit codes; see flowgate.errors.
"""

__version__ = "0.3.0"

# High-level API
from .api import Flow, create

# Domain objects
from .domain import (
    BranchRole,
    BranchRef,
    Commit,
    MergeRequest,
    MergeOutcome,
    ReleaseTag,
    RepositoryModel,
)

# Services (for advanced use)
from .services import (
    BranchClassifier,
    PolicyEngine,
    MergeOrchestrator,
    ReleaseTagger,
    RepositoryContext,
)

# Backends
from .infra import VcsBackend, GitBackend, InMemoryBackend

# Configuration
from .config import FlowSettings, load_config

__all__ = [
    # Version
    "__version__",
    # High-level API
    "Flow",
    "create",
    # Domain objects
    "BranchRole",
    "BranchRef",
    "Commit",
    "MergeRequest",
    "MergeOutcome",
    "ReleaseTag",
    "RepositoryModel",
    # Services
    "BranchClassifier",
    "PolicyEngine",
    "MergeOrchestrator",
    "ReleaseTagger",
    "RepositoryContext",
    # Backends
    "VcsBackend",
    "GitBackend",
    "InMemoryBackend",
    # Configuration
    "FlowSettings",
    "load_config",
]
