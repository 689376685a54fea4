"""
Infrastructure layer for flowgate.

Contains the version-control backends flowgate drives:
- VcsBackend: abstract primitives (create/merge/delete/tag/push/pull)
- InMemoryBackend: self-contained repository for tests and sandboxes
- GitBackend: git plumbing over a local repository

These provide clean interfaces that can be swapped for testing.
"""

from .backend import VcsBackend, MergeResult, TagRecord
from .memory_backend import InMemoryBackend
from .git_backend import GitBackend

__all__ = [
    'VcsBackend',
    'MergeResult',
    'TagRecord',
    'InMemoryBackend',
    'GitBackend',
]
