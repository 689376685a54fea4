"""
Git backend for flowgate.

Drives the ``git`` executable with plumbing commands so that every ref
update is a compare-and-swap:

- merges are computed with ``git merge-tree --write-tree`` (git >= 2.38),
  recorded with ``git commit-tree`` and published with
  ``git update-ref <ref> <new> <expected>``;
- branches and tags are created with ``update-ref`` against an empty old
  value, so an existing ref is never overwritten;
- release tags are annotated (``git mktag``) and created in one
  ``update-ref --stdin`` transaction with the ``refs/flowgate/latest-release``
  pointer, which holds the name of the newest release tag.

Lineage is stored in git config as ``branch.<name>.flowparent`` and
``branch.<name>.flowrole``.
"""

import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

from ..domain.branch import BranchRole, Lineage
from ..domain.commit import Commit
from ..errors import (
    BackendError,
    ConflictError,
    RefExistsError,
    RefNotFoundError,
    StaleRefError,
    TagExistsError,
)
from .backend import LATEST_RELEASE_REF, MergeResult, TagRecord, VcsBackend

logger = logging.getLogger(__name__)


class GitBackend(VcsBackend):
    """
    Backend over a local git repository.

    Example:
        backend = GitBackend("/path/to/repo")
        head = backend.get_head("develop")
    """

    def __init__(
        self,
        path: str = ".",
        remote: str = "origin",
        timeout: int = 30,
        user_name: str = "",
        user_email: str = "",
    ):
        """
        Initialize GitBackend.

        Args:
            path: Path to the git working tree (or bare repository)
            remote: Remote used by push/pull
            timeout: Command timeout in seconds (default: 30)
            user_name: Identity for merge commits (default: git config)
            user_email: Identity for merge commits (default: git config)
        """
        self.path = str(Path(path).expanduser())
        self.remote = remote
        self.timeout = timeout
        self.env = os.environ.copy()
        if user_name:
            self.env['GIT_AUTHOR_NAME'] = self.env['GIT_COMMITTER_NAME'] = user_name
        if user_email:
            self.env['GIT_AUTHOR_EMAIL'] = self.env['GIT_COMMITTER_EMAIL'] = user_email

    def _run(self, args: List[str], check: bool = True, input: Optional[str] = None) -> Tuple[str, int]:
        """
        Run a git command.

        Args:
            args: Arguments after ``git``
            check: Raise BackendError on non-zero exit
            input: Text fed to the command on stdin

        Returns:
            Tuple of (stdout, returncode)
        """
        cmd = ['git'] + args
        try:
            result = subprocess.run(
                cmd,
                cwd=self.path,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self.env,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Git command timed out: {' '.join(cmd)}")
            raise BackendError(f"git {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            logger.error(f"Git command failed: {' '.join(cmd)} - {e}")
            raise BackendError(f"Cannot run git: {e}") from e

        if check and result.returncode != 0:
            logger.debug(f"git {' '.join(args)} exited {result.returncode}: {result.stderr.strip()}")
            raise BackendError(
                f"git {args[0]} failed ({result.returncode}): {result.stderr.strip()}"
            )
        return result.stdout.strip(), result.returncode

    @staticmethod
    def _branch_ref(name: str) -> str:
        return f"refs/heads/{name}"

    def _resolve(self, ref: str) -> Optional[str]:
        output, code = self._run(['rev-parse', '--verify', '--quiet', f'{ref}^{{commit}}'], check=False)
        return output if code == 0 and output else None

    # --- write primitives -------------------------------------------------

    def create_branch(self, name: str, commit: str) -> str:
        _, code = self._run(['check-ref-format', '--branch', name], check=False)
        if code != 0:
            raise BackendError(f"Invalid branch name: {name}")
        if self._resolve(commit) is None:
            raise RefNotFoundError(f"Commit {commit} not found")

        _, code = self._run(
            ['update-ref', '-m', f'flowgate: fork {name}', self._branch_ref(name), commit, ''],
            check=False,
        )
        if code != 0:
            if self._resolve(self._branch_ref(name)) is not None:
                raise RefExistsError(f"Branch '{name}' already exists")
            raise BackendError(f"Could not create branch '{name}'")
        return commit

    def merge(self, source, target, expected_target_head, message=None) -> MergeResult:
        source_head = self.get_head(source)
        target_head = self.get_head(target)
        if target_head != expected_target_head:
            raise StaleRefError(target, expected_target_head, target_head)

        if self.is_ancestor(source_head, target_head):
            return MergeResult(success=True, new_head=target_head, already_merged=True)

        output, code = self._run(
            ['merge-tree', '--write-tree', '--name-only', '--no-messages', target_head, source_head],
            check=False,
        )
        lines = [line for line in output.splitlines() if line.strip()]
        if code == 1:
            raise ConflictError(lines[1:], f"Merging {source} into {target} conflicts")
        if code != 0 or not lines:
            raise BackendError(f"git merge-tree failed for {source} into {target}")
        tree = lines[0]

        new_head, _ = self._run([
            'commit-tree', tree,
            '-p', target_head,
            '-p', source_head,
            '-m', message or f"Merge branch '{source}' into {target}",
        ])

        _, code = self._run(
            ['update-ref', '-m', f'flowgate: merge {source}', self._branch_ref(target), new_head, target_head],
            check=False,
        )
        if code != 0:
            raise StaleRefError(target, target_head, self._resolve(self._branch_ref(target)))

        return MergeResult(success=True, new_head=new_head)

    def delete_branch(self, name: str) -> None:
        head = self.get_head(name)
        _, code = self._run(['update-ref', '-d', self._branch_ref(name), head], check=False)
        if code != 0:
            raise StaleRefError(name, head, self._resolve(self._branch_ref(name)))

    def create_tag(self, name: str, commit: str, expected_latest: Optional[str] = None) -> TagRecord:
        ref = f"refs/tags/{name}"
        _, code = self._run(['check-ref-format', ref], check=False)
        if code != 0:
            raise BackendError(f"Invalid tag name: {name}")
        target = self._resolve(commit)
        if target is None:
            raise RefNotFoundError(f"Commit {commit} not found")

        # Annotated, so the tagger date records when the release was cut
        ident, _ = self._run(['var', 'GIT_COMMITTER_IDENT'])
        tag_object, _ = self._run(
            ['mktag'],
            input=f"object {target}\ntype commit\ntag {name}\ntagger {ident}\n\nRelease {name}\n",
        )

        pointer, _ = self._run(['hash-object', '-w', '--stdin'], input=name)
        if expected_latest is None:
            pointer_update = f"create {LATEST_RELEASE_REF} {pointer}"
        else:
            expected_pointer, _ = self._run(['hash-object', '--stdin'], input=expected_latest)
            pointer_update = f"update {LATEST_RELEASE_REF} {pointer} {expected_pointer}"

        _, code = self._run(
            ['update-ref', '-m', f'flowgate: tag {name}', '--stdin'],
            check=False,
            input=f"create {ref} {tag_object}\n{pointer_update}\n",
        )
        if code != 0:
            if self._resolve(ref) is not None:
                raise TagExistsError(f"Tag '{name}' already exists")
            actual = self.latest_release_tag()
            if actual != expected_latest:
                raise StaleRefError(LATEST_RELEASE_REF, expected_latest, actual)
            raise BackendError(f"Could not create tag '{name}'")

        stamp = ident.split()[-2]
        return TagRecord(
            name=name,
            commit=target,
            created_at=datetime.fromtimestamp(int(stamp), tz=timezone.utc),
        )

    def latest_release_tag(self) -> Optional[str]:
        output, code = self._run(['cat-file', 'blob', LATEST_RELEASE_REF], check=False)
        return output if code == 0 and output else None

    def push(self, name: str) -> None:
        ref = self._branch_ref(name)
        self._run(['push', '--porcelain', self.remote, f'{ref}:{ref}'])

    def pull(self, name: str) -> None:
        ref = self._branch_ref(name)
        # Fast-forward only; a diverged branch fails loudly
        self._run(['fetch', '--update-head-ok', self.remote, f'{ref}:{ref}'])

    # --- read primitives --------------------------------------------------

    def get_head(self, name: str) -> str:
        head = self._resolve(self._branch_ref(name))
        if head is None:
            raise RefNotFoundError(f"Branch '{name}' not found")
        return head

    def list_branches(self) -> Dict[str, str]:
        output, _ = self._run(['for-each-ref', '--format=%(refname:strip=2)%09%(objectname)', 'refs/heads/'])
        branches = {}
        for line in output.splitlines():
            if '\t' in line:
                name, oid = line.split('\t', 1)
                branches[name] = oid
        return branches

    def list_tags(self) -> List[TagRecord]:
        output, _ = self._run([
            'for-each-ref',
            '--format=%(refname:strip=2)%09%(objectname)%09%(*objectname)%09%(creatordate:unix)',
            'refs/tags/',
        ])
        tags = []
        for line in output.splitlines():
            parts = line.split('\t')
            if len(parts) != 4:
                continue
            name, oid, peeled, stamp = parts
            created = datetime.fromtimestamp(int(stamp), tz=timezone.utc) if stamp.isdigit() else None
            tags.append(TagRecord(name=name, commit=peeled or oid, created_at=created))
        return tags

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        _, code = self._run(['merge-base', '--is-ancestor', ancestor, descendant], check=False)
        if code not in (0, 1):
            raise BackendError(f"Cannot compare commits {ancestor} and {descendant}")
        return code == 0

    def get_commit(self, oid: str) -> Commit:
        output, code = self._run(['rev-list', '--parents', '-n', '1', oid], check=False)
        if code != 0 or not output:
            raise RefNotFoundError(f"Commit {oid} not found")
        ids = output.split()
        message, _ = self._run(['log', '-1', '--format=%B', ids[0]])
        return Commit(oid=ids[0], parents=tuple(ids[1:]), message=message)

    # --- lineage metadata -------------------------------------------------

    def record_lineage(self, name: str, lineage: Lineage) -> None:
        if lineage.parent:
            self._run(['config', f'branch.{name}.flowparent', lineage.parent])
        if lineage.role:
            self._run(['config', f'branch.{name}.flowrole', lineage.role.value])

    def get_lineage(self, name: str) -> Optional[Lineage]:
        parent, parent_code = self._run(['config', '--get', f'branch.{name}.flowparent'], check=False)
        role, role_code = self._run(['config', '--get', f'branch.{name}.flowrole'], check=False)
        if parent_code != 0 and role_code != 0:
            return None
        return Lineage(
            parent=parent if parent_code == 0 else None,
            role=BranchRole.parse(role) if role_code == 0 and role else None,
        )

    def clear_lineage(self, name: str) -> None:
        for key in ('flowparent', 'flowrole'):
            # Exit code 5 means the key was not set
            _, code = self._run(['config', '--unset', f'branch.{name}.{key}'], check=False)
            if code not in (0, 5):
                raise BackendError(f"Could not clear lineage of '{name}'")
