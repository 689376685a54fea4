"""
Tests for GitBackend against real temporary git repositories.

Skipped when git is missing or older than 2.38 (no ``merge-tree --write-tree``).
"""

import os
import re
import shutil
import subprocess

import pytest

from flowgate.api import Flow
from flowgate.domain import BranchRole, Lineage
from flowgate.errors import (
    BackendError,
    ConflictError,
    RefExistsError,
    RefNotFoundError,
    StaleRefError,
    TagExistsError,
)
from flowgate.infra.git_backend import GitBackend
from flowgate.services import check_invariants


def _git_version():
    if shutil.which('git') is None:
        return None
    output = subprocess.run(['git', '--version'], capture_output=True, text=True).stdout
    match = re.search(r'(\d+)\.(\d+)', output)
    return (int(match.group(1)), int(match.group(2))) if match else None


pytestmark = pytest.mark.skipif(
    (_git_version() or (0, 0)) < (2, 38),
    reason="requires git >= 2.38",
)


def _git(path, *args, env=None):
    result = subprocess.run(
        ['git', *args], cwd=path, check=True, capture_output=True, text=True, env=env
    )
    return result.stdout.strip()


def _commit_on(path, branch, filename, content, message="Change", date=None):
    """Commit one file on ``branch``, leaving HEAD detached."""
    env = None
    if date:
        env = dict(os.environ, GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
    _git(path, 'checkout', '-q', branch)
    (path / filename).write_text(content)
    _git(path, 'add', filename)
    _git(path, 'commit', '-q', '-m', message, env=env)
    _git(path, 'checkout', '-q', '--detach')
    return _git(path, 'rev-parse', branch)


@pytest.fixture
def repo(tmp_path, monkeypatch):
    monkeypatch.setenv('HOME', str(tmp_path))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    for var in ('GIT_AUTHOR_NAME', 'GIT_COMMITTER_NAME'):
        monkeypatch.setenv(var, 'Flow Test')
    for var in ('GIT_AUTHOR_EMAIL', 'GIT_COMMITTER_EMAIL'):
        monkeypatch.setenv(var, 'flow@example.com')

    path = tmp_path / 'repo'
    path.mkdir()
    _git(path, 'init', '-q', '-b', 'main')
    (path / 'README').write_text('hello\n')
    _git(path, 'add', 'README')
    _git(path, 'commit', '-q', '-m', 'Initial commit')
    _git(path, 'checkout', '-q', '--detach')
    return path


@pytest.fixture
def git_flow(repo):
    flow = Flow(backend=GitBackend(str(repo)), config={})
    flow.init()
    return flow


class TestGitPrimitives:
    """Tests for individual backend calls."""

    def test_list_and_get_head(self, repo):
        backend = GitBackend(str(repo))
        head = _git(repo, 'rev-parse', 'main')
        assert backend.list_branches() == {'main': head}
        assert backend.get_head('main') == head

    def test_missing_branch(self, repo):
        with pytest.raises(RefNotFoundError):
            GitBackend(str(repo)).get_head('develop')

    def test_create_branch_never_overwrites(self, repo):
        backend = GitBackend(str(repo))
        head = backend.get_head('main')
        backend.create_branch('develop', head)
        with pytest.raises(RefExistsError):
            backend.create_branch('develop', head)

    def test_create_tag_never_overwrites(self, repo):
        backend = GitBackend(str(repo))
        head = backend.get_head('main')
        record = backend.create_tag('1.0.0', head)
        assert record.commit == head
        assert [t.name for t in backend.list_tags()] == ['1.0.0']
        assert backend.list_tags()[0].commit == head
        with pytest.raises(TagExistsError):
            backend.create_tag('1.0.0', head)

    def test_create_tag_is_annotated(self, repo):
        backend = GitBackend(str(repo))
        head = backend.get_head('main')
        backend.create_tag('1.0.0', head)
        assert _git(repo, 'cat-file', '-t', 'refs/tags/1.0.0') == 'tag'
        assert _git(repo, 'rev-parse', '1.0.0^{commit}') == head
        assert backend.latest_release_tag() == '1.0.0'

    def test_create_tag_with_stale_pointer(self, repo):
        backend = GitBackend(str(repo))
        head = backend.get_head('main')
        assert backend.latest_release_tag() is None
        backend.create_tag('1.0.0', head)
        with pytest.raises(StaleRefError) as exc_info:
            backend.create_tag('1.0.1', head, expected_latest=None)
        assert exc_info.value.actual == '1.0.0'
        assert [t.name for t in backend.list_tags()] == ['1.0.0']
        backend.create_tag('1.0.1', head, expected_latest='1.0.0')
        assert backend.latest_release_tag() == '1.0.1'

    def test_merge_rejects_stale_head(self, repo):
        backend = GitBackend(str(repo))
        backend.create_branch('develop', backend.get_head('main'))
        _commit_on(repo, 'develop', 'a.txt', 'a\n')
        with pytest.raises(StaleRefError):
            backend.merge('develop', 'main', '0' * 40)

    def test_merge_conflict(self, repo):
        backend = GitBackend(str(repo))
        base = backend.get_head('main')
        backend.create_branch('develop', base)
        backend.create_branch('feature/x', base)
        _commit_on(repo, 'develop', 'README', 'develop\n')
        _commit_on(repo, 'feature/x', 'README', 'feature\n')
        develop_head = backend.get_head('develop')

        with pytest.raises(ConflictError) as exc_info:
            backend.merge('feature/x', 'develop', develop_head)

        assert exc_info.value.paths == ['README']
        assert backend.get_head('develop') == develop_head

    def test_merge_commit(self, repo):
        backend = GitBackend(str(repo))
        base = backend.get_head('main')
        backend.create_branch('develop', base)
        backend.create_branch('feature/x', base)
        develop_head = _commit_on(repo, 'develop', 'a.txt', 'a\n')
        feature_head = _commit_on(repo, 'feature/x', 'b.txt', 'b\n')

        result = backend.merge('feature/x', 'develop', develop_head)

        assert result.success
        assert backend.get_head('develop') == result.new_head
        assert backend.get_commit(result.new_head).parents == (develop_head, feature_head)
        assert _git(repo, 'show', f'{result.new_head}:b.txt') == 'b'

    def test_merge_already_merged(self, repo):
        backend = GitBackend(str(repo))
        head = backend.get_head('main')
        backend.create_branch('develop', head)
        result = backend.merge('develop', 'main', head)
        assert result.already_merged
        assert result.new_head == head

    def test_lineage_in_git_config(self, repo):
        backend = GitBackend(str(repo))
        backend.record_lineage('urgent', Lineage(parent='main', role=BranchRole.MAINTENANCE))
        assert _git(repo, 'config', '--get', 'branch.urgent.flowrole') == 'maintenance'
        assert backend.get_lineage('urgent') == Lineage('main', BranchRole.MAINTENANCE)
        backend.clear_lineage('urgent')
        assert backend.get_lineage('urgent') is None
        backend.clear_lineage('urgent')

    def test_not_a_repository(self, tmp_path):
        with pytest.raises(BackendError):
            GitBackend(str(tmp_path)).list_branches()


class TestGitFlow:
    """End-to-end flows on a git repository."""

    def test_init(self, repo, git_flow):
        branches = git_flow.backend.list_branches()
        assert branches['develop'] == branches['main']

    def test_feature_lifecycle(self, repo, git_flow):
        git_flow.start_feature('login')
        feature_head = _commit_on(repo, 'feature/login', 'login.py', 'pass\n')

        outcome = git_flow.finish_feature('login')

        backend = git_flow.backend
        assert backend.get_head('develop') == outcome.new_head
        assert backend.is_ancestor(feature_head, outcome.new_head)
        assert 'feature/login' not in backend.list_branches()
        assert backend.get_lineage('feature/login') is None

    def test_release_lifecycle(self, repo, git_flow):
        git_flow.start_release('1.0.0')
        _commit_on(repo, 'release/1.0.0', 'VERSION', '1.0.0\n')

        outcome = git_flow.finish_release('release/1.0.0', '1.0.0')

        backend = git_flow.backend
        main_head = backend.get_head('main')
        assert outcome.tag.commit == main_head
        assert _git(repo, 'rev-parse', '1.0.0^{commit}') == main_head
        assert backend.is_ancestor(main_head, backend.get_head('develop'))
        assert check_invariants(git_flow.context) == []

    def test_explicit_role_survives_new_backend(self, repo, git_flow):
        git_flow.fork('urgent', role=BranchRole.MAINTENANCE)
        reopened = Flow(backend=GitBackend(str(repo)), config={})
        assert reopened.status().get('urgent').role == BranchRole.MAINTENANCE

    def test_tag_dates_follow_tagging_order(self, repo, git_flow):
        older = _commit_on(repo, 'main', 'a.txt', 'a\n', date='2020-01-01T00:00:00Z')
        newer = _commit_on(repo, 'main', 'b.txt', 'b\n', date='2021-01-01T00:00:00Z')

        git_flow.tagger.tag(newer, '1.0.0')
        git_flow.tagger.tag(older, '1.0.1')

        tags = {t.name: t for t in git_flow.tags()}
        assert tags['1.0.0'].created_at <= tags['1.0.1'].created_at
        assert tags['1.0.1'].created_at.year > 2021
        invariants = [v.invariant for v in check_invariants(git_flow.context)]
        assert 'monotonic-versions' not in invariants
