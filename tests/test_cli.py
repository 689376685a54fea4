"""
CLI tests for flowgate.

Commands run through click's CliRunner against an in-memory repository;
assertions are on exit codes and the JSON records printed to stdout.
"""

import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from flowgate import __version__
from flowgate.cli import cli
from flowgate.errors import ConflictError


def _records(result):
    return [json.loads(line) for line in result.output.splitlines() if line.startswith('{')]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, flow):
    def run(*args):
        return runner.invoke(cli, list(args), obj={'flow': flow})
    return run


class TestBranchCommands:
    """Tests for init, fork and land."""

    def test_version(self, runner):
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init(self, invoke):
        result = invoke('init')
        assert result.exit_code == 0
        assert _records(result)[0]['created'] is False

    def test_fork_auto(self, invoke):
        result = invoke('fork', 'auto', 'feature/login', '--as', 'alice')
        assert result.exit_code == 0
        record = _records(result)[0]
        assert record['action'] == 'fork'
        assert record['role'] == 'feature'
        assert record['parent'] == 'develop'
        assert record['requested_by'] == 'alice'

    def test_fork_unclassifiable(self, invoke):
        result = invoke('fork', 'auto', 'wip')
        assert result.exit_code == 3
        assert _records(result)[0]['type'] == 'ClassificationError'

    def test_fork_explicit_role(self, invoke):
        result = invoke('fork', 'hotfix', 'urgent')
        assert result.exit_code == 0
        assert _records(result)[0]['role'] == 'maintenance'
        assert _records(result)[0]['parent'] == 'main'

    def test_fork_not_allowed(self, invoke):
        result = invoke('fork', 'feature', 'feature/x', '--from', 'main')
        assert result.exit_code == 2
        assert _records(result)[0]['exit_code'] == 2

    def test_fork_quiet(self, invoke):
        result = invoke('fork', 'auto', 'feature/login', '-q')
        assert result.exit_code == 0
        assert _records(result) == []

    def test_land_feature(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Login', paths=['login.py'])
        result = invoke('land', 'feature/login', 'develop')
        assert result.exit_code == 0
        record = _records(result)[0]
        assert record['status'] == 'success'
        assert record['deleted'] is True
        assert record['new_head'] == backend.get_head('develop')

    def test_land_keep(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Login', paths=['login.py'])
        result = invoke('land', 'feature/login', 'develop', '--keep')
        assert result.exit_code == 0
        assert backend.branch_exists('feature/login')

    def test_land_not_allowed(self, invoke, backend):
        invoke('feature', 'start', 'login')
        main_head = backend.get_head('main')
        result = invoke('land', 'feature/login', 'main')
        assert result.exit_code == 4
        assert _records(result)[0]['type'] == 'MergeNotAllowed'
        assert backend.get_head('main') == main_head

    def test_land_conflict(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Edit', paths=['app.py'])
        backend.commit('develop', 'Edit', paths=['app.py'])
        result = invoke('land', 'feature/login', 'develop')
        assert result.exit_code == 5
        assert _records(result)[0]['paths'] == ['app.py']

    def test_land_stale_head(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Login', paths=['login.py'])
        result = invoke('land', 'feature/login', 'develop', '--expect-head', 'f' * 40)
        assert result.exit_code == 6
        record = _records(result)[0]
        assert record['branch'] == 'develop'
        assert record['actual'] == backend.get_head('develop')

    def test_land_unclassified_branch(self, invoke, backend):
        backend.create_branch('wip', backend.get_head('develop'))
        result = invoke('land', 'wip', 'develop')
        assert result.exit_code == 3
        record = _records(result)[0]
        assert record['type'] == 'ClassificationError'
        assert 'wip' in record['error']

    def test_land_with_push(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Login', paths=['login.py'])
        result = invoke('land', 'feature/login', 'develop', '--push')
        assert result.exit_code == 0
        assert _records(result)[0]['pushed'] == ['develop']


class TestFlowCommands:
    """Tests for the feature, release and hotfix groups."""

    def _release(self, invoke, backend, version):
        assert invoke('release', 'start', version).exit_code == 0
        backend.commit(f'release/{version}', 'Bump', paths=['VERSION'])

    def test_feature_finish(self, invoke, backend):
        invoke('feature', 'start', 'login')
        backend.commit('feature/login', 'Login', paths=['login.py'])
        result = invoke('feature', 'finish', 'login', '--as', 'bob')
        assert result.exit_code == 0
        assert _records(result)[0]['requested_by'] == 'bob'

    def test_release_finish(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        result = invoke('release', 'finish', 'release/1.0.0', '1.0.0')
        assert result.exit_code == 0
        record = _records(result)[0]
        assert record['tag']['name'] == '1.0.0'
        assert record['companion']['target'] == 'develop'
        assert record['companion']['source'] == 'main'

    def test_release_finish_non_monotonic(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        invoke('release', 'finish', 'release/1.0.0', '1.0.0')
        self._release(invoke, backend, '0.9.0')
        result = invoke('release', 'finish', 'release/0.9.0', '0.9.0')
        assert result.exit_code == 8
        assert _records(result)[0]['type'] == 'NonMonotonicVersion'

    def test_second_release_start_rejected(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        result = invoke('release', 'start', '1.1.0')
        assert result.exit_code == 2

    def test_partial_release_and_rerun(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        merge = backend.merge

        def fail_on_develop(source, target, expected_head, message=None):
            if target == 'develop':
                raise ConflictError(['VERSION'])
            return merge(source, target, expected_head, message)

        with patch.object(backend, 'merge', side_effect=fail_on_develop):
            result = invoke('release', 'finish', 'release/1.0.0', '1.0.0')

        assert result.exit_code == 7
        record = _records(result)[0]
        assert record['type'] == 'PartialRelease'
        assert record['cause'] == 'MergeConflict'
        assert record['completed']['target'] == 'main'
        assert record['pending']['target']['name'] == 'develop'
        assert backend.list_tags() == []

        result = invoke('release', 'finish', 'release/1.0.0', '1.0.0')
        assert result.exit_code == 0
        record = _records(result)[0]
        assert record['status'] == 'skipped'
        assert record['companion']['status'] == 'success'
        assert record['tag']['name'] == '1.0.0'

    def test_hotfix(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        invoke('release', 'finish', 'release/1.0.0', '1.0.0')
        assert invoke('hotfix', 'start', '1.0.1').exit_code == 0
        backend.commit('hotfix/1.0.1', 'Fix', paths=['fix.py'])
        result = invoke('hotfix', 'finish', 'hotfix/1.0.1', '1.0.1')
        assert result.exit_code == 0
        assert _records(result)[0]['tag']['name'] == '1.0.1'

    def test_hotfix_finish_on_release_branch(self, invoke, backend):
        self._release(invoke, backend, '1.0.0')
        result = invoke('hotfix', 'finish', 'release/1.0.0', '1.0.0')
        assert result.exit_code == 4


class TestStatusCommands:
    """Tests for status, tags and check."""

    def test_status_jsonl(self, invoke):
        invoke('feature', 'start', 'login')
        result = invoke('status')
        assert result.exit_code == 0
        names = [r['name'] for r in _records(result)]
        assert names == ['develop', 'feature/login', 'main']

    def test_status_json(self, invoke):
        result = invoke('status', '-f', 'json')
        assert result.exit_code == 0
        branches = json.loads(result.output)
        assert {b['role'] for b in branches} == {'main', 'develop'}

    def test_status_yaml(self, invoke):
        result = invoke('status', '-f', 'yaml')
        assert result.exit_code == 0
        assert {b['name'] for b in yaml.safe_load(result.output)} == {'main', 'develop'}

    def test_status_table(self, invoke):
        invoke('feature', 'start', 'login')
        result = invoke('status', '-f', 'table')
        assert result.exit_code == 0
        assert 'feature/login' in result.output
        assert 'Open release' in result.output

    def test_tags(self, invoke, backend):
        backend.create_tag('1.0.0', backend.get_head('main'))
        result = invoke('tags')
        assert result.exit_code == 0
        assert [r['name'] for r in _records(result)] == ['1.0.0']

    def test_tags_table(self, invoke, backend):
        backend.create_tag('1.0.0', backend.get_head('main'))
        result = invoke('tags', '-f', 'table')
        assert result.exit_code == 0
        assert '1.0.0' in result.output

    def test_check_clean(self, invoke):
        result = invoke('check')
        assert result.exit_code == 0
        assert _records(result) == [{'status': 'ok', 'violations': 0}]

    def test_check_violation(self, invoke, backend):
        backend.commit('main', 'Direct fix', paths=['fix.py'])
        result = invoke('check')
        assert result.exit_code == 70
        records = _records(result)
        assert records[0]['invariant'] == 'main-reachable-from-develop'
        assert records[-1]['type'] == 'CommandError'


class TestConfigOption:
    """Tests for building the Flow from --config."""

    def test_config_file(self, runner, backend, tmp_path):
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(yaml.safe_dump({'flow': {'versiontag_prefix': 'v'}}))
        backend.commit('main', 'Release', paths=['VERSION'])
        backend.merge('main', 'develop', backend.get_head('develop'))
        backend.create_tag('v1.0.0', backend.get_head('main'))

        result = runner.invoke(
            cli, ['--config', str(config_path), 'tags'], obj={'backend': backend}
        )

        assert result.exit_code == 0
        assert _records(result)[0]['version'] == '1.0.0'

    def test_missing_config_file(self, runner, backend, tmp_path):
        result = runner.invoke(
            cli, ['--config', str(tmp_path / 'missing.yaml'), 'status'],
            obj={'backend': backend},
        )
        assert result.exit_code == 66
        assert _records(result)[0]['type'] == 'ConfigError'
