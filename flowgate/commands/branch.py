"""
Branch commands for flowgate: init, fork and land.
"""

import click

from ..cli_utils import standard_command, add_common_options, get_flow
from ..domain.branch import BranchRole

ROLE_CHOICES = ['auto'] + [role.value for role in BranchRole] + ['hotfix']


@click.command('init')
@add_common_options('quiet', 'format')
@standard_command()
def init_handler(quiet, format):
    """Create the develop branch from main if it is missing.

    \b
    Examples:
        flowgate init
    """
    return get_flow().init()


@click.command('fork')
@click.argument('role', type=click.Choice(ROLE_CHOICES, case_sensitive=False))
@click.argument('name')
@click.option('--from', 'from_branch', metavar='BRANCH',
              help='Branch to fork from (default: develop, or main for hotfixes)')
@add_common_options('actor', 'quiet', 'format')
@standard_command()
def fork_handler(role, name, from_branch, actor, quiet, format):
    """Create branch NAME with ROLE.

    ROLE may be 'auto' to infer it from the name prefix
    (feature/, release/, hotfix/, maintenance/).

    \b
    Exit codes:
        0  branch created
        2  fork not allowed from that parent
        3  role cannot be inferred from the name

    \b
    Examples:
        flowgate fork auto feature/login
        flowgate fork release release/1.2.0
        flowgate fork maintenance urgent-fix --from main
    """
    explicit = None if role.lower() == 'auto' else BranchRole.parse(role)
    outcome = get_flow().fork(name, role=explicit, from_branch=from_branch, requested_by=actor)
    return outcome.to_dict()


@click.command('land')
@click.argument('source')
@click.argument('target')
@click.option('--expect-head', metavar='SHA',
              help='Target head you last saw; fails with exit 6 if it moved')
@click.option('--version', 'version', metavar='VERSION',
              help='Version to tag when a release or hotfix lands on main')
@add_common_options('keep', 'fetch', 'push', 'actor', 'quiet', 'format')
@standard_command()
def land_handler(source, target, expect_head, version, keep, fetch, push, actor, quiet, format):
    """Merge SOURCE into TARGET under the branching policy.

    Release and hotfix branches landing on main are also merged into
    develop (or the open release) and the source branch is deleted.

    \b
    Exit codes:
        0  merged
        4  merge not allowed between these roles
        5  merge conflict
        6  target moved since it was observed
        7  partial release (main merged, companion merge failed)

    \b
    Examples:
        flowgate land feature/login develop
        flowgate land release/1.2.0 main --version 1.2.0
    """
    flow = get_flow().override(
        fetch_before_merge=fetch or None,
        push_after_finish=push or None,
    )
    outcome = flow.land(
        source, target,
        expected_head=expect_head,
        version=version,
        keep_branch=keep or None,
        requested_by=actor,
    )
    return outcome.to_dict()
