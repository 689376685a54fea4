"""
git-flow style command groups: feature, release and hotfix.

Each group wraps fork/land with the branch naming and targets of its role:

    feature start NAME         fork feature/NAME from develop
    feature finish NAME        land feature/NAME into develop
    release start VERSION      fork release/VERSION from develop
    release finish BRANCH V    land BRANCH into main + develop, tag V
    hotfix start VERSION       fork hotfix/VERSION from main
    hotfix finish BRANCH V     land BRANCH into main + develop/release, tag V
"""

import click

from ..cli_utils import standard_command, add_common_options, get_flow


def _finish_options(func):
    return add_common_options('keep', 'fetch', 'push', 'actor', 'quiet', 'format')(func)


def _flow_with(fetch: bool, push: bool):
    return get_flow().override(
        fetch_before_merge=fetch or None,
        push_after_finish=push or None,
    )


# =============================================================================
# FEATURE
# =============================================================================

@click.group(name='feature')
def feature_cmd():
    """Start and finish feature branches."""
    pass


@feature_cmd.command('start')
@click.argument('name')
@add_common_options('actor', 'quiet', 'format')
@standard_command()
def feature_start(name, actor, quiet, format):
    """Fork feature/NAME from develop."""
    return get_flow().start_feature(name, requested_by=actor).to_dict()


@feature_cmd.command('finish')
@click.argument('name')
@_finish_options
@standard_command()
def feature_finish(name, keep, fetch, push, actor, quiet, format):
    """Merge feature/NAME into develop and delete it."""
    flow = _flow_with(fetch, push)
    return flow.finish_feature(name, keep_branch=keep or None, requested_by=actor).to_dict()


# =============================================================================
# RELEASE
# =============================================================================

@click.group(name='release')
def release_cmd():
    """Start and finish release branches."""
    pass


@release_cmd.command('start')
@click.argument('version')
@add_common_options('actor', 'quiet', 'format')
@standard_command()
def release_start(version, actor, quiet, format):
    """Fork release/VERSION from develop."""
    return get_flow().start_release(version, requested_by=actor).to_dict()


@release_cmd.command('finish')
@click.argument('branch')
@click.argument('version')
@_finish_options
@standard_command()
def release_finish(branch, version, keep, fetch, push, actor, quiet, format):
    """Merge BRANCH into main and develop, then tag main with VERSION.

    Running it again after a partial release (exit 7) skips the merge
    into main and retries only the merge into develop.

    \b
    Exit codes:
        0  released
        7  partial release (main merged, develop merge failed)
        8  VERSION is not above the latest tag

    \b
    Examples:
        flowgate release finish release/1.0 1.0.0
    """
    flow = _flow_with(fetch, push)
    outcome = flow.finish_release(branch, version, keep_branch=keep or None, requested_by=actor)
    return outcome.to_dict()


# =============================================================================
# HOTFIX
# =============================================================================

@click.group(name='hotfix')
def hotfix_cmd():
    """Start and finish hotfix (maintenance) branches."""
    pass


@hotfix_cmd.command('start')
@click.argument('version')
@add_common_options('actor', 'quiet', 'format')
@standard_command()
def hotfix_start(version, actor, quiet, format):
    """Fork hotfix/VERSION from main."""
    return get_flow().start_hotfix(version, requested_by=actor).to_dict()


@hotfix_cmd.command('finish')
@click.argument('branch')
@click.argument('version')
@_finish_options
@standard_command()
def hotfix_finish(branch, version, keep, fetch, push, actor, quiet, format):
    """Merge BRANCH into main and develop (or the open release), tag main.

    \b
    Exit codes:
        0  released
        7  partial release (main merged, companion merge failed)
        8  VERSION is not above the latest tag

    \b
    Examples:
        flowgate hotfix finish hotfix/bug 1.0.1
    """
    flow = _flow_with(fetch, push)
    outcome = flow.finish_hotfix(branch, version, keep_branch=keep or None, requested_by=actor)
    return outcome.to_dict()
