#!/usr/bin/env python3

import click

from flowgate import __version__
from flowgate.commands.branch import init_handler, fork_handler, land_handler
from flowgate.commands.flow import feature_cmd, release_cmd, hotfix_cmd
from flowgate.commands.status import status_handler, tags_handler, check_handler


@click.group()
@click.version_option(version=__version__, prog_name='flowgate')
@click.option('--repo', default='.', metavar='PATH', envvar='FLOWGATE_REPO',
              help='Git repository to operate on (default: current directory)')
@click.option('--config', 'config_path', metavar='PATH',
              help='Config file (default: $FLOWGATE_CONFIG or ~/.flowgate/config.json)')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging on stderr')
@click.pass_context
def cli(ctx, repo, config_path, verbose):
    """flowgate - Branch lifecycle and merge-policy engine.

    Enforces a git-flow branching model on a repository: which branches
    may be forked from which, which may be merged into which, and how
    releases are tagged.
    """
    obj = ctx.ensure_object(dict)
    obj.setdefault('repo', repo)
    obj.setdefault('config_path', config_path)
    obj.setdefault('verbose', verbose)


# Core commands (flat, top-level)
cli.add_command(init_handler, name='init')
cli.add_command(fork_handler, name='fork')
cli.add_command(land_handler, name='land')
cli.add_command(status_handler, name='status')
cli.add_command(tags_handler, name='tags')
cli.add_command(check_handler, name='check')

# Command groups
cli.add_command(feature_cmd)
cli.add_command(release_cmd)
cli.add_command(hotfix_cmd)


def main():
    cli()


if __name__ == "__main__":
    main()
