"""
Read-only commands for flowgate: status, tags and check.
"""

import click
from rich.console import Console
from rich.table import Table

from ..cli_utils import standard_command, add_common_options, get_flow
from ..exit_codes import CommandError, DATA_ERROR
from ..format_utils import format_output

console = Console()


@click.command('status')
@add_common_options('quiet', 'table_format')
@standard_command()
def status_handler(quiet, format):
    """Show flow branches with their roles and heads.

    \b
    Examples:
        flowgate status
        flowgate status -f json
    """
    model = get_flow().status()

    if format != 'table':
        return [model.branches[name].to_dict() for name in sorted(model.branches)]

    table = Table(title="Branches")
    table.add_column("Branch", style="cyan")
    table.add_column("Role")
    table.add_column("Head", style="dim")
    table.add_column("Forked from")
    for name in sorted(model.branches):
        ref = model.branches[name]
        table.add_row(ref.name, ref.role.value, ref.head[:10], ref.forked_from or "")
    console.print(table)

    release = model.active_release()
    latest = model.latest_tag()
    console.print(f"Open release: [bold]{release.name if release else '-'}[/bold]")
    console.print(f"Latest tag:   [bold]{latest.name if latest else '-'}[/bold]")
    if model.unclassified:
        console.print(f"[yellow]Outside the flow: {', '.join(model.unclassified)}[/yellow]")
    return None


@click.command('tags')
@add_common_options('quiet', 'table_format')
@standard_command()
def tags_handler(quiet, format):
    """List release tags in version order."""
    tags = get_flow().tags()

    if format != 'table':
        return [tag.to_dict() for tag in tags]

    table = Table(title="Release tags")
    table.add_column("Tag", style="green")
    table.add_column("Commit", style="dim")
    table.add_column("Created")
    for tag in tags:
        created = tag.created_at.strftime('%Y-%m-%d %H:%M') if tag.created_at else ""
        table.add_row(tag.name, tag.commit[:10], created)
    console.print(table)
    return None


@click.command('check')
@add_common_options('quiet', 'format')
@standard_command()
def check_handler(quiet, format):
    """Check the branching-model invariants.

    Exits 0 when the repository is consistent and 70 when any invariant
    is violated; each violation is printed as one record.
    """
    violations = get_flow().check()
    if violations:
        if not quiet:
            for line in format_output((v.to_dict() for v in violations), format):
                print(line, flush=True)
        raise CommandError(f"{len(violations)} invariant violation(s)", DATA_ERROR)
    return {'status': 'ok', 'violations': 0}
