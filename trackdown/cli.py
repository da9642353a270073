"""
CLI for the trackdown index.

Entry point for the `trackdown` command. Uses TrackdownCore and the
managers exclusively; every command works against the project root given
with --root (or TRACKDOWN_ROOT).
"""
import logging
from pathlib import Path

import click

from trackdown.commands.hierarchy import hierarchy, related, search, validate
from trackdown.commands.index import index
from trackdown.commands.state import state

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--root",
    "project_root",
    envvar="TRACKDOWN_ROOT",
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
    help="Project root holding .trackdown/ and the tasks directory.",
)
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
@click.pass_context
def cli(ctx, project_root, verbose):
    """A queryable index over Markdown work items (epics, issues, tasks, PRs)."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["project_root"] = project_root


cli.add_command(index)
cli.add_command(state)
cli.add_command(hierarchy)
cli.add_command(related)
cli.add_command(validate)
cli.add_command(search)


if __name__ == '__main__':
    cli()
