"""
Index command group for the trackdown CLI.

Commands for rebuilding the index, checking and repairing its health,
and summarising what it holds.
"""

import click

from trackdown.commands.common import cli_errors, echo_json, format_item, load_core


@click.group()
def index():
    """Build, check and summarise the item index."""
    pass


@index.command(name="rebuild")
@click.pass_context
def rebuild(ctx):
    """Rebuild the index from the item documents."""
    with cli_errors():
        core = load_core(ctx)
        result = core.index_manager.rebuild_index()

    click.echo(
        f"Index rebuilt: {result.item_count} items "
        f"({len(result.epics)} epics, {len(result.issues)} issues, "
        f"{len(result.tasks)} tasks, {len(result.prs)} PRs) "
        f"in {result.stats.last_rebuild_ms:.0f} ms"
    )


@index.command(name="health")
@click.option("-r", "--repair", is_flag=True, help="Automatically repair detected issues.")
@click.option("-f", "--force", is_flag=True, help="Repair even if the index appears healthy.")
@click.option(
    "--rebuild-index",
    "rebuild_index",
    is_flag=True,
    help="Skip diagnostics and rebuild the index from scratch.",
)
@click.option("--verbose", "show_details", is_flag=True, help="Show cache and file details.")
@click.option(
    "-j",
    "--json",
    "json_output",
    is_flag=True,
    help="Output the health report in JSON format.",
)
@click.pass_context
def health(ctx, repair, force, rebuild_index, show_details, json_output):
    """Validate index health and optionally repair it.

    \b
    Exit codes:
      0 - Index is healthy (or was rebuilt)
      1 - Index had issues that were repaired, or repair wasn't requested
      2 - Index has issues and repair failed
      3 - Unrecoverable error
    """
    with cli_errors():
        core = load_core(ctx)
        outcome = core.health_check(repair=repair, force=force, rebuild=rebuild_index)
        stats = core.index_manager.get_index_stats() if show_details else None

    if json_output:
        echo_json(outcome)
        ctx.exit(outcome.exit_code)

    if outcome.rebuilt:
        click.echo("Index rebuilt from scratch.")
        ctx.exit(outcome.exit_code)

    report = outcome.health
    click.echo("Index is healthy." if report.is_valid else "Index has issues.")
    click.echo(f"Files found: {report.stats.file_count}")
    click.echo(f"Files indexed: {report.stats.indexed_count}")
    if report.stats.missing_count:
        click.echo(f"Missing from index: {report.stats.missing_count}")
    if report.stats.orphaned_count:
        click.echo(f"Orphaned entries: {report.stats.orphaned_count}")

    if report.issues:
        click.echo()
        click.echo("Issues:")
        for issue in report.issues:
            click.echo(f"- {issue}")
    if report.suggestions and outcome.repair is None:
        click.echo()
        click.echo("Suggestions:")
        for suggestion in report.suggestions:
            click.echo(f"- {suggestion}")

    if stats is not None:
        click.echo()
        click.echo("Details:")
        click.echo(f"- Cache hit: {'yes' if stats.cache_hit else 'no'}")
        click.echo(f"- Index file exists: {'yes' if stats.index_file_exists else 'no'}")
        click.echo(f"- Index file modified: {stats.index_file_modified or 'never'}")
        click.echo(f"- Last full scan: {stats.last_full_scan or 'never'}")
        click.echo(f"- Last rebuild: {stats.last_rebuild_ms:.1f} ms")

    if outcome.repair is not None:
        click.echo()
        if outcome.repair.repaired:
            click.echo("Repair completed.")
        else:
            click.echo("Repair failed.")
        for action in outcome.repair.actions:
            click.echo(f"- {action}")
        for error in outcome.repair.errors:
            click.echo(f"! {error}", err=True)

    ctx.exit(outcome.exit_code)


@index.command(name="stats")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def stats(ctx, json_output):
    """Show index counts and cache information."""
    with cli_errors():
        core = load_core(ctx)
        result = core.index_manager.get_index_stats()

    if json_output:
        echo_json(result)
        return

    click.echo(f"Epics:  {result.total_epics}")
    click.echo(f"Issues: {result.total_issues}")
    click.echo(f"Tasks:  {result.total_tasks}")
    click.echo(f"PRs:    {result.total_prs}")
    click.echo(f"Last updated: {result.last_updated}")
    click.echo(f"Last full scan: {result.last_full_scan or 'never'}")


@index.command(name="overview")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def overview(ctx, json_output):
    """Summarise items by status, priority and type."""
    with cli_errors():
        core = load_core(ctx)
        result = core.index_manager.get_project_overview()

    if json_output:
        echo_json(result)
        return

    click.echo("Project Overview")
    click.echo("=========================")
    click.echo(f"Total items: {result.total_items}")
    click.echo(f"Completion: {result.completion_rate}%")
    for title, counts in (
        ("By type", result.by_type),
        ("By status", result.by_status),
        ("By priority", result.by_priority),
    ):
        click.echo()
        click.echo(f"{title}:")
        for key, count in sorted(counts.items()):
            click.echo(f"- {key}: {count}")

    click.echo()
    click.echo("Recent activity:")
    if not result.recent_activity:
        click.echo("- none")
    for record in result.recent_activity:
        click.echo(format_item(record, indent=1))
