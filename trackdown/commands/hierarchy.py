"""
Relationship commands for the trackdown CLI.

Show an item's hierarchy and related items, validate references between
items, and search across the index.
"""

import click
from pydantic import ValidationError

from trackdown.commands.common import (
    ITEM_TYPES,
    cli_errors,
    echo_json,
    format_item,
    load_core,
)
from trackdown.models.results import SearchFilters


@click.command(name="hierarchy")
@click.argument("item_type", type=click.Choice(ITEM_TYPES))
@click.argument("item_id")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def hierarchy(ctx, item_type, item_id, json_output):
    """Show an item together with its parents and children."""
    with cli_errors():
        core = load_core(ctx)
        getters = {
            "epic": core.relationships.get_epic_hierarchy,
            "issue": core.relationships.get_issue_hierarchy,
            "task": core.relationships.get_task_hierarchy,
            "pr": core.relationships.get_pr_hierarchy,
        }
        result = getters[item_type](item_id)

    if result is None:
        raise click.ClickException(f"{item_type} {item_id} not found")
    if json_output:
        echo_json(result)
        return

    if item_type == "epic":
        click.echo(format_item(result.epic))
        for label, records in (
            ("Issues", result.issues),
            ("Tasks", result.tasks),
            ("PRs", result.prs),
        ):
            click.echo(f"{label} ({len(records)}):")
            for record in records:
                click.echo(format_item(record, indent=1))
    elif item_type == "issue":
        click.echo(format_item(result.issue))
        click.echo(f"Epic: {format_item(result.epic)}")
        for label, records in (("Tasks", result.tasks), ("PRs", result.prs)):
            click.echo(f"{label} ({len(records)}):")
            for record in records:
                click.echo(format_item(record, indent=1))
    else:
        anchor = result.task if item_type == "task" else result.pr
        click.echo(format_item(anchor))
        click.echo(f"Issue: {format_item(result.issue)}")
        click.echo(f"Epic: {format_item(result.epic)}")


@click.command(name="related")
@click.argument("item_id")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def related(ctx, item_id, json_output):
    """Show items that depend on, block or share a parent with an item."""
    with cli_errors():
        core = load_core(ctx)
        result = core.relationships.get_related_items(item_id)

    if result is None:
        raise click.ClickException(f"Item {item_id} not found")
    if json_output:
        echo_json(result)
        return

    for label, records in (
        ("Dependents", result.dependents),
        ("Dependencies", result.dependencies),
        ("Blocked by", result.blocked_by),
        ("Blocks", result.blocks),
        ("Siblings", result.siblings),
    ):
        click.echo(f"{label} ({len(records)}):")
        for record in records:
            click.echo(format_item(record, indent=1))


@click.command(name="validate")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def validate(ctx, json_output):
    """Check references between items. Exits 1 if errors are found."""
    with cli_errors():
        core = load_core(ctx)
        result = core.relationships.validate_relationships()

    if json_output:
        echo_json(result)
    else:
        for issue in result.errors:
            click.echo(f"error: {issue.message}")
        for issue in result.warnings:
            click.echo(f"warning: {issue.message}")
        if result.valid:
            click.echo(f"Relationships are valid ({len(result.warnings)} warning(s)).")
    if not result.valid:
        ctx.exit(1)


@click.command(name="search")
@click.option("-s", "--status", multiple=True, help="Effective state or status (repeatable).")
@click.option("-p", "--priority", multiple=True, help="Priority (repeatable).")
@click.option("-a", "--assignee", multiple=True, help="Assignee (repeatable).")
@click.option("--tag", "tags", multiple=True, help="Tag; items with any given tag match.")
@click.option(
    "-t", "--type", "types", multiple=True, type=click.Choice(ITEM_TYPES), help="Item type."
)
@click.option("--created-after", help="ISO date or timestamp.")
@click.option("--created-before", help="ISO date or timestamp.")
@click.option("--updated-after", help="ISO date or timestamp.")
@click.option("--updated-before", help="ISO date or timestamp.")
@click.option("--title", "title_contains", help="Case-insensitive title substring.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def search(
    ctx,
    status,
    priority,
    assignee,
    tags,
    types,
    created_after,
    created_before,
    updated_after,
    updated_before,
    title_contains,
    json_output,
):
    """Search items with a fixed set of filters."""
    try:
        filters = SearchFilters(
            status=list(status),
            priority=list(priority),
            assignee=list(assignee),
            tags=list(tags),
            types=list(types),
            created_after=created_after,
            created_before=created_before,
            updated_after=updated_after,
            updated_before=updated_before,
            title_contains=title_contains,
        )
    except ValidationError as e:
        raise click.BadParameter(str(e))

    with cli_errors():
        core = load_core(ctx)
        result = core.relationships.search(filters)

    if json_output:
        echo_json(result)
        return

    for record in result.items:
        click.echo(format_item(record))
    click.echo(f"{result.total_count} item(s) found.")
