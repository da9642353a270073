"""
State command group for the trackdown CLI.

Show an item's workflow state and move it through the lifecycle and
resolution states.
"""

import click

from trackdown.commands.common import ITEM_TYPES, cli_errors, echo_json, load_core


@click.group()
def state():
    """Show and change item workflow states."""
    pass


@state.command(name="show")
@click.argument("item_type", type=click.Choice(ITEM_TYPES))
@click.argument("item_id")
@click.pass_context
def show(ctx, item_type, item_id):
    """Show an item's state and the transitions available from it."""
    with cli_errors():
        core = load_core(ctx)
        record = core.get_item(item_type, item_id)

    engine = core.transitions
    click.echo(f"{record.id}: {record.title}")
    click.echo(f"Effective state: {record.effective_state}")
    click.echo(f"Lifecycle status: {record.status}")
    if record.state_metadata is not None:
        metadata = record.state_metadata
        click.echo(
            f"Last transition: {metadata.previous_state or '?'} -> {record.effective_state} "
            f"by {metadata.transitioned_by or 'unknown'} at {metadata.transitioned_at}"
        )
        if metadata.reason:
            click.echo(f"Reason: {metadata.reason}")
        if metadata.reviewer:
            click.echo(f"Reviewer: {metadata.reviewer}")

    targets = engine.get_available_transitions(record)
    if not targets:
        click.echo("No transitions available (terminal state).")
        return
    click.echo("Available transitions:")
    for target in targets:
        marker = " (automatable)" if engine.can_automate(record, target) else ""
        click.echo(f"- {target}{marker}")

    for problem in engine.validate_state_metadata(record):
        click.echo(f"warning: {problem}", err=True)


@state.command(name="transition")
@click.argument("item_type", type=click.Choice(ITEM_TYPES))
@click.argument("item_id")
@click.argument("target")
@click.option(
    "--actor",
    envvar="TRACKDOWN_ACTOR",
    required=True,
    help="Who is making the change (or TRACKDOWN_ACTOR).",
)
@click.option("--reason", help="Why; required for won_t_do.")
@click.option("--reviewer", help="Who reviewed the work.")
@click.option("-f", "--force", is_flag=True, help="Write the transition despite warnings.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def transition(ctx, item_type, item_id, target, actor, reason, reviewer, force, json_output):
    """Move an item to TARGET and write it back to its document."""
    with cli_errors():
        core = load_core(ctx)
        result = core.transition_item(
            item_type,
            item_id,
            target,
            actor,
            reason=reason,
            reviewer=reviewer,
            force=force,
        )

    if json_output:
        echo_json(result)
        ctx.exit(0 if result.persisted else 1)

    for error in result.errors:
        click.echo(f"error: {error}", err=True)
    for warning in result.warnings:
        click.echo(f"warning: {warning}", err=True)

    if result.persisted:
        click.echo(f"{item_id} is now {result.item.effective_state}.")
        return
    if result.success:
        click.echo("Transition not written; use --force to apply it anyway.", err=True)
    ctx.exit(1)
