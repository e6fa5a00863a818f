"""Click CLI entry point for mucm."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import click

from mucm import __version__
from mucm.config import init_project, is_initialized
from mucm.coordinator import Coordinator, OperationResult
from mucm.errors import Diagnostic, MucmError
from mucm.log import configure_logging
from mucm.models import Priority, Status, UseCase

T = TypeVar("T")

PRIORITIES = [p.value for p in Priority]
STATUSES = [s.value for s in Status]


def _call(ctx: click.Context, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run an operation, turning mucm errors into an error line and exit code."""
    try:
        return operation(*args, **kwargs)
    except MucmError as e:
        click.echo(f"Error: {e}")
        ctx.exit(e.exit_code)


def _open(ctx: click.Context) -> Coordinator:
    strict = ctx.obj.get("strict", False) if ctx.obj else False
    return _call(ctx, Coordinator.open, Path.cwd(), strict=strict)


def _echo_warnings(warnings: Iterable[Diagnostic]) -> None:
    for warning in warnings:
        click.echo(f"Warning: {warning}")


def _report(result: OperationResult, message: str) -> None:
    click.echo(message)
    _echo_warnings(result.warnings)


def _parse_pairs(ctx: click.Context, pairs: Iterable[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            click.echo(f"Error: Expected KEY=VALUE, got '{pair}'")
            ctx.exit(1)
        values[key.strip()] = value
    return values


@click.group()
@click.version_option(version=__version__, prog_name="mucm")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging to stderr")
@click.option("--json-logs", is_flag=True, default=False, help="Emit logs as JSON")
@click.option("--strict", is_flag=True, default=False, help="Fail on missing required fields")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool, strict: bool) -> None:
    """Use case documents with Markdown views generated from source records."""
    configure_logging(verbose=verbose, json_output=json_logs)
    ctx.ensure_object(dict)
    ctx.obj["strict"] = strict


@cli.command()
@click.option("--name", default=None, help="Project name")
@click.option(
    "--methodology",
    "-m",
    "methodologies",
    multiple=True,
    help="Enable a methodology (repeatable; default: all bundled)",
)
@click.option("--default", "default_methodology", default=None, help="Default methodology")
@click.option("--language", default="python", show_default=True, help="Test scaffold language")
@click.option("--force", is_flag=True, default=False, help="Overwrite config and templates")
@click.option("--standard-actors", is_flag=True, default=False, help="Install standard system actors")
@click.pass_context
def init(
    ctx: click.Context,
    name: str | None,
    methodologies: tuple[str, ...],
    default_methodology: str | None,
    language: str,
    force: bool,
    standard_actors: bool,
) -> None:
    """Initialize a project for use case management."""
    project_root = Path.cwd()
    already = is_initialized(project_root)
    if already and not force:
        click.echo("Warning: Project is already initialized. Refreshing missing templates.")

    config = _call(
        ctx,
        init_project,
        project_root,
        name=name,
        methodologies=list(methodologies) or None,
        default_methodology=default_methodology,
        test_language=language,
        force=force,
    )
    if standard_actors:
        coordinator = _open(ctx)
        installed = _call(ctx, coordinator.install_standard_actors)
        click.echo(f"Installed {len(installed)} standard actor(s).")

    if not already or force:
        click.echo("Initialized use case project.")
        click.echo(f"  Methodologies: {', '.join(config.methodologies)}")
        click.echo(f"  Default:       {config.default_methodology}")
        click.echo(f"  Sources:       {config.source_dir}/")
        click.echo(f"  Views:         {config.use_case_dir}/")


@cli.command()
@click.argument("title")
@click.option("--category", "-c", required=True, help="Category, e.g. authentication")
@click.option("--description", "-d", default="", help="Description")
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), default="medium", show_default=True)
@click.option("--view", "views", multiple=True, help="methodology[:level] (repeatable)")
@click.option("--field", "fields", multiple=True, help="KEY=VALUE field value (repeatable)")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    category: str,
    description: str,
    priority: str,
    views: tuple[str, ...],
    fields: tuple[str, ...],
) -> None:
    """Create a use case."""
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.create,
        title,
        category,
        description=description,
        priority=priority,
        views=list(views) or None,
        extra_fields=_parse_pairs(ctx, fields),
    )
    _report(result, f"Created {result.subject}: {title}")


@cli.command()
@click.argument("use_case_id")
@click.option("--title", default=None)
@click.option("--category", default=None)
@click.option("--description", default=None)
@click.option("--priority", type=click.Choice(PRIORITIES), default=None)
@click.pass_context
def update(
    ctx: click.Context,
    use_case_id: str,
    title: str | None,
    category: str | None,
    description: str | None,
    priority: str | None,
) -> None:
    """Update use case attributes."""
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.update,
        use_case_id,
        title=title,
        category=category,
        description=description,
        priority=priority,
    )
    _report(result, f"Updated {use_case_id} (version {result.use_case.metadata.version})")


def _show_use_case(use_case: UseCase) -> None:
    click.echo(f"{use_case.id}: {use_case.title}")
    click.echo(f"  Category: {use_case.category}")
    click.echo(f"  Priority: {use_case.priority.value}")
    click.echo(f"  Status:   {use_case.status.emoji} {use_case.status.value}")
    click.echo(f"  Version:  {use_case.metadata.version}")
    click.echo(f"  Views:    {', '.join(v.key for v in use_case.views)}")
    if use_case.description:
        click.echo(f"\n  {use_case.description}")
    for methodology, bag in use_case.methodology_fields.items():
        for key, value in bag.items():
            click.echo(f"  [{methodology}] {key} = {value}")
    for scenario in use_case.scenarios:
        persona = f" (persona: {scenario.persona})" if scenario.persona else ""
        click.echo(
            f"\n  {scenario.id}: {scenario.title} [{scenario.scenario_type.value}, "
            f"{scenario.status.value}]{persona}"
        )
        for step in scenario.steps:
            receiver = f" -> {step.receiver}" if step.receiver else ""
            click.echo(f"    {step.order}. {step.actor}{receiver}: {step.description}")


@cli.command()
@click.argument("use_case_id")
@click.pass_context
def show(ctx: click.Context, use_case_id: str) -> None:
    """Show one use case."""
    coordinator = _open(ctx)
    _show_use_case(_call(ctx, coordinator.get_use_case, use_case_id))


@cli.command("list")
@click.option("--category", default=None)
@click.option("--priority", type=click.Choice(PRIORITIES), default=None)
@click.option("--status", type=click.Choice(STATUSES), default=None)
@click.option("--persona", default=None, help="Only use cases with scenarios for this actor")
@click.pass_context
def list_cmd(
    ctx: click.Context,
    category: str | None,
    priority: str | None,
    status: str | None,
    persona: str | None,
) -> None:
    """List use cases."""
    coordinator = _open(ctx)
    if persona:
        matches = _call(ctx, coordinator.use_cases_for_persona, persona)
        for use_case, scenario_ids in matches:
            click.echo(f"{use_case.id}  {use_case.title}  ({', '.join(scenario_ids)})")
        if not matches:
            click.echo(f"No use cases for persona '{persona}'.")
        return

    use_cases = _call(ctx, coordinator.list_use_cases, category, priority, status)
    if not use_cases:
        click.echo("No use cases found.")
        return
    for use_case in use_cases:
        click.echo(
            f"{use_case.id}  {use_case.status.emoji} {use_case.status.value:<12} "
            f"{use_case.priority.value:<8} {use_case.title}"
        )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show corpus status."""
    coordinator = _open(ctx)
    summary = _call(ctx, coordinator.status_summary)
    click.echo(f"Use cases: {summary.total}")
    click.echo("By status:")
    for name, count in summary.by_status.items():
        if count:
            click.echo(f"  {name}: {count}")
    click.echo("By priority:")
    for name, count in summary.by_priority.items():
        if count:
            click.echo(f"  {name}: {count}")
    click.echo("By category:")
    for name, count in summary.by_category.items():
        click.echo(f"  {name}: {count}")


@cli.command()
@click.argument("use_case_id", required=False)
@click.pass_context
def regenerate(ctx: click.Context, use_case_id: str | None) -> None:
    """Re-render Markdown views from the source records."""
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.regenerate, use_case_id)
    _report(result, f"Regenerated {len(result.paths)} file(s).")


@cli.command()
@click.argument("use_case_id")
@click.option("--yes", is_flag=True, default=False, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, use_case_id: str, yes: bool) -> None:
    """Delete a use case and its rendered views."""
    coordinator = _open(ctx)
    if not yes and not click.confirm(f"Delete {use_case_id}?", default=False):
        click.echo("Aborted.")
        return
    result = _call(ctx, coordinator.delete, use_case_id)
    _report(result, f"Deleted {result.subject}.")


@cli.command()
@click.argument("use_case_id", required=False)
@click.pass_context
def validate(ctx: click.Context, use_case_id: str | None) -> None:
    """Report dangling references, field problems and stale views."""
    coordinator = _open(ctx)
    diagnostics = _call(ctx, coordinator.validate, use_case_id)
    if not diagnostics:
        click.echo("No problems found.")
        return
    for diagnostic in diagnostics:
        click.echo(str(diagnostic))
    click.echo(f"\n{len(diagnostics)} problem(s) found.")
    ctx.exit(1)


@cli.command()
@click.argument("use_case_id", required=False)
@click.option("--dry-run", is_flag=True, default=False)
@click.pass_context
def cleanup(ctx: click.Context, use_case_id: str | None, dry_run: bool) -> None:
    """Remove field bags of methodologies no view uses."""
    coordinator = _open(ctx)
    report = _call(ctx, coordinator.cleanup_methodology_fields, use_case_id, dry_run)
    if not report.removed:
        click.echo("Nothing to clean up.")
        return
    verb = "Would remove" if dry_run else "Removed"
    for identifier, methodologies in report.removed.items():
        click.echo(f"{verb} {', '.join(methodologies)} fields from {identifier}")


@cli.command()
@click.argument("use_case_id")
@click.option("--overwrite", is_flag=True, default=False)
@click.pass_context
def scaffold(ctx: click.Context, use_case_id: str, overwrite: bool) -> None:
    """Write a test scaffold for a use case."""
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.scaffold, use_case_id, overwrite)
    if result.written:
        click.echo(f"Wrote {result.path}")
    else:
        click.echo(f"Kept existing {result.path} (use --overwrite to replace)")


# -- views and fields ------------------------------------------------------


@cli.group()
def view() -> None:
    """Manage the views of a use case."""


@view.command("add")
@click.argument("use_case_id")
@click.argument("methodology")
@click.argument("level", required=False)
@click.pass_context
def view_add(ctx: click.Context, use_case_id: str, methodology: str, level: str | None) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.add_view, use_case_id, methodology, level)
    _report(result, f"Added {methodology} view to {use_case_id}")


@view.command("remove")
@click.argument("use_case_id")
@click.argument("methodology")
@click.pass_context
def view_remove(ctx: click.Context, use_case_id: str, methodology: str) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.remove_view, use_case_id, methodology)
    _report(result, f"Removed {methodology} view from {use_case_id}")


@cli.group()
def fields() -> None:
    """Manage methodology-specific fields."""


@fields.command("set")
@click.argument("use_case_id")
@click.argument("methodology")
@click.argument("pairs", nargs=-1)
@click.pass_context
def fields_set(ctx: click.Context, use_case_id: str, methodology: str, pairs: tuple[str, ...]) -> None:
    """Replace the METHODOLOGY fields with KEY=VALUE pairs."""
    coordinator = _open(ctx)
    result = _call(
        ctx, coordinator.update_methodology_fields, use_case_id, methodology, _parse_pairs(ctx, pairs)
    )
    _report(result, f"Updated {methodology} fields of {use_case_id}")


@cli.group()
def ref() -> None:
    """Manage references between use cases."""


@ref.command("add")
@click.argument("use_case_id")
@click.argument("target_id")
@click.option("--relationship", "-r", default="depends_on", show_default=True)
@click.option("--description", default=None)
@click.pass_context
def ref_add(
    ctx: click.Context, use_case_id: str, target_id: str, relationship: str, description: str | None
) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.add_reference, use_case_id, target_id, relationship, description)
    _report(result, f"{use_case_id} {relationship} {target_id}")


@ref.command("remove")
@click.argument("use_case_id")
@click.argument("target_id")
@click.option("--relationship", "-r", default=None)
@click.pass_context
def ref_remove(ctx: click.Context, use_case_id: str, target_id: str, relationship: str | None) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.remove_reference, use_case_id, target_id, relationship)
    _report(result, f"Removed reference from {use_case_id} to {target_id}")


# -- scenarios -------------------------------------------------------------


@cli.group()
def scenario() -> None:
    """Manage scenarios."""


@scenario.command("add")
@click.argument("use_case_id")
@click.argument("title")
@click.option("--type", "scenario_type", default="main", show_default=True)
@click.option("--description", default="")
@click.option("--persona", default=None)
@click.pass_context
def scenario_add(
    ctx: click.Context,
    use_case_id: str,
    title: str,
    scenario_type: str,
    description: str,
    persona: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx, coordinator.add_scenario, use_case_id, title, scenario_type, description, persona
    )
    _report(result, f"Added scenario {result.subject}: {title}")


@scenario.command("edit")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.option("--title", default=None)
@click.option("--description", default=None)
@click.option("--type", "scenario_type", default=None)
@click.pass_context
def scenario_edit(
    ctx: click.Context,
    use_case_id: str,
    scenario_id: str,
    title: str | None,
    description: str | None,
    scenario_type: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx, coordinator.edit_scenario, use_case_id, scenario_id, title, description, scenario_type
    )
    _report(result, f"Updated {scenario_id}")


@scenario.command("delete")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.pass_context
def scenario_delete(ctx: click.Context, use_case_id: str, scenario_id: str) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.delete_scenario, use_case_id, scenario_id)
    _report(result, f"Deleted {result.subject}")


@scenario.command("status")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("new_status", type=click.Choice(STATUSES))
@click.pass_context
def scenario_status(ctx: click.Context, use_case_id: str, scenario_id: str, new_status: str) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.update_status, use_case_id, scenario_id, new_status)
    use_case = result.use_case or coordinator.get_use_case(use_case_id)
    _report(
        result,
        f"{scenario_id} is now {new_status}; {use_case_id} is {use_case.status.value}",
    )


@scenario.command("persona")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("actor_id")
@click.pass_context
def scenario_persona(ctx: click.Context, use_case_id: str, scenario_id: str, actor_id: str) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.assign_persona, use_case_id, scenario_id, actor_id)
    _report(result, f"Assigned {actor_id} to {scenario_id}")


@scenario.command("unpersona")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.pass_context
def scenario_unpersona(ctx: click.Context, use_case_id: str, scenario_id: str) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.unassign_persona, use_case_id, scenario_id)
    _report(result, f"Removed persona from {scenario_id}")


@scenario.command("ref-add")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("target_id")
@click.option("--relationship", "-r", default="depends_on", show_default=True)
@click.option("--description", default=None)
@click.pass_context
def scenario_ref_add(
    ctx: click.Context,
    use_case_id: str,
    scenario_id: str,
    target_id: str,
    relationship: str,
    description: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.add_scenario_reference,
        use_case_id,
        scenario_id,
        target_id,
        relationship,
        description,
    )
    _report(result, f"{scenario_id} {relationship} {target_id}")


@scenario.command("ref-remove")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("target_id")
@click.option("--relationship", "-r", default=None)
@click.pass_context
def scenario_ref_remove(
    ctx: click.Context,
    use_case_id: str,
    scenario_id: str,
    target_id: str,
    relationship: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx, coordinator.remove_scenario_reference, use_case_id, scenario_id, target_id, relationship
    )
    _report(result, f"Removed reference from {scenario_id} to {target_id}")


# -- steps -----------------------------------------------------------------


@cli.group()
def step() -> None:
    """Manage the steps of a scenario."""


@step.command("add")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("description")
@click.option("--actor", default="User", show_default=True)
@click.option("--receiver", default=None)
@click.option("--expect", "expected_result", default=None)
@click.pass_context
def step_add(
    ctx: click.Context,
    use_case_id: str,
    scenario_id: str,
    description: str,
    actor: str,
    receiver: str | None,
    expected_result: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.add_step,
        use_case_id,
        scenario_id,
        actor,
        description,
        receiver,
        expected_result,
    )
    _report(result, f"Added {result.subject}")


@step.command("edit")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("order", type=int)
@click.option("--description", default=None)
@click.option("--actor", default=None)
@click.option("--receiver", default=None, help="Pass an empty string to clear.")
@click.option("--expect", "expected_result", default=None, help="Pass an empty string to clear.")
@click.pass_context
def step_edit(
    ctx: click.Context,
    use_case_id: str,
    scenario_id: str,
    order: int,
    description: str | None,
    actor: str | None,
    receiver: str | None,
    expected_result: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.edit_step,
        use_case_id,
        scenario_id,
        order,
        actor=actor,
        description=description,
        receiver=receiver,
        expected_result=expected_result,
    )
    _report(result, f"Updated step {order} of {scenario_id}")


@step.command("remove")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("order", type=int)
@click.pass_context
def step_remove(ctx: click.Context, use_case_id: str, scenario_id: str, order: int) -> None:
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.remove_step, use_case_id, scenario_id, order)
    _report(result, f"Removed step {order} of {scenario_id}")


@step.command("reorder")
@click.argument("use_case_id")
@click.argument("scenario_id")
@click.argument("new_order", nargs=-1, type=int, required=True)
@click.pass_context
def step_reorder(
    ctx: click.Context, use_case_id: str, scenario_id: str, new_order: tuple[int, ...]
) -> None:
    """NEW_ORDER lists current step numbers in their new sequence."""
    coordinator = _open(ctx)
    result = _call(ctx, coordinator.reorder_steps, use_case_id, scenario_id, list(new_order))
    _report(result, f"Reordered steps of {scenario_id}")


# -- conditions ------------------------------------------------------------


@cli.group()
def condition() -> None:
    """Manage pre- and postconditions."""


_kind_option = click.option(
    "--kind", type=click.Choice(["pre", "post"]), default="pre", show_default=True
)
_scenario_option = click.option("--scenario", "scenario_id", default=None, help="Scenario id")


@condition.command("add")
@click.argument("use_case_id")
@click.argument("text")
@_kind_option
@_scenario_option
@click.option("--target", "target_id", default=None, help="Linked use case or scenario id")
@click.option("--relationship", "-r", default=None)
@click.pass_context
def condition_add(
    ctx: click.Context,
    use_case_id: str,
    text: str,
    kind: str,
    scenario_id: str | None,
    target_id: str | None,
    relationship: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.add_condition,
        use_case_id,
        text,
        kind=kind,
        scenario_id=scenario_id,
        target_id=target_id,
        relationship=relationship,
    )
    _report(result, f"Added {kind}condition to {scenario_id or use_case_id}")


@condition.command("remove")
@click.argument("use_case_id")
@click.argument("position", type=int)
@_kind_option
@_scenario_option
@click.pass_context
def condition_remove(
    ctx: click.Context, use_case_id: str, position: int, kind: str, scenario_id: str | None
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx, coordinator.remove_condition, use_case_id, position, kind=kind, scenario_id=scenario_id
    )
    _report(result, f"Removed {kind}condition {position} from {scenario_id or use_case_id}")


@condition.command("reorder")
@click.argument("use_case_id")
@click.argument("new_order", nargs=-1, type=int, required=True)
@_kind_option
@_scenario_option
@click.pass_context
def condition_reorder(
    ctx: click.Context,
    use_case_id: str,
    new_order: tuple[int, ...],
    kind: str,
    scenario_id: str | None,
) -> None:
    coordinator = _open(ctx)
    result = _call(
        ctx,
        coordinator.reorder_conditions,
        use_case_id,
        list(new_order),
        kind=kind,
        scenario_id=scenario_id,
    )
    _report(result, f"Reordered {kind}conditions of {scenario_id or use_case_id}")


# -- methodologies and actors ----------------------------------------------


@cli.group()
def methodology() -> None:
    """Inspect installed methodologies."""


@methodology.command("list")
@click.pass_context
def methodology_list(ctx: click.Context) -> None:
    coordinator = _open(ctx)
    enabled = set(coordinator.config.methodologies)
    for definition in coordinator.methodologies():
        marker = "*" if definition.name == coordinator.config.default_methodology else " "
        state = "" if definition.name in enabled else " (disabled)"
        levels = ", ".join(definition.levels)
        click.echo(f"{marker} {definition.name:<10} {definition.title} [{levels}]{state}")
    _echo_warnings(coordinator.registry.warnings)


@methodology.command("info")
@click.argument("name")
@click.pass_context
def methodology_info(ctx: click.Context, name: str) -> None:
    coordinator = _open(ctx)
    definition = _call(ctx, coordinator.methodology_info, name)
    click.echo(f"{definition.title} ({definition.name})")
    click.echo(f"  {definition.description}")
    if definition.when_to_use:
        click.echo("\nWhen to use:")
        for item in definition.when_to_use:
            click.echo(f"  - {item}")
    if definition.key_features:
        click.echo("\nKey features:")
        for item in definition.key_features:
            click.echo(f"  - {item}")
    click.echo("\nLevels:")
    for level in definition.levels.values():
        inherits = f" (inherits {', '.join(level.inherits)})" if level.inherits else ""
        click.echo(f"  {level.key} [{level.abbreviation}]: {level.description}{inherits}")
        for field_def in coordinator.registry.fields_for(definition.name, level.key):
            required = " *" if field_def.required else ""
            click.echo(f"      {field_def.name} ({field_def.field_type}){required}")


@cli.group()
def actor() -> None:
    """Manage personas and system actors."""


@actor.command("add")
@click.argument("actor_id")
@click.argument("name")
@click.option(
    "--kind", type=click.Choice(["persona", "system", "external"]), default="persona", show_default=True
)
@click.option("--emoji", default=None)
@click.option("--field", "fields", multiple=True, help="KEY=VALUE (repeatable)")
@click.pass_context
def actor_add(
    ctx: click.Context,
    actor_id: str,
    name: str,
    kind: str,
    emoji: str | None,
    fields: tuple[str, ...],
) -> None:
    coordinator = _open(ctx)
    added, warnings = _call(
        ctx, coordinator.add_actor, actor_id, name, kind, emoji, _parse_pairs(ctx, fields)
    )
    click.echo(f"Added {added.kind.value} {added.id}: {added.name}")
    _echo_warnings(warnings)


@actor.command("list")
@click.pass_context
def actor_list(ctx: click.Context) -> None:
    coordinator = _open(ctx)
    actors = _call(ctx, coordinator.list_actors)
    if not actors:
        click.echo("No actors defined.")
        return
    for item in actors:
        click.echo(f"{item.emoji} {item.id:<20} {item.kind.value:<9} {item.name}")


@actor.command("remove")
@click.argument("actor_id")
@click.pass_context
def actor_remove(ctx: click.Context, actor_id: str) -> None:
    coordinator = _open(ctx)
    _call(ctx, coordinator.remove_actor, actor_id)
    click.echo(f"Removed actor {actor_id}")

