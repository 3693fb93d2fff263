"""Command-line interface for stratum."""

from __future__ import annotations

import json
import logging
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

import click

from .document import Document
from .exceptions import StratumError
from .graph import build_graph, validate_references
from .models import EngineOptions
from .naming import (
    DEFAULT_STATE_FILE,
    DEFAULT_STATE_NAME,
    STATE_FILE_ENV_VAR,
    STATE_NAME_ENV_VAR,
    STATE_TABLE_ENV_VAR,
    validate_state_name,
)
from .orchestrator import ApplyResult, ApplyStatus, Orchestrator
from .plan import ChangeAction, Plan
from .providers.registry import ProviderRegistry, default_registry
from .resolver import apply_order
from .state import DynamoDBStateStore, LocalStateStore, StateStore


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def state_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options selecting the state backend."""
    options = [
        click.option(
            "--state-file",
            envvar=STATE_FILE_ENV_VAR,
            help=f"Local JSON state file (default: {DEFAULT_STATE_FILE})",
        ),
        click.option(
            "--state-table",
            envvar=STATE_TABLE_ENV_VAR,
            help="DynamoDB table holding state (instead of a local file)",
        ),
        click.option(
            "--state-name",
            envvar=STATE_NAME_ENV_VAR,
            default=DEFAULT_STATE_NAME,
            show_default=True,
            help="State name within the DynamoDB table",
        ),
        click.option("--region", help="AWS region (default: use boto3 defaults)"),
        click.option(
            "--endpoint-url",
            help="AWS endpoint URL (e.g., http://localhost:4566 for LocalStack)",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def engine_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options tuning plan/apply sessions."""
    options = [
        click.option(
            "--parallelism",
            type=click.IntRange(min=1),
            default=10,
            show_default=True,
            help="Maximum concurrent provider operations",
        ),
        click.option(
            "--lock-timeout",
            type=click.FloatRange(min=0),
            default=30.0,
            show_default=True,
            help="Seconds to wait for the state lock",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _state_store(
    state_file: str | None,
    state_table: str | None,
    state_name: str,
    region: str | None,
    endpoint_url: str | None,
) -> StateStore:
    if state_file and state_table:
        raise click.UsageError("--state-file and --state-table are mutually exclusive")
    if state_table:
        return DynamoDBStateStore(
            state_table,
            validate_state_name(state_name),
            region=region,
            endpoint_url=endpoint_url,
        )
    return LocalStateStore(state_file or DEFAULT_STATE_FILE)


def _store(kwargs: dict[str, Any]) -> StateStore:
    _configure_logging(kwargs["verbose"])
    try:
        return _state_store(
            kwargs["state_file"],
            kwargs["state_table"],
            kwargs["state_name"],
            kwargs["region"],
            kwargs["endpoint_url"],
        )
    except StratumError as e:
        _fail(str(e))


def _orchestrator(
    kwargs: dict[str, Any],
    registry: ProviderRegistry | None = None,
) -> Orchestrator:
    _configure_logging(kwargs["verbose"])
    state = _state_store(
        kwargs["state_file"],
        kwargs["state_table"],
        kwargs["state_name"],
        kwargs["region"],
        kwargs["endpoint_url"],
    )
    options = EngineOptions(
        parallelism=kwargs.get("parallelism", 10),
        lock_timeout=kwargs.get("lock_timeout", 30.0),
    )
    registry = registry or default_registry(kwargs["region"], kwargs["endpoint_url"])
    return Orchestrator(state, registry, options)


@contextmanager
def _cancel_on_interrupt(orchestrator: Orchestrator) -> Iterator[None]:
    """Turn Ctrl-C during apply into a graceful cancel."""

    def handler(signum: int, frame: Any) -> None:
        click.echo(
            "\nInterrupted: waiting for in-flight changes, starting no new ones.", err=True
        )
        orchestrator.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_plan(plan: Plan) -> None:
    if not plan.has_changes:
        click.echo("No changes. Infrastructure is up-to-date.")
        return

    summary = plan.summary()
    click.echo(
        f"Plan: {summary['create']} to create, {summary['update']} to update, "
        f"{summary['replace']} to replace, {summary['delete']} to delete.\n"
    )
    for change in plan.actionable:
        line = f"  {change.action.symbol} {change.action.value} {change.address}"
        if change.action in (ChangeAction.UPDATE, ChangeAction.REPLACE):
            line += f" ({', '.join(change.changed) or 'dependencies'})"
        click.echo(line)
        for key in change.provisional:
            click.echo(f"      {key} = (known after apply)")


def _print_result(result: ApplyResult) -> None:
    for outcome in result.outcomes:
        mark = {"succeeded": "✓", "failed": "✗", "skipped": "-", "cancelled": "-"}[
            outcome.status.value
        ]
        click.echo(f"  {mark} {outcome.action.value} {outcome.address}: {outcome.status.value}")
    click.echo(f"\n{result.summary()}")

    problems = result.failed + result.skipped + result.cancelled
    if result.status is not ApplyStatus.APPLIED:
        click.echo(f"\nErrors ({len(problems)}):", err=True)
        for outcome in problems:
            click.echo(f"  - {outcome.address}: {outcome.error or outcome.status.value}", err=True)
        sys.exit(1)


@click.group()
@click.version_option()
def cli() -> None:
    """stratum: dependency-aware declarative resource reconciler."""
    pass


@cli.command()
@click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True),
    help="Resource document (YAML or JSON).",
)
@click.option("--region", help="AWS region (default: use boto3 defaults)")
def validate(file_path: str, region: str | None) -> None:
    """Check a document without touching state or providers."""
    try:
        document = Document.from_file(file_path)
        graph = build_graph(document)
        apply_order(graph)
        validate_references(graph, default_registry(region))
    except StratumError as e:
        _fail(str(e))
    click.echo(f"Document is valid: {len(document)} resource(s).")


@cli.command()
@click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True),
    help="Resource document (YAML or JSON).",
)
@click.option("--out", "out_path", type=click.Path(), help="Save the plan to this file.")
@click.option(
    "--refresh/--no-refresh",
    default=False,
    help="Read live resource outputs before planning",
)
@state_options
@engine_options
def plan(file_path: str, out_path: str | None, refresh: bool, **kwargs: Any) -> None:
    """Preview changes without applying (like terraform plan)."""
    try:
        orchestrator = _orchestrator(kwargs)
        result = orchestrator.plan(Document.from_file(file_path), refresh=refresh)
    except StratumError as e:
        _fail(str(e))
    _print_plan(result)
    if out_path:
        result.save(out_path)
        click.echo(f"\nPlan saved to {out_path}")


@cli.command()
@click.option(
    "--file",
    "-f",
    "file_path",
    type=click.Path(exists=True),
    help="Resource document (YAML or JSON).",
)
@click.option(
    "--plan",
    "plan_path",
    type=click.Path(exists=True),
    help="Apply a plan saved with 'plan --out'.",
)
@click.option("--auto-approve", is_flag=True, help="Skip the confirmation prompt.")
@click.option(
    "--refresh/--no-refresh",
    default=False,
    help="Read live resource outputs before planning",
)
@state_options
@engine_options
def apply(
    file_path: str | None,
    plan_path: str | None,
    auto_approve: bool,
    refresh: bool,
    **kwargs: Any,
) -> None:
    """Apply a document or a saved plan (like terraform apply)."""
    if bool(file_path) == bool(plan_path):
        raise click.UsageError("Provide exactly one of --file or --plan")

    try:
        orchestrator = _orchestrator(kwargs)
        with orchestrator.session():
            if plan_path:
                planned = Plan.load(plan_path)
            else:
                planned = orchestrator.plan(Document.from_file(file_path), refresh=refresh)
            _print_plan(planned)
            if not planned.has_changes:
                return
            if not plan_path and not auto_approve:
                click.confirm("\nApply these changes?", abort=True)
            with _cancel_on_interrupt(orchestrator):
                result = orchestrator.apply(planned)
    except StratumError as e:
        _fail(str(e))
    click.echo()
    _print_result(result)


@cli.command()
@click.option("--auto-approve", is_flag=True, help="Skip the confirmation prompt.")
@state_options
@engine_options
def destroy(auto_approve: bool, **kwargs: Any) -> None:
    """Delete every resource recorded in state."""
    try:
        orchestrator = _orchestrator(kwargs)
        with orchestrator.session():
            planned = orchestrator.plan_destroy()
            _print_plan(planned)
            if not planned.has_changes:
                return
            if not auto_approve:
                click.confirm("\nDestroy all of these resources?", abort=True)
            with _cancel_on_interrupt(orchestrator):
                result = orchestrator.apply(planned)
    except StratumError as e:
        _fail(str(e))
    click.echo()
    _print_result(result)


@cli.command()
@click.option(
    "--file",
    "-f",
    "file_path",
    required=True,
    type=click.Path(exists=True),
    help="Resource document (YAML or JSON).",
)
def graph(file_path: str) -> None:
    """Print resources in apply order with their dependencies."""
    try:
        resources = build_graph(Document.from_file(file_path))
        order = apply_order(resources)
    except StratumError as e:
        _fail(str(e))
    for address in order:
        dependencies = resources.dependencies(address)
        if dependencies:
            click.echo(f"{address} <- {', '.join(dependencies)}")
        else:
            click.echo(address)


@cli.group()
def state() -> None:
    """Inspect and initialize state."""
    pass


@state.command("init")
@state_options
def state_init(**kwargs: Any) -> None:
    """Create the DynamoDB state table if it does not exist."""
    store = _store(kwargs)
    if not isinstance(store, DynamoDBStateStore):
        click.echo("Local state needs no initialization.")
        return
    store.create_table()
    click.echo(f"State table ready: {store.location}")


@state.command("list")
@state_options
def state_list(**kwargs: Any) -> None:
    """List recorded resources."""
    store = _store(kwargs)
    try:
        records = store.list()
    except StratumError as e:
        _fail(str(e))
    if not records:
        click.echo("State is empty.")
        return
    for record in sorted(records, key=lambda r: r.address):
        click.echo(f"{record.address}  {record.provider_id}")


@state.command("show")
@click.argument("address")
@state_options
def state_show(address: str, **kwargs: Any) -> None:
    """Show one recorded resource as JSON."""
    store = _store(kwargs)
    try:
        record = store.read(address)
    except StratumError as e:
        _fail(str(e))
    if record is None:
        _fail(f"{address} is not in state")
    click.echo(json.dumps(record.to_dict(), indent=2, sort_keys=True))


if __name__ == "__main__":
    cli()
