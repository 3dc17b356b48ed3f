"""CLI interface for ideaqueue."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from ideaqueue.buckets.catalog import load_seed_file
from ideaqueue.config import IdeaQueueConfig, load_config, merge_cli_overrides
from ideaqueue.engine import TransitionResult
from ideaqueue.errors import DispatchFailure, IdeaQueueError
from ideaqueue.ideas.models import Idea
from ideaqueue.services import Services, build_services
from ideaqueue.stages import Stage

app = typer.Typer(
    name="ideaqueue",
    help="Move product ideas through phrase, design, product, listing and publish.",
    no_args_is_help=True,
)
ideas_app = typer.Typer(help="Review and move ideas.", no_args_is_help=True)
buckets_app = typer.Typer(help="Manage stage buckets.", no_args_is_help=True)
jobs_app = typer.Typer(help="Inspect and trigger jobs.", no_args_is_help=True)
app.add_typer(ideas_app, name="ideas")
app.add_typer(buckets_app, name="buckets")
app.add_typer(jobs_app, name="jobs")

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from ideaqueue import __version__

        console.print(f"ideaqueue {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .ideaqueue.toml file."),
    ] = None,
    store: Annotated[
        Optional[Path],
        typer.Option("--store", help="Store directory (overrides [store] directory)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """ideaqueue - stage-gated review pipeline for product ideas."""
    config = merge_cli_overrides(
        load_config(config_path),
        store_directory=str(store) if store else None,
        log_level="DEBUG" if verbose else None,
    )
    logging.basicConfig(level=config.logging.level.upper(), format=LOG_FORMAT)
    ctx.obj = config


def _config(ctx: typer.Context) -> IdeaQueueConfig:
    return ctx.find_root().obj


def _services(ctx: typer.Context) -> Services:
    return build_services(_config(ctx))


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Print engine errors and exit non-zero instead of dumping a traceback."""
    try:
        yield
    except DispatchFailure as exc:
        console.print(f"[red]Error:[/red] {exc}")
        if exc.idea_id:
            console.print(
                f"[yellow]Committed:[/yellow] idea {exc.idea_id} is at "
                f"{exc.stage}/{exc.status}; re-run the job with"
            )
            console.print(_rerun_command(exc), markup=False, soft_wrap=True)
        raise typer.Exit(2) from exc
    except IdeaQueueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


def _rerun_command(exc: DispatchFailure) -> str:
    """Shell command that resubmits the failed job with its full payload."""
    params = exc.params or {"idea_id": exc.idea_id}
    args = ["ideaqueue", "jobs", "run", exc.job]
    for key, value in params.items():
        args += ["--param", f"{key}={value}"]
    return "  " + shlex.join(args)


def _print_result(result: TransitionResult) -> None:
    console.print(f"Idea {result.idea_id}: [bold]{result.stage}[/bold] / {result.status}")
    if result.ack is not None:
        console.print(f"Submitted {result.ack.event_name} ({', '.join(result.ack.event_ids)})")


def _ideas_table(ideas: list[Idea]) -> Table:
    table = Table(title=f"{len(ideas)} idea(s)")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Stage")
    table.add_column("Status")
    table.add_column("Phrase")
    table.add_column("Updated")
    for idea in ideas:
        table.add_row(
            idea.id,
            idea.stage.value,
            idea.status.value,
            idea.phrase[:60],
            idea.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


# ── Server ───────────────────────────────────────────────────────


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[Optional[str], typer.Option(help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option(help="Bind port.")] = None,
) -> None:
    """Run the admin HTTP API."""
    import uvicorn

    from ideaqueue.api.app import create_app

    config = merge_cli_overrides(_config(ctx), host=host, port=port)
    if not config.server.admin_secret:
        console.print("[red]Error:[/red] set IDEAQUEUE_ADMIN_SECRET or [server] admin_secret")
        raise typer.Exit(1)
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


@app.command()
def token(
    ctx: typer.Context,
    ttl: Annotated[
        Optional[int], typer.Option(help="Lifetime in minutes (default from config).")
    ] = None,
) -> None:
    """Print a bearer token for the admin API."""
    from ideaqueue.api.auth import issue_admin_token

    config = _config(ctx)
    if not config.server.admin_secret:
        console.print("[red]Error:[/red] set IDEAQUEUE_ADMIN_SECRET or [server] admin_secret")
        raise typer.Exit(1)
    typer.echo(issue_admin_token(config.server.admin_secret, ttl or config.server.token_ttl_minutes))


# ── Ideas ────────────────────────────────────────────────────────


@ideas_app.command("list")
def ideas_list(
    ctx: typer.Context,
    stage: Annotated[Optional[Stage], typer.Option(help="Filter by stage.")] = None,
    status: Annotated[Optional[str], typer.Option(help="Filter by status.")] = None,
    bucket: Annotated[Optional[str], typer.Option(help="Filter by bucket id.")] = None,
) -> None:
    """List ideas, newest first."""
    with _reporting_errors():
        ideas = _services(ctx).queue.list(stage, status, bucket)
    console.print(_ideas_table(ideas))


@ideas_app.command("show")
def ideas_show(ctx: typer.Context, idea_id: str) -> None:
    """Show one idea with its revision history."""
    with _reporting_errors():
        idea = _services(ctx).ideas.require(idea_id)
    console.print(f"[bold]{idea.phrase}[/bold]")
    console.print(f"{idea.id}  {idea.stage} / {idea.status}")
    for stage in Stage:
        bucket_id = idea.bucket_id_for(stage)
        if bucket_id:
            console.print(f"  {stage} bucket: {bucket_id}")
    if idea.revision_history:
        history = Table(title="Revision history")
        history.add_column("When")
        history.add_column("Stage")
        history.add_column("Type")
        history.add_column("Notes")
        for entry in idea.revision_history:
            history.add_row(
                entry.timestamp.strftime("%Y-%m-%d %H:%M"),
                entry.stage.value,
                entry.type.value,
                entry.notes,
            )
        console.print(history)


@ideas_app.command("add")
def ideas_add(
    ctx: typer.Context,
    phrase: str,
    bucket: Annotated[Optional[str], typer.Option(help="Phrase bucket id.")] = None,
) -> None:
    """Create an idea at the phrase stage."""
    with _reporting_errors():
        idea = _services(ctx).engine.create_idea(phrase, phrase_bucket_id=bucket)
    console.print(f"Created idea {idea.id}")


@ideas_app.command("advance")
def ideas_advance(
    ctx: typer.Context,
    idea_id: str,
    bucket: Annotated[Optional[str], typer.Option(help="Bucket for the next stage.")] = None,
    guidance: Annotated[
        Optional[str], typer.Option("--guidance", "-g", help="Notes for the next stage.")
    ] = None,
) -> None:
    """Approve an idea and move it to the next stage."""
    with _reporting_errors():
        result = _services(ctx).engine.advance(idea_id, next_bucket_id=bucket, guidance=guidance)
    _print_result(result)


@ideas_app.command("reject")
def ideas_reject(ctx: typer.Context, idea_id: str) -> None:
    """Reject an idea in its current stage."""
    with _reporting_errors():
        result = _services(ctx).engine.reject(idea_id)
    _print_result(result)


@ideas_app.command("refine")
def ideas_refine(
    ctx: typer.Context,
    idea_id: str,
    notes: str,
    stage: Annotated[
        Optional[Stage], typer.Option(help="Stage to regenerate (default: current).")
    ] = None,
) -> None:
    """Send an idea back for AI rework with notes."""
    with _reporting_errors():
        result = _services(ctx).engine.refine(idea_id, notes, stage_override=stage)
    _print_result(result)


@ideas_app.command("publish")
def ideas_publish(ctx: typer.Context, idea_id: str) -> None:
    """Create the commerce product for an idea at the publish stage."""
    with _reporting_errors():
        result = _services(ctx).engine.publish(idea_id)
    _print_result(result)


@ideas_app.command("send-back")
def ideas_send_back(ctx: typer.Context, idea_id: str, stage: Stage) -> None:
    """Return an idea to an earlier stage."""
    with _reporting_errors():
        idea = _services(ctx).engine.send_back(idea_id, stage)
    console.print(f"Idea {idea.id}: [bold]{idea.stage}[/bold] / {idea.status}")


# ── Buckets ──────────────────────────────────────────────────────


@buckets_app.command("list")
def buckets_list(
    ctx: typer.Context,
    stage: Annotated[Optional[Stage], typer.Option(help="Filter by stage.")] = None,
    active: Annotated[bool, typer.Option("--active", help="Only active buckets.")] = False,
) -> None:
    """List buckets in (stage, sort order, name) order."""
    catalog = _services(ctx).catalog
    buckets = catalog.list_active(stage) if active else catalog.list(stage)
    table = Table(title=f"{len(buckets)} bucket(s)")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Stage")
    table.add_column("Name", no_wrap=True)
    table.add_column("Order", justify="right")
    table.add_column("Active")
    for bucket in buckets:
        table.add_row(
            bucket.id,
            bucket.stage.value,
            bucket.name,
            str(bucket.sort_order),
            "yes" if bucket.is_active else "no",
        )
    console.print(table)


@buckets_app.command("add")
def buckets_add(
    ctx: typer.Context,
    name: str,
    stage: Annotated[str, typer.Option(help="phrase, design, product or listing.")],
    prompt: Annotated[str, typer.Option(help="Directive text for generation jobs.")],
    sort_order: Annotated[int, typer.Option(help="Position within the stage.")] = 0,
    inactive: Annotated[bool, typer.Option("--inactive", help="Create disabled.")] = False,
) -> None:
    """Create a bucket."""
    with _reporting_errors():
        bucket = _services(ctx).catalog.create(
            name, stage, prompt, is_active=not inactive, sort_order=sort_order
        )
    console.print(f"Created {bucket.stage} bucket {bucket.id}")


@buckets_app.command("update")
def buckets_update(
    ctx: typer.Context,
    bucket_id: str,
    name: Annotated[Optional[str], typer.Option()] = None,
    prompt: Annotated[Optional[str], typer.Option()] = None,
    sort_order: Annotated[Optional[int], typer.Option()] = None,
    active: Annotated[Optional[bool], typer.Option("--active/--inactive")] = None,
) -> None:
    """Edit a bucket."""
    fields = {
        key: value
        for key, value in {
            "name": name,
            "prompt": prompt,
            "sort_order": sort_order,
            "is_active": active,
        }.items()
        if value is not None
    }
    if not fields:
        console.print("Nothing to update.")
        raise typer.Exit(0)
    with _reporting_errors():
        bucket = _services(ctx).catalog.update(bucket_id, fields)
    console.print(f"Updated bucket {bucket.id}")


@buckets_app.command("remove")
def buckets_remove(ctx: typer.Context, bucket_id: str) -> None:
    """Delete a bucket (deactivates it if ideas still reference it)."""
    with _reporting_errors():
        result = _services(ctx).catalog.delete(bucket_id)
    if result.deleted:
        console.print(f"Deleted bucket {bucket_id}")
    else:
        console.print(
            f"Bucket {bucket_id} is used by {result.references} idea(s); deactivated instead"
        )


@buckets_app.command("seed")
def buckets_seed(
    ctx: typer.Context,
    seed_file: Annotated[
        Path, typer.Argument(exists=True, dir_okay=False, help="TOML file of [[buckets]].")
    ],
) -> None:
    """Upsert buckets from a seed file."""
    with _reporting_errors():
        seeded = _services(ctx).catalog.seed(load_seed_file(seed_file))
    console.print(f"{len(seeded)} buckets upserted")


# ── Jobs ─────────────────────────────────────────────────────────


@jobs_app.command("list")
def jobs_list() -> None:
    """List the jobs the pipeline can request."""
    from ideaqueue.jobs.dispatcher import list_jobs

    table = Table(title="Jobs")
    table.add_column("Name", no_wrap=True)
    table.add_column("Schedule")
    table.add_column("Params")
    table.add_column("Description")
    for spec in list_jobs():
        table.add_row(
            spec.name.value,
            spec.schedule or "-",
            ", ".join(spec.required_params) or "-",
            spec.description,
        )
    console.print(table)


@jobs_app.command("run")
def jobs_run(
    ctx: typer.Context,
    name: str,
    param: Annotated[
        Optional[list[str]], typer.Option("--param", "-p", help="key=value job parameter.")
    ] = None,
) -> None:
    """Submit a job by hand (e.g. after a failed dispatch)."""
    params: dict[str, str] = {}
    for item in param or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            console.print(f"[red]Error:[/red] --param expects key=value, got {item!r}")
            raise typer.Exit(1)
        params[key.strip()] = value.strip()
    with _reporting_errors():
        ack = _services(ctx).engine.run_job(name, params)
    console.print(f"Submitted {ack.event_name} ({', '.join(ack.event_ids)})")
