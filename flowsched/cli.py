"""
CLI interface for flowsched.

Provides commands to import, inspect, run, step, reset and abort schedules
kept in the configured schedules directory. Building schedules is left to
authoring tools; `import` copies a saved schedule JSON into the store.
"""

import sys

import click
from rich.table import Table

from flowsched import __version__
from flowsched.utils import console


def _get_config(ctx):
    """Return the loaded config or exit with a hint to run init."""
    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'flowsched init' to create a configuration file.", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


def _get_store(ctx):
    from flowsched.schedule_store import FileScheduleStore

    return FileScheduleStore(_get_config(ctx).schedules_path)


def _load_schedule(store, name: str):
    from flowsched.errors import PersistenceError

    try:
        return store.load(name)
    except FileNotFoundError:
        click.echo(f"✗ Unknown schedule: {name}", err=True)
        available = store.list_schedules()
        if available:
            click.echo("\nAvailable schedules:", err=True)
            for sid in available:
                click.echo(f"  {sid}", err=True)
        raise SystemExit(1)
    except PersistenceError as e:
        click.echo(f"✗ Cannot load schedule {name}: {e}", err=True)
        raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="flowsched")
@click.pass_context
def main(ctx):
    """
    flowsched - Resumable workflow schedules.

    Run branching schedules of jobs and operators, resuming where they left off.
    """
    from flowsched.config import load_config
    from flowsched.utils import setup_logging

    ctx.ensure_object(dict)
    try:
        config = load_config()
    except Exception as e:
        # init runs without a config; other commands report this error
        ctx.obj["config_error"] = str(e)
        return
    ctx.obj["config"] = config
    setup_logging(
        log_file=config.log_path,
        log_level=config.log_level,
        log_format=config.log_format,
        console_output=config.console_log,
    )


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize flowsched configuration."""
    import yaml

    from flowsched.config import FlowschedConfig, get_flowsched_home

    home = get_flowsched_home()
    home.mkdir(parents=True, exist_ok=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    default_cfg = FlowschedConfig(env_file=str(home / ".env")).to_dict()
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# SMTP credentials or executor settings go here\n")

    click.echo(f"Initialized flowsched config at {cfg_path}")


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", help="Store under this name instead of the one in the file")
@click.option("--force", is_flag=True, help="Replace an existing schedule")
@click.pass_context
def import_schedule(ctx, path: str, name: str | None, force: bool):
    """Import a schedule JSON file into the schedules directory."""
    from flowsched.errors import PersistenceError
    from flowsched.schedule_store import load_schedule_file

    store = _get_store(ctx)
    try:
        schedule = load_schedule_file(path)
    except PersistenceError as e:
        click.echo(f"✗ Cannot import {path}: {e}", err=True)
        raise SystemExit(1)

    if name:
        schedule.set_name(name)
    if not schedule.name:
        raise click.UsageError("Schedule has no name; pass --name")
    if store.exists(schedule.name) and not force:
        click.echo(f"✗ Schedule {schedule.name} already exists. Use --force to replace.", err=True)
        raise SystemExit(1)

    store.save(schedule)
    click.echo(f"✓ Imported {schedule.name}")


@main.command("list")
@click.pass_context
def list_schedules(ctx):
    """List saved schedules."""
    for name in _get_store(ctx).list_schedules():
        click.echo(name)


@main.command("validate")
@click.argument("name")
@click.pass_context
def validate(ctx, name: str):
    """Check a schedule for authoring errors."""
    schedule = _load_schedule(_get_store(ctx), name)
    report = schedule.validate()
    for issue in report.issues:
        click.echo(f"  {issue}")
    if not report.ok:
        click.echo(f"✗ {name} is not valid ({len(report.errors)} errors)", err=True)
        raise SystemExit(1)
    click.echo(f"✓ {name} is valid")


@main.command("status")
@click.argument("name")
@click.pass_context
def status(ctx, name: str):
    """Show the current position, variables and jobs of a schedule."""
    store = _get_store(ctx)
    schedule = _load_schedule(store, name)

    click.echo(f"Schedule:     {schedule.name}")
    click.echo(f"Current node: {schedule.current_node}")
    click.echo(f"Start node:   {schedule.original_start_node}")
    if store.abort_signal(name).is_requested():
        click.echo("Abort:        requested")

    if len(schedule.variables):
        table = Table(title="Variables")
        table.add_column("name")
        table.add_column("type")
        table.add_column("value")
        table.add_column("original")
        for var in schedule.variables:
            table.add_row(var.name, var.type.value, str(var.value), str(var.original_value))
        console.print(table)

    if schedule.jobs:
        table = Table(title="Jobs")
        table.add_column("node")
        table.add_column("current name")
        table.add_column("mode")
        table.add_column("started")
        for job_name in sorted(schedule.jobs):
            job = schedule.jobs[job_name]
            table.add_row(job.name, job.current_name, job.mode.value, "yes" if job.has_started else "no")
        console.print(table)


@main.command("run")
@click.argument("name")
@click.option("--reset", "reset_first", is_flag=True, help="Reset variables and start node before running")
@click.option("--dry-run", is_flag=True, help="Use a no-op executor; every job finishes immediately")
@click.option("--executor", "executor_path", help="Executor factory as module:function")
@click.pass_context
def run(ctx, name: str, reset_first: bool, dry_run: bool, executor_path: str | None):
    """
    Run a schedule until it exits, is aborted, or fails.

    Examples:

        flowsched run nightly

        flowsched run nightly --reset

        flowsched run nightly --dry-run
    """
    from flowsched.controller import ScheduleRunner
    from flowsched.errors import ScheduleValidationError
    from flowsched.job_executor import NoOpJobExecutor, build_executor
    from flowsched.notify import LoggingNotifier, SmtpNotifier

    config = _get_config(ctx)
    store = _get_store(ctx)
    schedule = _load_schedule(store, name)

    if dry_run and executor_path:
        raise click.UsageError("--dry-run and --executor are mutually exclusive")

    if dry_run:
        click.echo("=" * 50)
        click.echo("=== DRY RUN MODE === (jobs are not submitted)")
        click.echo("=" * 50)
        executor = NoOpJobExecutor()
    else:
        factory = executor_path or config.executor_factory
        if not factory:
            click.echo("✗ No executor configured. Set executor_factory or pass --executor.", err=True)
            raise SystemExit(1)
        try:
            executor = build_executor(factory)
        except (ImportError, AttributeError, TypeError, ValueError) as e:
            click.echo(f"✗ Cannot load executor {factory}: {e}", err=True)
            raise SystemExit(1)

    if config.smtp_host:
        notifier = SmtpNotifier(config.smtp_host, config.smtp_port, config.email_from)
    else:
        notifier = LoggingNotifier()

    runner = ScheduleRunner(
        schedule,
        executor,
        store=store,
        notifier=notifier,
        poll_interval=config.poll_interval,
        wait_interval=config.wait_interval,
    )

    try:
        result = runner.run(reset=reset_first)
    except ScheduleValidationError as e:
        click.echo(f"✗ {name} is not valid:", err=True)
        click.echo(str(e.report), err=True)
        raise SystemExit(1)

    if result.aborted:
        click.echo(f"■ {name} aborted at {result.final_node}")
    elif result.success:
        click.echo(f"✓ {name} completed at {result.final_node} ({result.steps} steps)")
    else:
        click.echo(f"✗ {name} failed at {result.final_node}: {result.error}", err=True)
        raise SystemExit(1)


@main.command("step")
@click.argument("name")
@click.pass_context
def step(ctx, name: str):
    """Move to the next node without performing the current one."""
    store = _get_store(ctx)
    schedule = _load_schedule(store, name)
    previous = schedule.current_node
    if not schedule.goto_next_node():
        click.echo(f"✗ {previous} has no outgoing edge", err=True)
        raise SystemExit(1)
    store.save(schedule)
    click.echo(f"{previous} -> {schedule.current_node}")


@main.command("reset")
@click.argument("name")
@click.pass_context
def reset(ctx, name: str):
    """Restore original variable values and return to the start node."""
    store = _get_store(ctx)
    schedule = _load_schedule(store, name)
    schedule.reset()
    store.save(schedule)
    store.abort_signal(name).clear()
    click.echo(f"✓ {name} reset to {schedule.current_node}")


@main.command("abort")
@click.argument("name")
@click.pass_context
def abort(ctx, name: str):
    """Ask a running schedule to stop at its next step."""
    store = _get_store(ctx)
    if not store.exists(name):
        click.echo(f"✗ Unknown schedule: {name}", err=True)
        raise SystemExit(1)
    store.abort_signal(name).request()
    click.echo(f"Abort requested for {name}")


if __name__ == "__main__":
    sys.exit(main())
