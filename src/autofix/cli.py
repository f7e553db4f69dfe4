"""Command-line interface for autofix.

Commands:
- autofix [run]: Detect, plan and execute repairs (default)
- autofix plan: Show the plan without executing anything
- autofix doctor: Detect issues; exit 1 when any are found
- autofix report: Show the latest run report
- autofix undo: Restore snapshots from the latest run
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import click
import yaml
from pydantic import ValidationError

from . import __version__
from .approval import (
    AlwaysDeclineConfirmer,
    ConfirmationHandler,
    InteractiveConfirmer,
    WebhookConfirmer,
)
from .config import VALID_CHECK_KINDS, AutofixConfig, load_config
from .coordinator import AutofixCoordinator
from .plan import FOCUS_CHOICES
from .report import (
    LATEST_REPORT,
    make_run_id,
    read_run_report,
    render_quiet_summary,
    render_summary,
    write_run_report,
)
from .telemetry import TelemetrySink
from .types import RunFlags, RunMode, RunReport, UndoResult
from .undo import undo_latest

_RUN_OPTIONS = [
    click.option("--dry-run", is_flag=True, help="Plan and report without executing anything."),
    click.option("--deep", is_flag=True, help="Allow destructive cleanup without prompting."),
    click.option("--approve", is_flag=True, help="Pre-approve destructive steps."),
    click.option("--force-fresh", is_flag=True, help="Remove lockfiles for a fresh resolution."),
    click.option(
        "--focus",
        type=click.Choice(FOCUS_CHOICES),
        default="all",
        show_default=True,
        help="Limit repairs to one stack.",
    ),
    click.option("--checks", help="Comma-separated check kinds: lint,format,test."),
    click.option(
        "--kill-ports",
        is_flag=False,
        flag_value="",
        default=None,
        help="Free ports before repairing (comma-separated; empty for configured ports).",
    ),
    click.option("--report-path", type=click.Path(), help="Directory for run reports."),
    click.option("--json", "as_json", is_flag=True, help="Print the report as JSON."),
    click.option("--quiet", is_flag=True, help="One-line summary."),
    click.option("--verbose", is_flag=True, help="Echo commands and their output."),
    click.option(
        "--approval-mode",
        type=click.Choice(["interactive", "webhook"]),
        default="interactive",
        show_default=True,
        help="How destructive steps are confirmed.",
    ),
]


def run_options(f: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(_RUN_OPTIONS):
        f = option(f)
    return f


def is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty() and not os.environ.get("CI")


def parse_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_checks(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [kind for kind in parse_csv(value) if kind in VALID_CHECK_KINDS]


def parse_ports(value: str | None) -> list[int] | None:
    """None: no cleanup. Empty: configured ports. Invalid entries are dropped."""
    if value is None:
        return None
    ports: list[int] = []
    for item in parse_csv(value):
        if item.isdigit() and 0 < int(item) < 65536:
            ports.append(int(item))
    return ports


def _load_config(cwd: Path) -> AutofixConfig:
    try:
        return load_config(cwd).config
    except (ValidationError, yaml.YAMLError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


def _report_dir(cwd: Path, config: AutofixConfig, report_path: str | None) -> Path:
    return cwd / (report_path or config.output.report_dir)


def _read_report(path: Path) -> RunReport | None:
    try:
        return read_run_report(path)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Report is not valid JSON: {path} ({e})") from e


def _make_confirmer(
    approval_mode: str,
    config: AutofixConfig,
    interactive: bool,
    run_id: str,
) -> ConfirmationHandler:
    if approval_mode == "webhook":
        webhook = config.approval.webhook
        if not webhook.url:
            raise click.ClickException(
                "approval_mode=webhook requires approval.webhook.url (or AUTOFIX_APPROVAL_WEBHOOK_URL)"
            )
        return WebhookConfirmer(
            webhook.url,
            headers=webhook.headers,
            timeout_seconds=webhook.timeout_seconds,
            run_id=run_id,
        )
    if interactive:
        return InteractiveConfirmer()
    return AlwaysDeclineConfirmer()


def _execute(mode: RunMode, options: dict[str, Any]) -> None:
    cwd = Path.cwd()
    config = _load_config(cwd)

    flags = RunFlags(
        dry_run=options["dry_run"] or mode == RunMode.PLAN,
        deep=options["deep"],
        approve=options["approve"],
        force_fresh=options["force_fresh"],
        focus=options["focus"],
        checks=parse_checks(options["checks"]),
        kill_ports=parse_ports(options["kill_ports"]),
        verbose=options["verbose"],
        quiet=options["quiet"],
        json=options["as_json"],
        report_path=options["report_path"],
    )

    run_id = make_run_id()
    approval_mode = options["approval_mode"]
    # A webhook can answer even when no terminal is attached.
    interactive = is_interactive() or approval_mode == "webhook"
    confirmer = _make_confirmer(approval_mode, config, interactive, run_id)
    report_dir = _report_dir(cwd, config, flags.report_path)

    coordinator = AutofixCoordinator(
        cwd,
        config,
        confirmer,
        flags=flags,
        mode=mode,
        interactive=interactive,
        run_id=run_id,
        report_dir=report_dir,
    )
    report = asyncio.run(coordinator.run_once())
    write_run_report(report, report_dir)

    if flags.json:
        click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    elif flags.quiet:
        click.echo(render_quiet_summary(report))
    else:
        click.echo(render_summary(report))

    if mode == RunMode.DOCTOR and report.detection.issues:
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="autofix")
@run_options
@click.pass_context
def cli(ctx: click.Context, **options: Any) -> None:
    """autofix - Repair local development environments safely.

    Without a subcommand, behaves like `autofix run`.
    """
    if ctx.invoked_subcommand is None:
        _execute(RunMode.RUN, options)


@cli.command()
@run_options
def run(**options: Any) -> None:
    """Detect, plan and execute repairs.

    Example:
        autofix run
        autofix run --deep --focus node
        autofix run --kill-ports 3000,5173
    """
    _execute(RunMode.RUN, options)


@cli.command()
@run_options
def plan(**options: Any) -> None:
    """Show what would run, without executing anything."""
    _execute(RunMode.PLAN, options)


@cli.command()
@run_options
def doctor(**options: Any) -> None:
    """Detect environment issues. Exits 1 when issues are found."""
    _execute(RunMode.DOCTOR, options)


@cli.command()
@click.option("--report-path", type=click.Path(), help="Directory for run reports.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw report as JSON.")
def report(report_path: str | None, as_json: bool) -> None:
    """Show the latest run report."""
    cwd = Path.cwd()
    config = _load_config(cwd)
    latest = _report_dir(cwd, config, report_path) / LATEST_REPORT

    run_report = _read_report(latest)
    if run_report is None:
        raise click.ClickException(f"No report found at {latest}")

    if as_json:
        click.echo(json.dumps(run_report.to_dict(), indent=2, ensure_ascii=False))
    else:
        click.echo(render_summary(run_report))


def _render_undo(result: UndoResult, run_report: RunReport) -> str:
    totals = result.totals
    lines = [
        "Detected environment",
        f"- {', '.join(run_report.summary.detected_environment)}",
        "",
        "Plan/Actions",
        f"- Attempted undo for {len(result.entries)} item(s)",
    ]
    for entry in result.entries:
        for path in entry.restored:
            lines.append(f"  ✓ {entry.step_id}: restored {path}")
        for failure in entry.failed:
            lines.append(f"  ✗ {entry.step_id}: {failure}")
        for missing in entry.missing_snapshot:
            lines.append(f"  ? {entry.step_id}: missing snapshot {missing}")
    lines += [
        "",
        "Results",
        f"- Restored: {totals['restored']}, Skipped: {totals['skipped']}, "
        f"Missing snapshot: {totals['missing_snapshot']}, Failed: {totals['failed']}",
        "",
        "Next best action",
    ]
    next_action = next(
        (e.next_best_action for e in result.entries if e.next_best_action),
        "Run autofix doctor to validate and recover manually",
    )
    lines.append(f"- {next_action}")
    return "\n".join(lines)


@cli.command()
@click.option("--report-path", type=click.Path(), help="Directory for run reports.")
@click.option("--json", "as_json", is_flag=True, help="Print undo entries as JSON.")
def undo(report_path: str | None, as_json: bool) -> None:
    """Restore snapshots recorded by the latest run."""
    cwd = Path.cwd()
    config = _load_config(cwd)
    latest = _report_dir(cwd, config, report_path) / LATEST_REPORT
    telemetry = TelemetrySink(enabled=config.telemetry.enabled, path=cwd / config.telemetry.log_path)

    try:
        result = undo_latest(latest, cwd, telemetry=telemetry)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Report is not valid JSON: {latest} ({e})") from e
    if result.report is None:
        raise click.ClickException("No previous report found for undo.")

    if as_json:
        payload = {
            "run_id": result.report.run_id,
            "entries": [e.to_dict() for e in result.entries],
            "totals": result.totals,
        }
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        click.echo(_render_undo(result, result.report))


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
