"""Autofix Coordinator - one detect/plan/execute/report cycle.

The coordinator manages a single invocation:
1. Detect the project's stacks and issues
2. Confirm polyglot scope (interactive only)
3. Build the phase-ordered plan and apply the polyglot guard
4. Resolve a writable snapshot directory
5. Execute the plan through the safety gates
6. Summarise into a RunReport (persisting it is the caller's job)
"""

from __future__ import annotations

import dataclasses
import os
import tempfile
from pathlib import Path

from .approval import ConfirmationHandler
from .config import AutofixConfig
from .detect import detect_environment
from .executor import RunContext, execute_steps
from .plan import apply_polyglot_guard, build_plan
from .ports import PortProbe
from .report import compute_summary, make_run_id, summarize_detection, utc_now
from .telemetry import TelemetrySink, prune_telemetry_file
from .types import CheckKind, Detection, RunFlags, RunMode, RunReport

GITIGNORE_ENTRY = ".autofix/"
DOCKER_TEST_SERVICES_WARNING = (
    "Tests may require services; run `docker compose up -d` and re-run tests."
)


def ensure_writable_dir(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(directory, os.W_OK)


def ensure_autofix_in_gitignore(cwd: Path) -> bool:
    """Add ``.autofix/`` to the nearest git root's .gitignore.

    Returns True when the file was changed. Outside a git repository this is
    a no-op.
    """
    current = Path(cwd).resolve()
    while not (current / ".git").exists():
        if current.parent == current:
            return False
        current = current.parent

    gitignore = current / ".gitignore"
    body = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    if GITIGNORE_ENTRY in body.splitlines():
        return False

    separator = "" if not body or body.endswith("\n") else "\n"
    gitignore.write_text(f"{body}{separator}{GITIGNORE_ENTRY}\n", encoding="utf-8")
    return True


class AutofixCoordinator:
    """Runs one autofix cycle for a project directory."""

    def __init__(
        self,
        cwd: Path | str,
        config: AutofixConfig,
        confirmer: ConfirmationHandler | None = None,
        flags: RunFlags | None = None,
        mode: RunMode = RunMode.RUN,
        interactive: bool = False,
        run_id: str | None = None,
        report_dir: Path | None = None,
        port_probe: PortProbe | None = None,
    ):
        self.cwd = Path(cwd)
        self.config = config
        self.confirmer = confirmer or ConfirmationHandler(interactive=False)
        self.flags = flags or RunFlags()
        self.mode = RunMode(mode)
        self.interactive = interactive
        self.run_id = run_id or make_run_id()
        self.report_dir = report_dir or self.cwd / config.output.report_dir
        self.port_probe = port_probe
        self.telemetry = TelemetrySink(
            enabled=config.telemetry.enabled,
            path=self.cwd / config.telemetry.log_path,
        )

    async def _confirm_polyglot(self, detection: Detection) -> RunFlags:
        """Ask whether to touch every detected stack; narrow focus if declined."""
        flags = self.flags
        if detection.stack_count < 2 or flags.focus != "all" or flags.approve:
            return flags
        if not self.interactive:
            # Non-interactive narrowing is the guard's job.
            return flags

        stacks = ", ".join(summarize_detection(detection))
        if await self.confirmer.confirm(f"Detected {stacks}. Run all subsystems?"):
            return flags

        for stack, detected in (
            ("node", detection.node.detected),
            ("python", detection.python.detected),
            ("docker", detection.docker.detected),
        ):
            if detected:
                return dataclasses.replace(flags, focus=stack)
        return flags

    def _resolve_snapshot_dir(self, dry: bool) -> tuple[Path, bool]:
        """Configured snapshot dir, or a temp fallback when it is not writable."""
        desired = self.cwd / self.config.output.snapshot_dir
        if dry or ensure_writable_dir(desired):
            return desired, False
        fallback = Path(tempfile.gettempdir()) / "autofix" / self.run_id
        ensure_writable_dir(fallback)
        return fallback, True

    async def run_once(self) -> RunReport:
        """
        Run a single detect/plan/execute cycle.

        Returns:
            The completed RunReport
        """
        started_at = utc_now()
        if self.telemetry.enabled:
            prune_telemetry_file(self.telemetry.path, self.config.telemetry.retention_days)

        self.telemetry.log(
            self.run_id,
            "run_started",
            {"command": self.mode.value, "cwd": str(self.cwd), "flags": self.flags.to_dict()},
        )

        detection = detect_environment(self.cwd, self.config)
        flags = await self._confirm_polyglot(detection)

        plan = build_plan(self.cwd, detection, self.config, flags)
        steps, warnings = apply_polyglot_guard(plan, detection, flags, self.interactive)
        self.telemetry.log(
            self.run_id,
            "plan_ready",
            {"step_ids": [s.id for s in steps], "warnings": warnings},
        )

        dry = self.mode.is_dry or flags.dry_run
        snapshot_dir, fallback_to_temp = self._resolve_snapshot_dir(dry)

        ctx = RunContext(
            mode=self.mode,
            cwd=self.cwd,
            run_id=self.run_id,
            flags=flags,
            interactive=self.interactive,
            snapshot_dir=snapshot_dir,
            confirmer=self.confirmer,
            telemetry=self.telemetry,
            settings=self.config.executor,
            port_probe=self.port_probe,
        )
        executed = await execute_steps(ctx, steps)

        if not dry and ensure_autofix_in_gitignore(self.cwd):
            warnings.append(f"Added {GITIGNORE_ENTRY} to .gitignore")
        if fallback_to_temp:
            warnings.append(f".autofix not writable; using temp snapshot dir: {snapshot_dir}")
        if (
            detection.docker.detected
            and self.config.docker.safe_down
            and any(s.check_kind == CheckKind.TEST for s in executed)
        ):
            warnings.append(DOCKER_TEST_SERVICES_WARNING)

        summary = compute_summary(executed, detection, warnings)
        report = RunReport(
            run_id=self.run_id,
            command=self.mode.value,
            cwd=str(self.cwd),
            started_at=started_at,
            finished_at=utc_now(),
            flags=flags.to_dict(),
            detection=detection,
            steps=executed,
            summary=summary,
            storage={
                "report_dir": str(self.report_dir),
                "snapshot_dir": str(snapshot_dir),
                "fallback_to_temp": fallback_to_temp,
            },
        )

        self.telemetry.log(
            self.run_id,
            "run_completed",
            {
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "undo_coverage": summary.undo_coverage,
            },
        )
        return report
