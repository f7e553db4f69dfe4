"""Step executor: gate, snapshot, run, post-check and classify each step.

Per step:
1. Dry modes (plan, doctor, --dry-run) record the planned status and never
   execute anything.
2. Destructive steps need --deep/--approve, or an interactive confirmation.
   Otherwise they end as ``proposed`` with the reason attached.
3. Destructive steps, and steps that declare snapshot candidates, are
   snapshotted before the first command runs.
4. Commands run strictly in order; the first failure stops the step.
5. Port cleanup is only a success once the ports are observed free.
6. Failures are classified; the run continues with the next step.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click

from .approval import ConfirmationHandler
from .classify import DEFAULT_CLASSIFIERS, FailureClassifier, classify_failure
from .config import ExecutorConfig
from .ports import PortProbe, extract_ports, lsof_probe, verify_ports_released
from .redaction import redact_text
from .safety import can_auto_run_destructive, should_prompt_for_destructive
from .shell import run_shell_command_async
from .snapshots import snapshot_paths_for_step
from .subsystems.node import LOCKFILES
from .telemetry import TelemetrySink
from .types import Phase, RunFlags, RunMode, Step, StepStatus

NEEDS_APPROVAL_REASON = "Needs explicit approval"
NON_INTERACTIVE_REASON = (
    "Non-interactive mode: destructive step skipped (needs --deep or --approve)"
)


@dataclass
class RunContext:
    """Everything a run needs, passed explicitly instead of read from globals."""

    mode: RunMode
    cwd: Path
    run_id: str
    flags: RunFlags = field(default_factory=RunFlags)
    interactive: bool = False
    snapshot_dir: Path | None = None
    confirmer: ConfirmationHandler = field(default_factory=ConfirmationHandler)
    telemetry: TelemetrySink = field(default_factory=TelemetrySink.disabled)
    settings: ExecutorConfig = field(default_factory=ExecutorConfig)
    classifiers: tuple[FailureClassifier, ...] = DEFAULT_CLASSIFIERS
    port_probe: PortProbe | None = None

    def __post_init__(self) -> None:
        self.cwd = Path(self.cwd)
        self.mode = RunMode(self.mode)
        if self.snapshot_dir is None:
            self.snapshot_dir = self.cwd / ".autofix" / "snapshots"

    @property
    def is_dry(self) -> bool:
        return self.mode.is_dry or self.flags.dry_run

    @property
    def run_snapshot_root(self) -> Path:
        return Path(self.snapshot_dir) / self.run_id


def snapshot_candidates(step: Step) -> list[str]:
    """Relative paths to snapshot before ``step`` mutates them."""
    if step.snapshot_paths:
        return list(step.snapshot_paths)
    if "lockfiles" in step.id:
        return list(LOCKFILES)
    if "node-modules" in step.id:
        return ["node_modules"]
    return []


class StepExecutor:
    """Runs an ordered plan under a ``RunContext``."""

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    async def execute(self, steps: list[Step]) -> list[Step]:
        """
        Execute steps in the given order.

        Args:
            steps: Plan from the builders; not modified

        Returns:
            New Step objects carrying final status, output and snapshots
        """
        executed: list[Step] = []
        for step in steps:
            current = copy.deepcopy(step)
            await self._execute_one(current)
            executed.append(current)
        return executed

    async def _execute_one(self, step: Step) -> None:
        ctx = self.ctx
        if ctx.flags.verbose:
            click.echo(f"[phase:{step.phase.name.lower()}] {step.title}")

        # Builders already proposed it (policy rejection or advisory only).
        if step.status == StepStatus.PROPOSED:
            self._log("step_proposed", step, reason=step.proposed_reason)
            return

        if ctx.is_dry:
            return

        if not await self._gate(step):
            self._log("step_proposed", step, reason=step.proposed_reason)
            return

        step.transition(StepStatus.RUNNING)
        self._log("step_started", step)

        candidates = snapshot_candidates(step)
        if step.destructive or step.snapshot_paths:
            try:
                step.snapshot_paths = snapshot_paths_for_step(
                    ctx.cwd, ctx.run_snapshot_root, step.id, candidates
                )
            except OSError as e:
                # No command runs without its snapshot.
                step.snapshot_paths = []
                step.error = f"snapshot failed: {e}"
                step.transition(StepStatus.FAILED)
                self._log("step_completed", step, error=step.error)
                return
            self._log("snapshot_created", step, snapshot_paths=step.snapshot_paths)

        failed = False
        command_outputs: list[str] = []
        for command in step.commands:
            if ctx.flags.verbose:
                click.echo(f"  > {command}")
            result = await run_shell_command_async(
                command,
                ctx.cwd,
                timeout_s=ctx.settings.command_timeout_seconds,
                max_output_bytes=ctx.settings.max_output_bytes,
            )
            command_outputs.append(f"$ {command}\n{result.stdout}{result.stderr}".strip())
            self.ctx.telemetry.log(
                ctx.run_id,
                "command_executed",
                {
                    "step_id": step.id,
                    "command": command,
                    "exit_code": result.code,
                    "duration_s": result.duration_s,
                    "stderr_head": redact_text(result.stderr),
                },
            )
            if ctx.flags.verbose:
                if result.stdout:
                    click.echo(result.stdout.rstrip())
                if result.stderr:
                    click.echo(result.stderr.rstrip(), err=True)
            if not result.success:
                failed = True
                break

        if not failed and step.phase == Phase.PORTS:
            ports = step.ports or extract_ports(step.commands)
            probe = ctx.port_probe or lsof_probe(ctx.cwd)
            check = await verify_ports_released(
                ports,
                probe,
                interval=ctx.settings.port_poll_interval_seconds,
                max_wait=ctx.settings.port_poll_max_seconds,
                cooldown=ctx.settings.port_release_cooldown_seconds,
            )
            if not check.ok:
                step.output = "\n\n".join(command_outputs)
                step.error = check.details
                step.transition(StepStatus.FAILED)
                self._log("step_completed", step, error=step.error)
                return
            command_outputs.append(check.details)

        step.output = "\n\n".join(command_outputs)
        if failed:
            step.error = classify_failure(step, step.output, ctx.classifiers)
            step.transition(StepStatus.FAILED)
        else:
            step.transition(StepStatus.SUCCESS)
        self._log("step_completed", step, error=step.error)

    async def _gate(self, step: Step) -> bool:
        """Destructive-action gate. Returns False when the step was proposed."""
        ctx = self.ctx
        if not step.destructive or can_auto_run_destructive(ctx.flags.deep, ctx.flags.approve):
            return True

        if should_prompt_for_destructive(
            step.destructive, ctx.flags.deep, ctx.flags.approve, ctx.interactive
        ):
            if await ctx.confirmer.confirm(f"Run destructive step: {step.title}?", step):
                return True
            step.propose(NEEDS_APPROVAL_REASON)
            return False

        step.propose(NON_INTERACTIVE_REASON)
        return False

    def _log(self, event_type: str, step: Step, **data: Any) -> None:
        self.ctx.telemetry.log(
            self.ctx.run_id,
            event_type,
            {"step_id": step.id, "status": step.status.value, **data},
        )


async def execute_steps(ctx: RunContext, steps: list[Step]) -> list[Step]:
    """Convenience wrapper around ``StepExecutor(ctx).execute(steps)``."""
    return await StepExecutor(ctx).execute(steps)
