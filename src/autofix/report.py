"""Run reports: ids, summaries, persistence and text rendering."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path

from .types import Detection, RunReport, RunSummary, Step, StepStatus

LATEST_REPORT = "latest.json"


def make_run_id() -> str:
    """Unique per invocation: UTC timestamp plus random suffix."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{stamp}-{uuid.uuid4().hex[:6]}"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def summarize_detection(detection: Detection) -> list[str]:
    out: list[str] = []
    if detection.node.detected:
        out.append("Node")
    if detection.python.detected:
        out.append("Python")
    if detection.docker.detected:
        out.append("Docker Compose")
    if not out:
        out.append("No supported project type detected")
    return out


def suggest_next_action(detection: Detection) -> str:
    if detection.node.detected:
        return "npm run dev"
    if detection.python.detected:
        return "python -m pytest -q"
    if detection.docker.detected:
        return "docker compose ps"
    return "Review project setup and rerun autofix doctor"


def compute_summary(steps: list[Step], detection: Detection, warnings: list[str]) -> RunSummary:
    succeeded = sum(1 for s in steps if s.status == StepStatus.SUCCESS)
    failed = sum(1 for s in steps if s.status in (StepStatus.FAILED, StepStatus.PARTIAL))
    skipped = sum(
        1
        for s in steps
        if s.status in (StepStatus.SKIPPED, StepStatus.PROPOSED, StepStatus.PLANNED)
    )
    irreversible = [
        s.id
        for s in steps
        if s.irreversible
        and s.status in (StepStatus.SUCCESS, StepStatus.PROPOSED, StepStatus.PLANNED)
    ]

    return RunSummary(
        detected_environment=summarize_detection(detection),
        actions=[f"{s.status.value}: {s.title}" for s in steps],
        succeeded=succeeded,
        failed=failed,
        skipped=skipped,
        next_best_action=suggest_next_action(detection),
        undo_coverage="partial" if irreversible else "full",
        irreversible_step_ids=irreversible,
        warnings=list(warnings),
    )


def write_run_report(report: RunReport, report_dir: Path | str) -> tuple[Path, Path]:
    """Persist the report under its run id and as ``latest.json``."""
    report_dir = Path(report_dir)
    report_dir.mkdir(parents=True, exist_ok=True)
    body = json.dumps(report.to_dict(), indent=2, ensure_ascii=False)

    run_report_path = report_dir / f"{report.run_id}.json"
    latest_path = report_dir / LATEST_REPORT
    run_report_path.write_text(body, encoding="utf-8")
    latest_path.write_text(body, encoding="utf-8")
    return run_report_path, latest_path


def read_run_report(report_path: Path | str) -> RunReport | None:
    """Load a persisted report. A missing file is None; bad JSON raises."""
    report_path = Path(report_path)
    if not report_path.exists():
        return None
    with open(report_path, encoding="utf-8") as f:
        data = json.load(f)
    return RunReport.from_dict(data)


_STATUS_MARKS = {
    StepStatus.SUCCESS: "✓",
    StepStatus.FAILED: "✗",
    StepStatus.PARTIAL: "~",
    StepStatus.PROPOSED: "?",
    StepStatus.PLANNED: "•",
    StepStatus.SKIPPED: "-",
    StepStatus.RUNNING: ">",
}


def render_summary(report: RunReport) -> str:
    """Human-readable multi-section summary."""
    s = report.summary
    lines = ["Detected environment", f"- {', '.join(s.detected_environment)}"]
    for issue in report.detection.issues:
        lines.append(f"  ! {issue}")

    lines.append("")
    lines.append("Plan/Actions")
    if not report.steps:
        lines.append("- Nothing to do")
    for step in report.steps:
        mark = _STATUS_MARKS.get(step.status, " ")
        line = f"{mark} [{step.status.value}] {step.title}"
        if step.destructive:
            line += " (destructive)"
        lines.append(line)
        if step.proposed_reason:
            lines.append(f"    reason: {step.proposed_reason}")
        if step.error:
            lines.append(f"    error: {step.error}")

    lines.append("")
    lines.append("Results")
    lines.append(f"- Succeeded: {s.succeeded}, Failed: {s.failed}, Skipped: {s.skipped}")
    lines.append(f"- Undo coverage: {s.undo_coverage}")
    if s.irreversible_step_ids:
        lines.append(f"- Irreversible: {', '.join(s.irreversible_step_ids)}")
    for warning in s.warnings:
        lines.append(f"- Warning: {warning}")

    lines.append("")
    lines.append("Next best action")
    lines.append(f"- {s.next_best_action}")
    return "\n".join(lines)


def render_quiet_summary(report: RunReport) -> str:
    s = report.summary
    return (
        f"autofix {report.command}: {s.succeeded} succeeded, {s.failed} failed, "
        f"{s.skipped} skipped (run {report.run_id})"
    )
