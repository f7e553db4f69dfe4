"""Undo: restore the snapshots recorded in a previous run report.

Best-effort by nature. Only snapshotted paths are restored; package manager
caches, containers, images and volumes are never covered, and every entry
says so in its next best action.
"""

from __future__ import annotations

from pathlib import Path

from .report import read_run_report
from .safe_paths import PathEscapeError, resolve_within_root
from .snapshots import copy_path, decode_snapshot_name
from .telemetry import TelemetrySink
from .types import Step, UndoEntry, UndoResult

NOT_UNDOABLE_REASON = "not undoable or no snapshot"
EXTERNAL_STATE_NOTE = (
    "Undo only restores snapshotted project files; package caches, containers "
    "and other external state must be recovered manually"
)


def _next_best_action(step: Step, entry: UndoEntry) -> str | None:
    hint = step.first_hint
    if hint is not None:
        return hint.command or hint.action
    if step.irreversible:
        reason = step.irreversible_reason or "no snapshot can restore it"
        return f"Step '{step.id}' is irreversible ({reason}); {EXTERNAL_STATE_NOTE}"
    if entry.skipped or entry.missing_snapshot or entry.failed:
        return EXTERNAL_STATE_NOTE
    return None


def undo_step(step: Step, cwd: Path) -> UndoEntry:
    """Restore one step's snapshots, containing every target inside ``cwd``."""
    entry = UndoEntry(step_id=step.id, snapshot_paths=list(step.snapshot_paths))

    if not step.undoable or not step.snapshot_paths:
        entry.skipped.append(NOT_UNDOABLE_REASON)
        entry.next_best_action = _next_best_action(step, entry)
        return entry

    for snap in step.snapshot_paths:
        snap_path = Path(snap)
        if not snap_path.exists() and not snap_path.is_symlink():
            entry.missing_snapshot.append(snap)
            continue

        relative = decode_snapshot_name(snap_path.name)
        try:
            target = resolve_within_root(cwd, relative)
        except PathEscapeError:
            entry.failed.append(
                f"{relative} (blocked: path traversal outside project root)"
            )
            continue

        try:
            copy_path(snap_path, target)
        except OSError as e:
            entry.failed.append(f"{target} (restore failed: {e.strerror or e})")
            continue
        entry.restored.append(str(target))

    entry.next_best_action = _next_best_action(step, entry)
    return entry


def undo_latest(
    report_path: Path | str,
    cwd: Path | str,
    telemetry: TelemetrySink | None = None,
) -> UndoResult:
    """
    Reverse the snapshots recorded in a persisted run report.

    Args:
        report_path: Path to the report (usually ``<report-dir>/latest.json``)
        cwd: Project root; every restore target must stay inside it
        telemetry: Optional sink for per-entry events

    Returns:
        UndoResult with the report (None when missing) and per-step entries
        in the report's step order
    """
    report = read_run_report(report_path)
    if report is None:
        return UndoResult(report=None, entries=[])

    root = Path(cwd)
    entries: list[UndoEntry] = []
    for step in report.steps:
        entry = undo_step(step, root)
        entries.append(entry)
        if telemetry is not None:
            telemetry.log(report.run_id, "undo_entry", entry.to_dict())

    return UndoResult(report=report, entries=entries)
