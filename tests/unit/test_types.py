"""Unit tests for core data types."""

import pytest

from autofix.types import (
    CheckKind,
    Detection,
    InvalidTransition,
    Phase,
    RunFlags,
    RunMode,
    RunReport,
    Step,
    StepStatus,
    Subsystem,
    UndoEntry,
    UndoHint,
    UndoResult,
)


def make_step(**kwargs) -> Step:
    defaults = dict(id="s1", title="Step", subsystem="node", phase=Phase.NODE, commands=["true"])
    defaults.update(kwargs)
    return Step(**defaults)


class TestStep:
    """Tests for Step construction and lifecycle."""

    def test_coerces_enums(self):
        step = make_step(subsystem="python", phase=5, status="proposed", check_kind="lint")
        assert step.subsystem is Subsystem.PYTHON
        assert step.phase is Phase.PYTHON
        assert step.status is StepStatus.PROPOSED
        assert step.check_kind is CheckKind.LINT

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError, match="non-empty"):
            make_step(id="")

    def test_irreversible_and_undoable_rejected(self):
        with pytest.raises(ValueError, match="irreversible and undoable"):
            make_step(irreversible=True, undoable=True)

    def test_forward_transitions(self):
        step = make_step()
        step.transition(StepStatus.RUNNING)
        step.transition(StepStatus.SUCCESS)
        assert step.status == StepStatus.SUCCESS

    @pytest.mark.parametrize(
        "path",
        [
            [StepStatus.SUCCESS],
            [StepStatus.RUNNING, StepStatus.PLANNED],
            [StepStatus.RUNNING, StepStatus.SUCCESS, StepStatus.FAILED],
            [StepStatus.PROPOSED, StepStatus.RUNNING],
        ],
    )
    def test_illegal_transitions_raise(self, path):
        step = make_step()
        with pytest.raises(InvalidTransition):
            for status in path:
                step.transition(status)

    def test_propose_records_reason(self):
        step = make_step()
        step.propose("because")
        assert step.status == StepStatus.PROPOSED
        assert step.proposed_reason == "because"

    def test_first_hint(self):
        assert make_step().first_hint is None
        hint = UndoHint(action="Reinstall", command="pip install -e .")
        assert make_step(undo_hints=[hint]).first_hint == hint

    def test_dict_round_trip(self):
        step = make_step(
            phase=Phase.CHECKS,
            subsystem="checks",
            check_kind=CheckKind.TEST,
            undo_hints=[UndoHint(action="x", command="y")],
            ports=[3000],
        )
        data = step.to_dict()
        assert data["phase"] == "checks"
        assert data["subsystem"] == "checks"
        assert data["status"] == "planned"
        assert data["check_kind"] == "test"
        assert Step.from_dict(data) == step

    def test_from_dict_ignores_unknown_keys(self):
        data = make_step().to_dict()
        data["future_field"] = 1
        assert Step.from_dict(data).id == "s1"


class TestEnums:
    """Tests for ordering enums."""

    def test_phase_order(self):
        assert [p.name for p in sorted(Phase)] == [
            "ENVIRONMENT", "ENGINES", "PORTS", "DOCKER", "NODE", "PYTHON", "CHECKS",
        ]

    def test_check_kind_order(self):
        assert CheckKind.FORMAT.order < CheckKind.LINT.order < CheckKind.TEST.order

    def test_dry_modes(self):
        assert RunMode.PLAN.is_dry and RunMode.DOCTOR.is_dry
        assert not RunMode.RUN.is_dry


class TestReport:
    """Tests for RunReport serialization."""

    def test_round_trip(self):
        report = RunReport(
            run_id="r1",
            command="run",
            cwd="/tmp/x",
            started_at="2026-01-01T00:00:00+00:00",
            flags=RunFlags(deep=True).to_dict(),
            steps=[make_step(status="proposed", proposed_reason="nope")],
        )
        restored = RunReport.from_dict(report.to_dict())
        assert restored == report
        assert restored.flags["deep"] is True

    def test_detection_from_empty(self):
        assert Detection.from_dict(None) == Detection()
        assert Detection().stack_count == 0


class TestUndoResult:
    """Tests for UndoResult totals."""

    def test_totals(self):
        result = UndoResult(
            report=None,
            entries=[
                UndoEntry(step_id="a", restored=["x", "y"], failed=["z"]),
                UndoEntry(step_id="b", skipped=["not undoable or no snapshot"], missing_snapshot=["m"]),
            ],
        )
        assert result.totals == {"restored": 2, "skipped": 1, "missing_snapshot": 1, "failed": 1}
