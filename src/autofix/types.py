"""Core data types for the autofix plan/execute/undo pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any


class StepStatus(str, Enum):
    PLANNED = "planned"
    PROPOSED = "proposed"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    PARTIAL = "partial"


# Forward-only lifecycle. Anything not listed here is an illegal move.
ALLOWED_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PLANNED: frozenset({StepStatus.RUNNING, StepStatus.PROPOSED, StepStatus.SKIPPED}),
    StepStatus.PROPOSED: frozenset(),
    StepStatus.RUNNING: frozenset({StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.PARTIAL}),
    StepStatus.SUCCESS: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
    StepStatus.PARTIAL: frozenset(),
}


class InvalidTransition(ValueError):
    """Raised when a step is moved backwards or sideways in its lifecycle."""


class Phase(IntEnum):
    """Plan phases in execution order."""

    ENVIRONMENT = 0
    ENGINES = 1
    PORTS = 2
    DOCKER = 3
    NODE = 4
    PYTHON = 5
    CHECKS = 6


class Subsystem(str, Enum):
    ENVIRONMENT = "environment"
    ENGINES = "engines"
    NODE = "node"
    PYTHON = "python"
    DOCKER = "docker"
    CHECKS = "checks"
    META = "meta"


class CheckKind(str, Enum):
    FORMAT = "format"
    LINT = "lint"
    TEST = "test"

    @property
    def order(self) -> int:
        return CHECK_KIND_ORDER.index(self)


CHECK_KIND_ORDER = [CheckKind.FORMAT, CheckKind.LINT, CheckKind.TEST]


class RunMode(str, Enum):
    RUN = "run"
    PLAN = "plan"
    DOCTOR = "doctor"
    REPORT = "report"
    UNDO = "undo"

    @property
    def is_dry(self) -> bool:
        return self in (RunMode.PLAN, RunMode.DOCTOR)


@dataclass
class RunFlags:
    """User-supplied switches for one invocation."""

    dry_run: bool = False
    deep: bool = False
    approve: bool = False
    force_fresh: bool = False
    focus: str = "all"  # "node", "python", "docker", "all"
    checks: list[str] | None = None
    kill_ports: list[int] | None = None  # None: no port cleanup; []: configured ports
    verbose: bool = False
    quiet: bool = False
    json: bool = False
    report_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UndoHint:
    action: str
    command: str | None = None


@dataclass
class Step:
    """A unit of planned work produced by a subsystem builder."""

    id: str
    title: str
    subsystem: Subsystem
    phase: Phase
    rationale: str = ""
    commands: list[str] = field(default_factory=list)
    destructive: bool = False
    irreversible: bool = False
    undoable: bool = False
    irreversible_reason: str | None = None
    undo_hints: list[UndoHint] = field(default_factory=list)
    # Relative candidates from the builder; replaced with concrete snapshot
    # locations by the executor.
    snapshot_paths: list[str] = field(default_factory=list)
    check_kind: CheckKind | None = None
    ports: list[int] = field(default_factory=list)
    status: StepStatus = StepStatus.PLANNED
    output: str = ""
    error: str | None = None
    proposed_reason: str | None = None
    skipped_reason: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Step id must be a non-empty string")
        self.subsystem = Subsystem(self.subsystem)
        self.phase = Phase(self.phase)
        self.status = StepStatus(self.status)
        if self.check_kind is not None:
            self.check_kind = CheckKind(self.check_kind)
        if self.irreversible and self.undoable:
            raise ValueError(f"Step {self.id!r} cannot be both irreversible and undoable")

    def transition(self, to: StepStatus) -> None:
        """Move to ``to``, refusing any transition the lifecycle does not allow."""
        to = StepStatus(to)
        if to not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Step {self.id!r}: illegal transition {self.status.value} -> {to.value}"
            )
        self.status = to

    def propose(self, reason: str) -> None:
        self.transition(StepStatus.PROPOSED)
        self.proposed_reason = reason

    @property
    def first_hint(self) -> UndoHint | None:
        return self.undo_hints[0] if self.undo_hints else None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["subsystem"] = self.subsystem.value
        data["phase"] = self.phase.name.lower()
        data["status"] = self.status.value
        data["check_kind"] = self.check_kind.value if self.check_kind else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Step:
        payload = dict(data)
        payload["phase"] = Phase[str(payload.get("phase", "environment")).upper()]
        payload["undo_hints"] = [UndoHint(**h) for h in payload.get("undo_hints") or []]
        payload["snapshot_paths"] = list(payload.get("snapshot_paths") or [])
        payload["commands"] = list(payload.get("commands") or [])
        payload["ports"] = [int(p) for p in payload.get("ports") or []]
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in payload.items() if k in known})


@dataclass
class NodeDetection:
    detected: bool = False
    package_manager: str = "unknown"  # "npm", "pnpm", "yarn", "unknown"
    has_node_modules: bool = False
    has_next: bool = False
    has_vite: bool = False
    lockfiles: list[str] = field(default_factory=list)
    lockfile_corrupted: bool = False
    package_scripts: list[str] = field(default_factory=list)


@dataclass
class PythonDetection:
    detected: bool = False
    has_pyproject: bool = False
    has_requirements: bool = False
    venv_path: str = ".venv"
    venv_exists: bool = False


@dataclass
class DockerDetection:
    detected: bool = False
    compose_file: str | None = None


@dataclass
class EnvironmentDetection:
    has_env: bool = False
    has_env_example: bool = False


@dataclass
class EngineDetection:
    node_version_file: str | None = None
    python_version_file: str | None = None
    node_version: str | None = None  # Host `node --version`, when available


@dataclass
class Detection:
    """Resolved environment detection consumed by the plan builders."""

    node: NodeDetection = field(default_factory=NodeDetection)
    python: PythonDetection = field(default_factory=PythonDetection)
    docker: DockerDetection = field(default_factory=DockerDetection)
    environment: EnvironmentDetection = field(default_factory=EnvironmentDetection)
    engines: EngineDetection = field(default_factory=EngineDetection)
    issues: list[str] = field(default_factory=list)

    @property
    def stack_count(self) -> int:
        return sum([self.node.detected, self.python.detected, self.docker.detected])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Detection:
        data = data or {}
        return cls(
            node=NodeDetection(**data.get("node", {})),
            python=PythonDetection(**data.get("python", {})),
            docker=DockerDetection(**data.get("docker", {})),
            environment=EnvironmentDetection(**data.get("environment", {})),
            engines=EngineDetection(**data.get("engines", {})),
            issues=list(data.get("issues", [])),
        )


@dataclass
class RunSummary:
    detected_environment: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    next_best_action: str = ""
    undo_coverage: str = "full"  # "full" or "partial"
    irreversible_step_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class RunReport:
    """The complete record of one invocation. Sole input to undo."""

    run_id: str
    command: str
    cwd: str
    started_at: str
    finished_at: str | None = None
    flags: dict[str, Any] = field(default_factory=dict)
    detection: Detection = field(default_factory=Detection)
    steps: list[Step] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)
    storage: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "command": self.command,
            "cwd": self.cwd,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "flags": self.flags,
            "detection": self.detection.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
            "summary": asdict(self.summary),
            "storage": self.storage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunReport:
        summary_fields = RunSummary.__dataclass_fields__.keys()
        return cls(
            run_id=str(data.get("run_id", "")),
            command=str(data.get("command", "run")),
            cwd=str(data.get("cwd", "")),
            started_at=str(data.get("started_at", "")),
            finished_at=data.get("finished_at"),
            flags=dict(data.get("flags") or {}),
            detection=Detection.from_dict(data.get("detection")),
            steps=[Step.from_dict(s) for s in data.get("steps") or []],
            summary=RunSummary(
                **{k: v for k, v in (data.get("summary") or {}).items() if k in summary_fields}
            ),
            storage=dict(data.get("storage") or {}),
        )


@dataclass
class UndoEntry:
    """Per-step outcome of an undo attempt. Never written back into the report."""

    step_id: str
    snapshot_paths: list[str] = field(default_factory=list)
    restored: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    missing_snapshot: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    next_best_action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UndoResult:
    report: RunReport | None
    entries: list[UndoEntry] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, int]:
        return {
            "restored": sum(len(e.restored) for e in self.entries),
            "skipped": sum(len(e.skipped) for e in self.entries),
            "missing_snapshot": sum(len(e.missing_snapshot) for e in self.entries),
            "failed": sum(len(e.failed) for e in self.entries),
        }
