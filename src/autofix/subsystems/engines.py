"""Engine version drift checks."""

from __future__ import annotations

import re
from pathlib import Path

from ..types import Detection, Phase, Step, Subsystem

_VERSION_RE = re.compile(r"\d+(\.\d+)*")


def _read_version_file(cwd: Path, name: str) -> str | None:
    try:
        value = (cwd / name).read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return None
    return value or None


def _major(version: str) -> str:
    return version.strip().removeprefix("v").split(".")[0]


def build_engine_steps(cwd: Path | str, detection: Detection) -> list[Step]:
    cwd = Path(cwd)
    steps: list[Step] = []
    engines = detection.engines

    if detection.node.detected and engines.node_version_file and engines.node_version:
        desired = _read_version_file(cwd, engines.node_version_file)
        if desired:
            want, have = _major(desired), _major(engines.node_version)
            if want and want != have:
                steps.append(
                    Step(
                        id="engines-node-version-mismatch",
                        title=f"Node version drift: expected ~{want}, running {engines.node_version}",
                        subsystem=Subsystem.ENGINES,
                        phase=Phase.ENGINES,
                        rationale=f"Host Node.js drifts from {engines.node_version_file}.",
                        status="proposed",
                        proposed_reason=f"Run `nvm use` or switch Node to v{want}.x",
                    )
                )

    if detection.python.detected and engines.python_version_file:
        desired = _read_version_file(cwd, engines.python_version_file)
        if desired and _VERSION_RE.fullmatch(desired):
            script = (
                "import sys; v='.'.join(map(str, sys.version_info[:2])); "
                f"sys.exit(0 if v.startswith('{desired}') or '{desired}'.startswith(v) else 1)"
            )
            steps.append(
                Step(
                    id="engines-python-version-mismatch",
                    title=f"Verify host Python matches {desired}",
                    subsystem=Subsystem.ENGINES,
                    phase=Phase.ENGINES,
                    rationale=f"Host Python should align with {engines.python_version_file}.",
                    commands=[f'python3 -c "{script}"'],
                )
            )
        elif desired:
            steps.append(
                Step(
                    id="engines-python-version-mismatch",
                    title="Verify host Python version",
                    subsystem=Subsystem.ENGINES,
                    phase=Phase.ENGINES,
                    rationale=f"{engines.python_version_file} does not hold a plain version number.",
                    status="proposed",
                    proposed_reason=f"Unrecognized version string in {engines.python_version_file}; check it manually",
                )
            )

    return steps
