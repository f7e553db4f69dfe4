"""Python virtual environment and dependency repair steps."""

from __future__ import annotations

from ..config import AutofixConfig
from ..safety import is_safe_path, shell_quote
from ..types import Detection, Phase, RunFlags, Step, Subsystem, UndoHint

VSCODE_SETTINGS = ".vscode/settings.json"

# Merges python.defaultInterpreterPath into the workspace settings; the venv
# path arrives as argv[1] so it never becomes part of the program text.
_VSCODE_SYNC_SCRIPT = """\
import json, os, sys
path = '.vscode/settings.json'
os.makedirs('.vscode', exist_ok=True)
try:
    with open(path, encoding='utf-8') as f:
        settings = json.load(f)
except (OSError, ValueError):
    settings = {}
if not isinstance(settings, dict):
    settings = {}
settings['python.defaultInterpreterPath'] = sys.argv[1]
with open(path, 'w', encoding='utf-8') as f:
    json.dump(settings, f, indent=2)
"""


def install_command(prefer: str, has_requirements: bool) -> str:
    target = "-r requirements.txt" if has_requirements else "-e ."
    if prefer == "uv":
        return f"uv pip install {target}"
    if prefer == "poetry":
        return "poetry install"
    if prefer == "pipenv":
        return "pipenv install"
    return f"pip install {target}"


def _python_step(step_id: str, title: str, rationale: str, commands: list[str], **kwargs) -> Step:
    return Step(
        id=step_id,
        title=title,
        subsystem=Subsystem.PYTHON,
        phase=Phase.PYTHON,
        rationale=rationale,
        commands=commands,
        **kwargs,
    )


def build_python_steps(detection: Detection, config: AutofixConfig, flags: RunFlags) -> list[Step]:
    py = detection.python
    if not py.detected:
        return []

    venv = config.python.venv_path
    if not venv or not is_safe_path(venv) or ".." in venv:
        step = _python_step(
            step_id="python-venv-path-rejected",
            title="Python virtual environment path rejected",
            rationale="The configured venv_path would be interpolated into shell commands.",
            commands=[],
        )
        step.propose(f"unsafe venv_path {venv!r} rejected; fix python.venv_path in .autofix.yml")
        return [step]

    quoted_venv = shell_quote(venv)
    install = install_command(config.python.install.prefer, py.has_requirements)
    steps: list[Step] = []

    if not py.venv_exists:
        steps.append(
            _python_step(
                step_id="python-create-venv",
                title="Create Python virtual environment",
                rationale="Python project detected without configured virtual environment.",
                commands=[f"python3 -m venv {quoted_venv}"],
            )
        )

    if py.has_requirements or py.has_pyproject:
        steps.append(
            _python_step(
                step_id="python-install-deps",
                title="Install Python dependencies",
                rationale="Dependency refresh to resolve environment drift.",
                commands=[install],
            )
        )

    if flags.deep:
        steps.append(
            _python_step(
                step_id="python-reset-venv",
                title="IRREVERSIBLE: Reset Python virtual environment",
                rationale="Deep cleanup for persistent Python environment drift.",
                commands=[f"rm -rf {quoted_venv}", f"python3 -m venv {quoted_venv}"],
                destructive=True,
                irreversible=True,
                irreversible_reason="cannot restore environment state fully",
                undo_hints=[UndoHint(action="Reinstall dependencies", command=install)],
            )
        )

    steps.append(
        _python_step(
            step_id="python-vscode-sync",
            title="Sync Python virtual environment with VS Code",
            rationale="VS Code needs the project venv as its interpreter to avoid false lint errors.",
            commands=[f"python3 -c {shell_quote(_VSCODE_SYNC_SCRIPT)} {quoted_venv}"],
            undoable=True,
            snapshot_paths=[VSCODE_SETTINGS],
            undo_hints=[UndoHint(action=f"Restore {VSCODE_SETTINGS}")],
        )
    )

    return steps
