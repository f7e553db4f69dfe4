"""Lint, format and test check steps."""

from __future__ import annotations

import re

from ..config import VALID_CHECK_KINDS, AutofixConfig
from ..safety import is_safe_command
from ..types import CheckKind, Detection, Phase, RunFlags, Step, Subsystem

_ID_UNSAFE_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)

# package.json script -> command
NODE_SCRIPT_COMMANDS = {
    CheckKind.LINT: ("lint", "npm run lint"),
    CheckKind.FORMAT: ("format", "npm run format"),
    CheckKind.TEST: ("test", "npm test"),
}


def selected_check_kinds(config: AutofixConfig, flags: RunFlags) -> list[CheckKind]:
    requested = flags.checks if flags.checks is not None else config.checks.default
    return [CheckKind(k) for k in requested if k in VALID_CHECK_KINDS]


def _node_checks(detection: Detection, kinds: list[CheckKind]) -> list[Step]:
    if not detection.node.detected:
        return []
    steps: list[Step] = []
    for kind in kinds:
        script, command = NODE_SCRIPT_COMMANDS[kind]
        if script not in detection.node.package_scripts:
            continue
        steps.append(
            Step(
                id=f"check-node-{kind.value}",
                title=f"Run Node {kind.value} check",
                subsystem=Subsystem.CHECKS,
                phase=Phase.CHECKS,
                rationale=f"package.json defines a '{script}' script.",
                commands=[command],
                check_kind=kind,
            )
        )
    return steps


def _python_check(kind: CheckKind, command: str) -> Step:
    step = Step(
        id=f"check-python-{kind.value}-{_ID_UNSAFE_RE.sub('-', command)}",
        title=f"Run Python {kind.value}: {command}",
        subsystem=Subsystem.CHECKS,
        phase=Phase.CHECKS,
        rationale=f"Configured Python {kind.value} check.",
        check_kind=kind,
    )
    decision = is_safe_command(command)
    if decision.safe:
        step.commands = [command]
    else:
        step.propose(decision.reason)
    return step


def _python_checks(detection: Detection, config: AutofixConfig, kinds: list[CheckKind]) -> list[Step]:
    if not detection.python.detected:
        return []
    tools = config.python.tools
    by_kind = {
        CheckKind.FORMAT: tools.format,
        CheckKind.LINT: tools.lint,
        CheckKind.TEST: tools.test,
    }
    return [_python_check(kind, cmd) for kind in kinds for cmd in by_kind[kind]]


def build_check_steps(
    detection: Detection,
    config: AutofixConfig,
    flags: RunFlags,
    stack: str | None = None,
) -> list[Step]:
    """
    Plan check steps for the selected kinds.

    Python tool commands are validated here again even though the config
    loader already filtered them; a command that fails validation becomes a
    proposed step with no commands.

    Args:
        detection: Environment detection for the project
        config: Sanitized configuration
        flags: Invocation flags (--checks overrides checks.default)
        stack: "node" or "python" to limit to one stack; None for both
    """
    kinds = selected_check_kinds(config, flags)
    steps: list[Step] = []
    if stack in (None, "node"):
        steps.extend(_node_checks(detection, kinds))
    if stack in (None, "python"):
        steps.extend(_python_checks(detection, config, kinds))
    return steps
