"""Plan assembly: collect builder output and order it by phase."""

from __future__ import annotations

from pathlib import Path

from .config import AutofixConfig
from .subsystems import (
    build_check_steps,
    build_docker_steps,
    build_engine_steps,
    build_env_steps,
    build_node_steps,
    build_port_steps,
    build_python_steps,
)
from .types import Detection, Phase, RunFlags, Step

FOCUS_CHOICES = ("node", "python", "docker", "all")

POLYGLOT_MINIMAL_WARNING = (
    "Non-interactive polyglot run defaulted to safe minimal set (ports + caches only)"
)
POLYGLOT_HEAVY_WARNING = (
    "Heavy polyglot plan detected. Use --approve for full deep multi-ecosystem cleanup."
)

_CACHE_MARKERS = ("clean-cache", "next-cache", "vite-cache")
_HEAVY_MARKERS = ("install-deps", "reset-venv", "remove-node-modules")


def _wants(flags: RunFlags, stack: str) -> bool:
    return flags.focus in ("all", stack)


def plan_sort_key(step: Step) -> tuple[int, int]:
    kind_order = step.check_kind.order if step.check_kind is not None else -1
    return int(step.phase), kind_order


def build_plan(
    cwd: Path | str,
    detection: Detection,
    config: AutofixConfig,
    flags: RunFlags,
) -> list[Step]:
    """
    Build the ordered plan for one run.

    Args:
        cwd: Project root
        detection: Environment detection
        config: Sanitized configuration
        flags: Invocation flags; ``focus`` limits which stacks contribute

    Returns:
        Steps ordered by phase, then by check kind (format, lint, test).
        Builder order is kept within each group.
    """
    steps: list[Step] = []
    steps.extend(build_env_steps(cwd, detection))
    steps.extend(build_engine_steps(cwd, detection))
    steps.extend(build_port_steps(flags, config))

    if _wants(flags, "docker"):
        steps.extend(build_docker_steps(detection, config, flags))
    if _wants(flags, "node"):
        steps.extend(build_node_steps(detection, config, flags))
        steps.extend(build_check_steps(detection, config, flags, stack="node"))
    if _wants(flags, "python"):
        steps.extend(build_python_steps(detection, config, flags))
        steps.extend(build_check_steps(detection, config, flags, stack="python"))

    # sorted() is stable
    return sorted(steps, key=plan_sort_key)


def _is_cache_cleanup(step: Step) -> bool:
    return any(marker in step.id for marker in _CACHE_MARKERS)


def _is_heavy(step: Step) -> bool:
    return step.phase == Phase.DOCKER or any(marker in step.id for marker in _HEAVY_MARKERS)


def apply_polyglot_guard(
    steps: list[Step],
    detection: Detection,
    flags: RunFlags,
    interactive: bool,
) -> tuple[list[Step], list[str]]:
    """Narrow or flag plans that touch several ecosystems at once."""
    warnings: list[str] = []
    if detection.stack_count < 2 or flags.focus != "all" or flags.approve:
        return steps, warnings

    if not interactive:
        warnings.append(POLYGLOT_MINIMAL_WARNING)
        kept = [s for s in steps if s.phase == Phase.PORTS or _is_cache_cleanup(s)]
        return kept, warnings

    if sum(1 for s in steps if _is_heavy(s)) > 2:
        warnings.append(POLYGLOT_HEAVY_WARNING)
    return steps, warnings
