"""Node.js dependency and cache repair steps."""

from __future__ import annotations

import re

from ..config import AutofixConfig
from ..safety import is_safe_path, shell_quote
from ..types import Detection, Phase, RunFlags, Step, Subsystem, UndoHint

LOCKFILES = ["package-lock.json", "pnpm-lock.yaml", "yarn.lock"]

_ID_UNSAFE_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def choose_package_manager(detected: str, configured: str) -> str:
    if configured != "auto":
        return configured
    if detected == "unknown":
        return "npm"
    return detected


def _node_step(step_id: str, title: str, rationale: str, commands: list[str], **kwargs) -> Step:
    return Step(
        id=step_id,
        title=title,
        subsystem=Subsystem.NODE,
        phase=Phase.NODE,
        rationale=rationale,
        commands=commands,
        **kwargs,
    )


def _cache_dir_step(directory: str) -> Step:
    step = _node_step(
        step_id=f"node-clean-cache-{_ID_UNSAFE_RE.sub('-', directory) or 'empty'}",
        title=f"Clean cache directory {directory}" if directory else "Clean cache directory",
        rationale="Configured cache directory cleanup.",
        commands=[],
    )
    if not directory.strip():
        step.propose("no directory specified")
    elif not is_safe_path(directory) or ".." in directory:
        step.propose(f"unsafe cache directory {directory!r} rejected")
    else:
        step.commands = [f"rm -rf {shell_quote(directory)}"]
    return step


def build_node_steps(detection: Detection, config: AutofixConfig, flags: RunFlags) -> list[Step]:
    """
    Plan Node.js repairs.

    Args:
        detection: Environment detection for the project
        config: Sanitized configuration
        flags: Invocation flags (--deep, --force-fresh)

    Returns:
        Steps in NODE phase; empty when no package.json was found
    """
    node = detection.node
    if not node.detected:
        return []

    pm = choose_package_manager(node.package_manager, config.node.package_manager)
    install = f"{pm} install"
    steps: list[Step] = []

    if not node.has_node_modules:
        steps.append(
            _node_step(
                step_id="node-install-deps",
                title="Install Node dependencies",
                rationale="package.json found and node_modules appears missing.",
                commands=[install],
            )
        )

    if node.lockfile_corrupted:
        warning = _node_step(
            step_id="node-lockfile-corrupted",
            title="Lockfile appears corrupted",
            rationale="A lockfile failed to parse; frozen installs are likely to fail.",
            commands=[],
        )
        warning.propose("Regenerate the lockfile with --deep --force-fresh or fix it manually")
        steps.append(warning)

    if node.has_next and config.node.caches.next:
        steps.append(
            _node_step(
                step_id="node-clean-next-cache",
                title="Clean Next.js cache",
                rationale="Next.js cache can cause stale build/runtime state.",
                commands=["rm -rf .next"],
            )
        )

    if node.has_vite and config.node.caches.vite:
        steps.append(
            _node_step(
                step_id="node-clean-vite-cache",
                title="Clean Vite cache",
                rationale="Vite cache corruption is a common local issue.",
                commands=["rm -rf node_modules/.vite"],
            )
        )

    for directory in config.node.caches.directories:
        steps.append(_cache_dir_step(directory))

    if flags.deep and config.node.deep_cleanup.remove_node_modules:
        steps.append(
            _node_step(
                step_id="node-remove-node-modules",
                title="Remove node_modules for clean reinstall",
                rationale="Deep cleanup requested to resolve dependency drift.",
                commands=["rm -rf node_modules", install],
                destructive=True,
                # Snapshotted for inspection only; the encoded name "node_modules"
                # does not decode back to itself, so undo must not restore it.
                snapshot_paths=["node_modules"],
                undo_hints=[UndoHint(action="Reinstall Node dependencies", command=install)],
            )
        )

    if (flags.deep and config.node.deep_cleanup.remove_lockfile) or flags.force_fresh:
        steps.append(
            _node_step(
                step_id="node-remove-lockfiles",
                title="Remove lockfiles",
                rationale="Fresh dependency resolution requested.",
                commands=[f"rm -f {' '.join(LOCKFILES)}", install],
                destructive=True,
                undoable=True,
                snapshot_paths=list(LOCKFILES),
                undo_hints=[UndoHint(action="Restore lockfiles from snapshot")],
            )
        )

    return steps
