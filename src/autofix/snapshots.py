"""Pre-mutation snapshots.

Layout: ``<snapshot-root>/<run-id>/<step-id>/<encoded-relative-path>``.

The encoded name is the source's relative path with every separator
(``/``, ``\\`` and ``:``) replaced by ``_``. Undo reverses this from the
basename alone, so encoding and decoding must change together.
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path

PLACEHOLDER = "_"
_SEPARATORS_RE = re.compile(r"[\\/:]")


def encode_snapshot_name(relative_path: str) -> str:
    return _SEPARATORS_RE.sub(PLACEHOLDER, relative_path)


def decode_snapshot_name(name: str) -> str:
    """Recover the original relative path from a snapshot basename.

    Lossy for names that legitimately contain ``_``.
    """
    return name.replace(PLACEHOLDER, os.sep)


def copy_path(source: Path, dest: Path) -> None:
    """Copy a file or directory tree over ``dest``, creating parents."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir() and not source.is_symlink():
        if dest.exists() and not dest.is_dir():
            dest.unlink()
        shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)
    else:
        if dest.is_dir() and not dest.is_symlink():
            shutil.rmtree(dest)
        shutil.copy2(source, dest, follow_symlinks=False)


def snapshot_paths_for_step(
    cwd: Path | str,
    snapshot_root: Path | str,
    step_id: str,
    candidates: list[str],
) -> list[str]:
    """
    Copy each existing candidate into the step's snapshot directory.

    Args:
        cwd: Project root the candidates are relative to
        snapshot_root: Run-level snapshot directory (already keyed by run id)
        step_id: Step identifier; owns its own subdirectory
        candidates: Relative source paths; missing ones are skipped

    Returns:
        Destination paths actually created, in candidate order
    """
    cwd = Path(cwd)
    step_dir = Path(snapshot_root) / step_id
    created: list[str] = []

    for candidate in candidates:
        source = cwd / candidate
        if not source.exists() and not source.is_symlink():
            continue
        dest = step_dir / encode_snapshot_name(candidate)
        copy_path(source, dest)
        created.append(str(dest))

    return created
