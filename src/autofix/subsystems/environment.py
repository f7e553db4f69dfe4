"""Environment (.env) synchronisation steps."""

from __future__ import annotations

import re
from pathlib import Path

from ..safety import shell_quote
from ..types import Detection, Phase, Step, Subsystem, UndoHint

_ENV_KEY_INVALID_RE = re.compile(r"[^A-Za-z0-9_]")


def sanitize_env_key(key: str) -> str:
    """Keep only ``[A-Za-z0-9_]``."""
    return _ENV_KEY_INVALID_RE.sub("", key)


def parse_env_keys(path: Path) -> list[str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []

    keys: list[str] = []
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        idx = stripped.find("=")
        if idx > 0:
            key = sanitize_env_key(stripped[:idx].strip().removeprefix("export "))
            if key and key not in keys:
                keys.append(key)
    return keys


def find_missing_keys(env_path: Path, example_path: Path) -> list[str]:
    present = set(parse_env_keys(env_path))
    return [k for k in parse_env_keys(example_path) if k not in present]


def build_env_steps(cwd: Path | str, detection: Detection) -> list[Step]:
    if not detection.environment.has_env_example:
        return []

    cwd = Path(cwd)
    env_path = cwd / ".env"
    example_path = cwd / ".env.example"

    if not detection.environment.has_env:
        return [
            Step(
                id="env-sync-copy-example",
                title="Copy .env.example to .env",
                subsystem=Subsystem.ENVIRONMENT,
                phase=Phase.ENVIRONMENT,
                rationale=".env is missing but .env.example exists.",
                commands=[f"cp {shell_quote(str(example_path))} {shell_quote(str(env_path))}"],
                undo_hints=[UndoHint(action="Delete .env", command=f"rm -f {shell_quote(str(env_path))}")],
            )
        ]

    missing = find_missing_keys(env_path, example_path)
    if not missing:
        return []

    appends = " && ".join(
        f"echo {shell_quote(f'{key}=')} >> {shell_quote(str(env_path))}" for key in missing
    )
    return [
        Step(
            id="env-sync-append-missing",
            title=f"Append {len(missing)} missing key(s) to .env",
            subsystem=Subsystem.ENVIRONMENT,
            phase=Phase.ENVIRONMENT,
            rationale=f".env is out of sync with .env.example (missing keys: {', '.join(missing)}).",
            commands=[appends],
            undoable=True,
            snapshot_paths=[".env"],
            undo_hints=[UndoHint(action="Restore original .env")],
        )
    ]
