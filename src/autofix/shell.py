"""Shell command execution.

Key properties:
- One command line runs through a single ``/bin/sh -c`` so `&&`, pipes and
  redirects in system-built commands keep working.
- No safety decisions are made here. Callers pass only validated or
  hard-coded command lines.
- Captured output is bounded; a non-zero exit is reported, never raised.
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO

DEFAULT_MAX_OUTPUT_BYTES = 4 * 1024 * 1024
TRUNCATION_MARKER = "\n...(truncated)"


@dataclass
class CommandResult:
    command: str
    success: bool
    code: int
    stdout: str
    stderr: str
    duration_s: float = 0.0


def _read_bounded(f: IO[bytes], max_bytes: int) -> str:
    f.seek(0)
    data = f.read(max_bytes + 1)
    truncated = len(data) > max_bytes
    text = data[:max_bytes].decode("utf-8", errors="replace")
    return text + TRUNCATION_MARKER if truncated else text


def run_shell_command(
    command: str,
    cwd: Path | str,
    timeout_s: float | None = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run ``command`` in a shell rooted at ``cwd`` and capture its result."""
    t0 = time.time()

    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)

    # Spool to temp files so a chatty command cannot grow memory without bound.
    with tempfile.TemporaryFile() as out_f, tempfile.TemporaryFile() as err_f:
        try:
            p = subprocess.run(
                command,
                shell=True,
                cwd=str(cwd),
                stdout=out_f,
                stderr=err_f,
                stdin=subprocess.DEVNULL,
                timeout=timeout_s,
                env=merged_env,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                success=False,
                code=124,
                stdout=_read_bounded(out_f, max_output_bytes),
                stderr=_read_bounded(err_f, max_output_bytes)
                + f"\nCommand timed out after {timeout_s}s",
                duration_s=round(time.time() - t0, 3),
            )
        except OSError as e:
            # Missing cwd or an unusable shell.
            return CommandResult(
                command=command,
                success=False,
                code=127,
                stdout="",
                stderr=str(e),
                duration_s=round(time.time() - t0, 3),
            )

        return CommandResult(
            command=command,
            success=p.returncode == 0,
            code=p.returncode,
            stdout=_read_bounded(out_f, max_output_bytes),
            stderr=_read_bounded(err_f, max_output_bytes),
            duration_s=round(time.time() - t0, 3),
        )


async def run_shell_command_async(
    command: str,
    cwd: Path | str,
    timeout_s: float | None = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> CommandResult:
    """Async wrapper that runs the blocking call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, run_shell_command, command, cwd, timeout_s, max_output_bytes
    )
