"""Port liveness checks after a port-cleanup step.

Kill commands can exit 0 while the port is still held (respawning dev
servers, slow shutdown). The step only succeeds once every targeted port is
observed free within the poll budget.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from .shell import run_shell_command_async

PortProbe = Callable[[int], Awaitable[list[str]]]

_PORT_RE = re.compile(r":(\d+)")

MANUAL_REMEDIATION = "Try: lsof -ti :<port> | xargs kill -9"


@dataclass
class PortCheck:
    ok: bool
    details: str
    busy: dict[int, list[str]] = field(default_factory=dict)


def extract_ports(commands: list[str]) -> list[int]:
    ports: list[int] = []
    for command in commands:
        m = _PORT_RE.search(command)
        if m:
            ports.append(int(m.group(1)))
    return ports


def lsof_probe(cwd: Path | str) -> PortProbe:
    """Probe that lists PIDs listening on a port via ``lsof``."""

    async def probe(port: int) -> list[str]:
        # ``port`` is an int, so the command line is fully system-built.
        result = await run_shell_command_async(f"lsof -ti :{int(port)}", cwd, timeout_s=10)
        return result.stdout.split()

    return probe


async def _busy_ports(ports: list[int], probe: PortProbe) -> dict[int, list[str]]:
    pids = await asyncio.gather(*[probe(p) for p in ports])
    return {port: found for port, found in zip(ports, pids) if found}


async def verify_ports_released(
    ports: list[int],
    probe: PortProbe,
    interval: float = 0.1,
    max_wait: float = 2.0,
    cooldown: float = 0.15,
) -> PortCheck:
    """
    Poll until every port is free or the budget runs out.

    Args:
        ports: Ports targeted by the cleanup step
        probe: Returns the PIDs holding a port (empty when free)
        interval: Seconds between poll rounds
        max_wait: Total poll budget in seconds
        cooldown: Extra wait after release is confirmed

    Returns:
        PortCheck; ``details`` names still-held port/PID pairs on failure
    """
    if not ports:
        return PortCheck(ok=True, details="no ports to verify")

    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_wait

    while True:
        busy = await _busy_ports(ports, probe)
        if not busy:
            await asyncio.sleep(cooldown)
            return PortCheck(ok=True, details="ports confirmed free")
        if loop.time() >= deadline:
            break
        await asyncio.sleep(interval)

    detail = ", ".join(f"{port}: {' '.join(pids)}" for port, pids in busy.items())
    return PortCheck(
        ok=False,
        details=f"remaining pid(s) -> {detail}. {MANUAL_REMEDIATION}",
        busy=busy,
    )
