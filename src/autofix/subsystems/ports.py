"""Port cleanup step."""

from __future__ import annotations

from ..config import AutofixConfig
from ..types import Phase, RunFlags, Step, Subsystem


def kill_port_command(port: int) -> str:
    # Exit status is ignored on purpose; the executor verifies release by polling.
    return f"lsof -ti :{int(port)} | xargs kill -9 2>/dev/null || true"


def build_port_steps(flags: RunFlags, config: AutofixConfig) -> list[Step]:
    """One cleanup step for --kill-ports; an empty list means configured ports."""
    if flags.kill_ports is None:
        return []

    requested = flags.kill_ports or [*config.ports.default, *config.ports.extra]
    ports: list[int] = []
    for port in requested:
        if isinstance(port, int) and 0 < port < 65536 and port not in ports:
            ports.append(port)
    if not ports:
        return []

    return [
        Step(
            id="ports-cleanup",
            title="Kill processes using configured ports",
            subsystem=Subsystem.META,
            phase=Phase.PORTS,
            rationale="Port conflict cleanup before subsystem repair.",
            commands=[kill_port_command(p) for p in ports],
            destructive=False,
            ports=ports,
        )
    ]
