"""Docker Compose state reset steps."""

from __future__ import annotations

from ..config import AutofixConfig
from ..safety import shell_quote
from ..types import Detection, Phase, RunFlags, Step, Subsystem, UndoHint


def compose_prefix(detection: Detection) -> str:
    if not detection.docker.compose_file:
        return "docker compose"
    return f"docker compose -f {shell_quote(detection.docker.compose_file)}"


def build_docker_steps(detection: Detection, config: AutofixConfig, flags: RunFlags) -> list[Step]:
    if not detection.docker.detected:
        return []

    prefix = compose_prefix(detection)
    rebuild = f"{prefix} up -d --build"
    steps: list[Step] = []

    if config.docker.safe_down:
        steps.append(
            Step(
                id="docker-compose-down",
                title="Run docker compose down",
                subsystem=Subsystem.DOCKER,
                phase=Phase.DOCKER,
                rationale="Reset stale compose state safely.",
                commands=[f"{prefix} down"],
            )
        )

    if config.docker.rebuild:
        steps.append(
            Step(
                id="docker-compose-rebuild",
                title="Rebuild docker compose services",
                subsystem=Subsystem.DOCKER,
                phase=Phase.DOCKER,
                rationale="Rebuild services to resolve dirty container/image state.",
                commands=[rebuild],
            )
        )

    if flags.deep or flags.approve or config.docker.prune:
        steps.append(
            Step(
                id="docker-prune",
                title="IRREVERSIBLE: Prune docker system",
                subsystem=Subsystem.DOCKER,
                phase=Phase.DOCKER,
                rationale="Deep cleanup requested for stale docker artifacts.",
                commands=["docker system prune -f"],
                destructive=True,
                irreversible=True,
                irreversible_reason="images, containers and volumes cannot be snapshotted",
                undo_hints=[UndoHint(action="Rebuild services", command=rebuild)],
            )
        )

    return steps
