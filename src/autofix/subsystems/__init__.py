"""Per-subsystem step builders."""

from .checks import build_check_steps
from .docker import build_docker_steps
from .engines import build_engine_steps
from .environment import build_env_steps
from .node import build_node_steps
from .ports import build_port_steps
from .python import build_python_steps

__all__ = [
    "build_check_steps",
    "build_docker_steps",
    "build_engine_steps",
    "build_env_steps",
    "build_node_steps",
    "build_port_steps",
    "build_python_steps",
]
