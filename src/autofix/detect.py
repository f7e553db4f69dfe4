"""Environment detection: which stacks a project uses and what looks broken."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import yaml

from .config import AutofixConfig
from .safety import is_safe_path
from .types import (
    Detection,
    DockerDetection,
    EngineDetection,
    EnvironmentDetection,
    NodeDetection,
    PythonDetection,
)

COMPOSE_CANDIDATES = ["docker-compose.yml", "compose.yml", "docker-compose.yaml", "compose.yaml"]
LOCKFILE_CANDIDATES = ["package-lock.json", "pnpm-lock.yaml", "yarn.lock"]
NODE_VERSION_FILES = [".nvmrc", ".node-version"]
PYTHON_VERSION_FILES = [".python-version"]


def _detect_package_manager(cwd: Path) -> str:
    if (cwd / "pnpm-lock.yaml").exists():
        return "pnpm"
    if (cwd / "yarn.lock").exists():
        return "yarn"
    if (cwd / "package-lock.json").exists():
        return "npm"
    return "unknown"


def _detect_lockfile_corruption(cwd: Path) -> bool:
    pkg_lock = cwd / "package-lock.json"
    if pkg_lock.exists():
        try:
            json.loads(pkg_lock.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return True
    pnpm_lock = cwd / "pnpm-lock.yaml"
    if pnpm_lock.exists():
        try:
            yaml.safe_load(pnpm_lock.read_text(encoding="utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError):
            return True
    return False


def _read_package_json(path: Path) -> tuple[list[str], bool, bool]:
    """Scripts plus Next/Vite usage. Malformed files count as empty."""
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return [], False, False
    if not isinstance(parsed, dict):
        return [], False, False

    scripts = list((parsed.get("scripts") or {}).keys())
    deps = {**(parsed.get("dependencies") or {}), **(parsed.get("devDependencies") or {})}
    has_next = "next" in deps or any("next" in s.lower() for s in scripts)
    has_vite = "vite" in deps or any("vite" in s.lower() for s in scripts)
    return scripts, has_next, has_vite


def _host_node_version(cwd: Path) -> str | None:
    try:
        p = subprocess.run(
            ["node", "--version"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if p.returncode != 0:
        return None
    return p.stdout.strip() or None


def _first_existing(cwd: Path, names: list[str]) -> str | None:
    return next((n for n in names if (cwd / n).exists()), None)


def _compose_file(cwd: Path, config: AutofixConfig) -> str | None:
    configured = config.docker.compose_file
    if configured != "auto" and configured and is_safe_path(configured):
        return configured if (cwd / configured).exists() else None
    return _first_existing(cwd, COMPOSE_CANDIDATES)


def detect_environment(cwd: Path | str, config: AutofixConfig) -> Detection:
    """
    Inspect ``cwd`` and describe the stacks found.

    Args:
        cwd: Project root
        config: Loaded configuration (venv path, compose file)

    Returns:
        Detection record consumed by the plan builders
    """
    cwd = Path(cwd)

    has_package = (cwd / "package.json").exists()
    scripts: list[str] = []
    has_next = has_vite = False
    if has_package:
        scripts, has_next, has_vite = _read_package_json(cwd / "package.json")
    has_node_modules = (cwd / "node_modules").exists()

    has_requirements = (cwd / "requirements.txt").exists() or (cwd / "requirements-dev.txt").exists()
    has_pyproject = (cwd / "pyproject.toml").exists()
    venv_path = config.python.venv_path
    venv_exists = is_safe_path(venv_path) and bool(venv_path) and (cwd / venv_path).exists()

    compose_file = _compose_file(cwd, config)
    lockfiles = [name for name in LOCKFILE_CANDIDATES if (cwd / name).exists()]
    lockfile_corrupted = _detect_lockfile_corruption(cwd)

    node_version_file = _first_existing(cwd, NODE_VERSION_FILES)
    python_version_file = _first_existing(cwd, PYTHON_VERSION_FILES)

    issues: list[str] = []
    if has_package and not has_node_modules:
        issues.append("node_modules directory missing")
    if (has_pyproject or has_requirements) and not venv_exists:
        issues.append("python virtual environment missing")
    if compose_file:
        issues.append("docker compose project detected (state may require refresh)")
    if lockfile_corrupted:
        issues.append("lockfile appears corrupted; frozen installs likely to fail")

    has_env = (cwd / ".env").exists()
    has_env_example = (cwd / ".env.example").exists()
    if has_env_example and not has_env:
        issues.append(".env missing but .env.example exists")

    return Detection(
        node=NodeDetection(
            detected=has_package,
            package_manager=_detect_package_manager(cwd),
            has_node_modules=has_node_modules,
            has_next=has_next,
            has_vite=has_vite,
            lockfiles=lockfiles,
            lockfile_corrupted=lockfile_corrupted,
            package_scripts=scripts,
        ),
        python=PythonDetection(
            detected=has_pyproject or has_requirements,
            has_pyproject=has_pyproject,
            has_requirements=has_requirements,
            venv_path=venv_path,
            venv_exists=venv_exists,
        ),
        docker=DockerDetection(detected=compose_file is not None, compose_file=compose_file),
        environment=EnvironmentDetection(has_env=has_env, has_env_example=has_env_example),
        engines=EngineDetection(
            node_version_file=node_version_file,
            python_version_file=python_version_file,
            node_version=_host_node_version(cwd) if has_package and node_version_file else None,
        ),
        issues=issues,
    )
