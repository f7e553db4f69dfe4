"""Configuration schema for autofix.

Configuration is loaded from the nearest .autofix.yml (searching upward from
the working directory, stopping at the git root) and merged with defaults.
Everything that can end up in a shell command is sanitized at load time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from .safety import is_safe_command, is_safe_path

CONFIG_FILENAME = ".autofix.yml"

VALID_CHECK_KINDS = ("lint", "format", "test")


class PortsConfig(BaseModel):
    """Ports targeted by --kill-ports when no explicit list is given."""

    default: list[int] = Field(default_factory=lambda: [3000, 5173, 8000, 8080])
    extra: list[int] = Field(default_factory=lambda: [9229])


class DeepCleanupConfig(BaseModel):
    remove_node_modules: bool = True
    remove_lockfile: bool = False


class NodeCachesConfig(BaseModel):
    next: bool = True
    vite: bool = True
    directories: list[str] = Field(default_factory=lambda: [".turbo", ".cache"])


class NodeConfig(BaseModel):
    """Node subsystem configuration."""

    package_manager: str = "auto"
    deep_cleanup: DeepCleanupConfig = Field(default_factory=DeepCleanupConfig)
    caches: NodeCachesConfig = Field(default_factory=NodeCachesConfig)

    @field_validator("package_manager", mode="before")
    @classmethod
    def validate_package_manager(cls, v: Any) -> str:
        # Unknown managers never reach a command line.
        if isinstance(v, str) and v in {"auto", "npm", "pnpm", "yarn"}:
            return v
        return "auto"


class PythonInstallConfig(BaseModel):
    prefer: str = "uv"

    @field_validator("prefer", mode="before")
    @classmethod
    def validate_prefer(cls, v: Any) -> str:
        if isinstance(v, str) and v in {"uv", "pip", "poetry", "pipenv", "auto"}:
            return v
        return "auto"


class PythonToolsConfig(BaseModel):
    format: list[str] = Field(default_factory=lambda: ["ruff format", "black ."])
    lint: list[str] = Field(default_factory=lambda: ["ruff check ."])
    test: list[str] = Field(default_factory=lambda: ["pytest -q"])


class PythonConfig(BaseModel):
    """Python subsystem configuration."""

    venv_path: str = ".venv"
    install: PythonInstallConfig = Field(default_factory=PythonInstallConfig)
    tools: PythonToolsConfig = Field(default_factory=PythonToolsConfig)


class DockerConfig(BaseModel):
    compose_file: str = "auto"
    safe_down: bool = True
    rebuild: bool = True
    prune: bool = False


class ChecksConfig(BaseModel):
    default: list[str] = Field(default_factory=lambda: ["lint", "format", "test"])

    @field_validator("default")
    @classmethod
    def validate_default(cls, v: list[str]) -> list[str]:
        return [kind for kind in v if kind in VALID_CHECK_KINDS]


class OutputConfig(BaseModel):
    report_dir: str = ".autofix/reports"
    snapshot_dir: str = ".autofix/snapshots"
    verbosity: str = "normal"

    @field_validator("verbosity")
    @classmethod
    def validate_verbosity(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"quiet", "normal", "verbose"}:
            raise ValueError("verbosity must be one of 'quiet', 'normal', 'verbose'")
        return v


class ExecutorConfig(BaseModel):
    """Shell execution limits and port-release polling budget."""

    command_timeout_seconds: int = 900
    max_output_bytes: int = 4 * 1024 * 1024
    port_poll_interval_seconds: float = 0.1
    port_poll_max_seconds: float = 2.0
    port_release_cooldown_seconds: float = 0.15


class TelemetryConfig(BaseModel):
    """Telemetry and logging configuration."""

    enabled: bool = True
    log_path: str = ".autofix/telemetry.jsonl"
    retention_days: int = 30


class WebhookApprovalConfig(BaseModel):
    """Synchronous webhook confirmation for destructive steps."""

    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: int = 300


class ApprovalConfig(BaseModel):
    webhook: WebhookApprovalConfig = Field(default_factory=WebhookApprovalConfig)


class AutofixConfig(BaseModel):
    """Complete autofix configuration."""

    version: int = 1
    ports: PortsConfig = Field(default_factory=PortsConfig)
    node: NodeConfig = Field(default_factory=NodeConfig)
    python: PythonConfig = Field(default_factory=PythonConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    checks: ChecksConfig = Field(default_factory=ChecksConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)

    @classmethod
    def load_from_file(cls, config_path: Path | str) -> AutofixConfig:
        """Load configuration from a YAML file, merged over defaults."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        # Empty or non-mapping documents mean "use the defaults".
        if not isinstance(data, dict):
            return cls()

        return cls(**data)

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if report_dir := os.getenv("AUTOFIX_REPORT_DIR"):
            self.output.report_dir = report_dir
        if snapshot_dir := os.getenv("AUTOFIX_SNAPSHOT_DIR"):
            self.output.snapshot_dir = snapshot_dir

        if log_path := os.getenv("AUTOFIX_TELEMETRY_PATH"):
            self.telemetry.log_path = log_path
        if os.getenv("AUTOFIX_TELEMETRY_DISABLED") == "1":
            self.telemetry.enabled = False

        if webhook_url := os.getenv("AUTOFIX_APPROVAL_WEBHOOK_URL"):
            self.approval.webhook.url = webhook_url

        if v := os.getenv("AUTOFIX_PORT_POLL_MAX_SECONDS"):
            self.executor.port_poll_max_seconds = float(v)
        if v := os.getenv("AUTOFIX_COMMAND_TIMEOUT_SECONDS"):
            self.executor.command_timeout_seconds = int(v)


def _is_safe_cache_dir(directory: str) -> bool:
    return is_safe_path(directory) and ".." not in directory


def sanitize_config(config: AutofixConfig) -> AutofixConfig:
    """
    Strip unsafe entries from command and path lists.

    Returns a new configuration; the input is not modified. Unsafe entries are
    dropped individually so one bad line does not discard its siblings.
    Sanitizing an already sanitized configuration is a no-op.
    """
    clean = config.model_copy(deep=True)

    tools = clean.python.tools
    tools.format = [cmd for cmd in tools.format if is_safe_command(cmd).safe]
    tools.lint = [cmd for cmd in tools.lint if is_safe_command(cmd).safe]
    tools.test = [cmd for cmd in tools.test if is_safe_command(cmd).safe]

    caches = clean.node.caches
    caches.directories = [d for d in caches.directories if _is_safe_cache_dir(d)]

    return clean


def find_config_path(cwd: Path | str) -> Path | None:
    """Nearest .autofix.yml from ``cwd`` upward, not crossing the git root."""
    current = Path(cwd).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if (current / ".git").exists():
            return None
        if current.parent == current:
            return None
        current = current.parent


@dataclass
class LoadedConfig:
    config: AutofixConfig
    path: Path | None


def load_config(cwd: Path | str) -> LoadedConfig:
    """
    Load configuration for a project.

    Args:
        cwd: Project working directory

    Returns:
        Sanitized configuration and the file it came from (None for defaults)
    """
    config_path = find_config_path(cwd)
    if config_path is None:
        config = AutofixConfig()
    else:
        config = AutofixConfig.load_from_file(config_path)

    config.apply_env_overrides()
    return LoadedConfig(config=sanitize_config(config), path=config_path)
