"""Unit tests for shell.py - bounded shell execution."""

import pytest

from autofix.shell import TRUNCATION_MARKER, run_shell_command, run_shell_command_async


class TestRunShellCommand:
    """Tests for run_shell_command."""

    def test_success_captures_stdout(self, tmp_path):
        result = run_shell_command("echo hello", tmp_path)
        assert result.success is True
        assert result.code == 0
        assert result.stdout.strip() == "hello"
        assert result.stderr == ""

    def test_runs_in_cwd(self, tmp_path):
        (tmp_path / "marker.txt").write_text("x")
        result = run_shell_command("ls", tmp_path)
        assert "marker.txt" in result.stdout

    def test_non_zero_exit_reported_not_raised(self, tmp_path):
        result = run_shell_command("echo oops >&2; exit 3", tmp_path)
        assert result.success is False
        assert result.code == 3
        assert "oops" in result.stderr

    def test_chained_commands_use_one_shell(self, tmp_path):
        result = run_shell_command("echo a > f.txt && cat f.txt", tmp_path)
        assert result.success is True
        assert result.stdout.strip() == "a"

    def test_output_is_bounded(self, tmp_path):
        result = run_shell_command("head -c 5000 /dev/zero | tr '\\0' x", tmp_path, max_output_bytes=100)
        assert result.stdout.endswith(TRUNCATION_MARKER)
        assert len(result.stdout) == 100 + len(TRUNCATION_MARKER)

    def test_timeout(self, tmp_path):
        result = run_shell_command("sleep 5", tmp_path, timeout_s=0.2)
        assert result.success is False
        assert result.code == 124
        assert "timed out" in result.stderr

    def test_missing_cwd(self, tmp_path):
        result = run_shell_command("echo hi", tmp_path / "missing")
        assert result.success is False
        assert result.code == 127

    def test_extra_env(self, tmp_path):
        result = run_shell_command("echo $AUTOFIX_TEST_VALUE", tmp_path, env={"AUTOFIX_TEST_VALUE": "42"})
        assert result.stdout.strip() == "42"


@pytest.mark.asyncio
async def test_async_wrapper(tmp_path):
    result = await run_shell_command_async("printf abc", tmp_path)
    assert result.success is True
    assert result.stdout == "abc"
