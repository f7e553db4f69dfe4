"""Command safety validation and the destructive-action gate.

Strings that come from repository-supplied configuration or files must pass
these checks before they are interpolated into a shell command:

- ``is_safe_path``: directory/path fragments (cache directories, venv path)
- ``is_safe_command``: free-form developer tool commands (format/lint/test)
- ``shell_quote``: values that must be preserved verbatim as one shell word

This is an allowlist filter, not process isolation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Path fragments: no shell metacharacters, no whitespace.
SAFE_PATH_RE = re.compile(r"[A-Za-z0-9._/-]*")

# Whole-command character allowlist. Whitespace is limited to spaces and tabs;
# a newline is a command separator to the shell.
SAFE_COMMAND_RE = re.compile(r"[A-Za-z0-9._\-/@:=* \t]+")

# Known dev tool binaries that are safe to auto-execute from configuration.
KNOWN_TOOL_BINARIES = frozenset(
    {
        # Python formatters
        "ruff", "black", "autopep8", "yapf", "isort", "pyink",
        # Python linters
        "flake8", "pylint", "pyflakes", "pydocstyle", "pycodestyle", "bandit", "vulture",
        # Type checkers
        "mypy", "pyright", "pytype", "pyre",
        # Test runners
        "pytest", "unittest", "nose2", "tox", "nox", "coverage",
        # Python package managers
        "pip", "uv", "poetry", "pipenv", "pdm",
        # Interpreters and misc tooling
        "python", "python3", "pre-commit", "sphinx-build",
        # Node package managers
        "npm", "npx", "pnpm", "yarn",
    }
)

METACHARACTER_REASON = "contains shell metacharacters"


@dataclass(frozen=True)
class SafetyDecision:
    safe: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.safe


def is_safe_path(value: str) -> bool:
    """Return True if ``value`` is a plain relative path fragment.

    Empty strings pass; callers treat "no directory specified" as their own
    business rule.
    """
    if not isinstance(value, str):
        return False
    return SAFE_PATH_RE.fullmatch(value) is not None and ".." not in value


def command_binary(cmd: str) -> str:
    """Bare executable name of ``cmd`` (first token, leading path stripped)."""
    tokens = cmd.split()
    if not tokens:
        return ""
    return tokens[0].rsplit("/", 1)[-1]


def is_safe_command(cmd: str) -> SafetyDecision:
    """Check a configuration-supplied command against both allowlists.

    1. every character must be in the command character allowlist
    2. the leading binary must be a known development tool
    """
    if not isinstance(cmd, str) or not cmd.strip():
        return SafetyDecision(False, "empty command")

    if not SAFE_COMMAND_RE.fullmatch(cmd):
        return SafetyDecision(False, METACHARACTER_REASON)

    binary = command_binary(cmd)
    if binary not in KNOWN_TOOL_BINARIES:
        return SafetyDecision(False, f"unrecognized tool '{binary}'")

    return SafetyDecision(True, "")


def shell_quote(value: str) -> str:
    """Quote ``value`` as a single POSIX shell word."""
    return "'" + value.replace("'", "'\\''") + "'"


def can_auto_run_destructive(deep: bool, approve: bool) -> bool:
    """Either opt-in authorizes destructive steps without a prompt."""
    return deep or approve


def should_prompt_for_destructive(
    destructive: bool, deep: bool, approve: bool, interactive: bool
) -> bool:
    return destructive and not can_auto_run_destructive(deep, approve) and interactive
