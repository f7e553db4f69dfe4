"""Global pytest configuration for hermetic test runs."""

from __future__ import annotations

import os


def pytest_sessionstart(session):  # noqa: ARG001
    # Never prompt: the CLI treats CI as non-interactive.
    os.environ.setdefault("CI", "1")

    # Overrides from the developer's shell must not leak into config tests.
    for name in (
        "AUTOFIX_REPORT_DIR",
        "AUTOFIX_SNAPSHOT_DIR",
        "AUTOFIX_TELEMETRY_PATH",
        "AUTOFIX_TELEMETRY_DISABLED",
        "AUTOFIX_APPROVAL_WEBHOOK_URL",
        "AUTOFIX_PORT_POLL_MAX_SECONDS",
        "AUTOFIX_COMMAND_TIMEOUT_SECONDS",
    ):
        os.environ.pop(name, None)
