"""Unit tests for ports.py - port liveness polling."""

import pytest

from autofix.ports import MANUAL_REMEDIATION, extract_ports, verify_ports_released


def probe_from(schedule):
    """Probe that returns successive PID lists per port, then the last one forever."""
    calls = {}

    async def probe(port):
        n = calls.get(port, 0)
        calls[port] = n + 1
        answers = schedule.get(port, [[]])
        return answers[min(n, len(answers) - 1)]

    probe.calls = calls
    return probe


class TestExtractPorts:
    """Tests for extract_ports."""

    def test_extracts_from_kill_commands(self):
        commands = ["lsof -ti :3000 | xargs kill -9 2>/dev/null || true", "lsof -ti :5173 | xargs kill -9"]
        assert extract_ports(commands) == [3000, 5173]

    def test_ignores_commands_without_port(self):
        assert extract_ports(["true"]) == []


class TestVerifyPortsReleased:
    """Tests for verify_ports_released."""

    @pytest.mark.asyncio
    async def test_no_ports(self):
        check = await verify_ports_released([], probe_from({}))
        assert check.ok is True
        assert check.details == "no ports to verify"

    @pytest.mark.asyncio
    async def test_free_immediately(self):
        probe = probe_from({3000: [[]]})
        check = await verify_ports_released([3000], probe, interval=0.01, max_wait=0.2, cooldown=0)
        assert check.ok is True
        assert probe.calls[3000] == 1

    @pytest.mark.asyncio
    async def test_released_after_a_few_polls(self):
        probe = probe_from({3000: [["111"], ["111"], []]})
        check = await verify_ports_released([3000], probe, interval=0.01, max_wait=1.0, cooldown=0)
        assert check.ok is True
        assert probe.calls[3000] == 3

    @pytest.mark.asyncio
    async def test_still_held_after_budget(self):
        probe = probe_from({3000: [[]], 4321: [["999", "1000"]]})
        check = await verify_ports_released([3000, 4321], probe, interval=0.01, max_wait=0.05, cooldown=0)
        assert check.ok is False
        assert check.busy == {4321: ["999", "1000"]}
        assert "4321: 999 1000" in check.details
        assert MANUAL_REMEDIATION in check.details
        assert probe.calls[4321] >= 2
