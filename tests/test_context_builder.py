"""Tests for LLM context summaries."""

import pytest

from pm2_pilot.pm2_client import ProcessManagerError
from pm2_pilot.services.context_builder import ContextBuilder, format_uptime, identify_issues


class TestFormatUptime:

    @pytest.mark.parametrize("elapsed_s,expected", [
        (30, "30s"),
        (90, "1m"),
        (3 * 3600 + 5 * 60, "3h 5m"),
        (2 * 86400 + 3 * 3600, "2d 3h"),
    ])
    def test_ranges(self, elapsed_s, expected):
        started = 1_700_000_000_000
        assert format_uptime(started, started + elapsed_s * 1000) == expected

    def test_unknown_start(self):
        assert format_uptime(None) == "N/A"
        assert format_uptime(0) == "N/A"


class TestIdentifyIssues:

    def test_sample_processes(self, sample_processes):
        assert identify_issues(sample_processes) == [
            "scheduler: High memory usage (600.0MB)",
            "scheduler: Frequent restarts (9 times)",
            "scheduler: Process in error state",
        ]

    def test_high_cpu_and_unstable(self, process_factory):
        process = process_factory("web", cpu=95, unstable_restarts=3)
        assert identify_issues([process]) == [
            "web: High CPU usage (95.0%)",
            "web: Unstable (3 unstable restarts)",
        ]

    def test_healthy(self, process_factory):
        assert identify_issues([process_factory("web")]) == []


class TestContextBuilder:
    """Test ContextBuilder."""

    @pytest.fixture
    def builder(self, mock_pm2_client):
        return ContextBuilder(mock_pm2_client)

    @pytest.mark.asyncio
    async def test_all_processes(self, builder):
        context = await builder.build_process_context()

        assert context.startswith("Total processes: 3\nOnline: 1, Errored: 1, Stopped: 1")
        assert "Total memory usage: 720.0MB" in context
        assert "- api-server: online, CPU: 12.5%, Memory: 120.0MB, Restarts: 2" in context
        assert "Identified issues:" in context
        assert "- scheduler: Process in error state" in context

    @pytest.mark.asyncio
    async def test_single_process(self, builder):
        context = await builder.build_process_context("api-server")

        assert context.splitlines()[:3] == ["Process: api-server", "Status: online", "PID: 1000"]
        assert "Exec mode: fork" in context
        assert "Uptime: N/A" in context

    @pytest.mark.asyncio
    async def test_unknown_process(self, builder):
        with pytest.raises(ProcessManagerError, match="Process ghost not found"):
            await builder.build_process_context("ghost")

    def test_single_process_noun(self, builder, process_factory):
        context = builder.all_processes_context([process_factory("web")])
        assert context.startswith("Total process: 1")
        assert "Identified issues" not in context
