"""Tests for process health checks."""

import pytest

from pm2_pilot.pm2_client import ProcessManagerError
from pm2_pilot.services.health import (
    CheckStatus,
    HealthCheck,
    HealthReport,
    HealthService,
    ProcessHealth,
    run_health_checks,
)

NOW_MS = 1_700_000_000_000
MINUTE_MS = 60 * 1000


def run_check(status):
    return HealthCheck("check", status, "message")


def statuses(checks):
    return {check.name: check.status for check in checks}


class TestRunHealthChecks:
    """Test the individual checks."""

    def test_healthy_process(self, process_factory):
        process = process_factory("api", memory_mb=100, cpu=5, pm_uptime=NOW_MS - 120 * MINUTE_MS)

        checks = run_health_checks(process, NOW_MS)

        assert set(statuses(checks).values()) == {CheckStatus.PASS}
        assert all(check.details is None for check in checks)
        assert checks[4].message == "2h 0m"

    def test_thresholds(self, process_factory):
        process = process_factory(
            "api", memory_mb=800, cpu=75, restarts=4,
            pm_uptime=NOW_MS - 30 * MINUTE_MS, unstable_restarts=3,
        )

        result = statuses(run_health_checks(process, NOW_MS))

        assert result == {
            "Process Status": CheckStatus.PASS,
            "Memory Usage": CheckStatus.FAIL,
            "CPU Usage": CheckStatus.WARN,
            "Restart Stability": CheckStatus.WARN,
            "Uptime": CheckStatus.WARN,
            "Error Recovery": CheckStatus.FAIL,
        }

    def test_stopped_process_details(self, process_factory):
        checks = run_health_checks(process_factory("worker", "stopped", memory_mb=0, cpu=0), NOW_MS)

        by_name = {check.name: check for check in checks}
        assert by_name["Process Status"].status == CheckStatus.FAIL
        assert by_name["Process Status"].details == "Process is not running"
        assert by_name["Uptime"].message == "N/A"
        assert by_name["Uptime"].details == "Recently started or restarted"

    def test_memory_details(self, process_factory):
        checks = run_health_checks(process_factory("api", memory_mb=600), NOW_MS)
        memory = checks[1]

        assert memory.status == CheckStatus.WARN
        assert memory.message == "Using 600.0MB"
        assert memory.details == "Exceeds threshold of 500MB"


class TestScores:

    def test_process_score(self):
        health = ProcessHealth("api", [
            run_check(CheckStatus.PASS), run_check(CheckStatus.WARN), run_check(CheckStatus.FAIL),
        ])
        assert (health.score, health.max_score, health.percentage) == (3, 6, 50)

    @pytest.mark.parametrize("check_statuses,verdict", [
        ([CheckStatus.PASS] * 5 + [CheckStatus.WARN], "System Health: Good"),
        ([CheckStatus.PASS] * 3 + [CheckStatus.FAIL] * 3, "Some Issues Detected"),
        ([CheckStatus.FAIL] * 6, "Critical Issues Detected"),
    ])
    def test_verdicts(self, check_statuses, verdict):
        report = HealthReport([ProcessHealth("api", [run_check(s) for s in check_statuses])])
        assert report.verdict == verdict
        assert report.recommendations

    def test_critical_recommends_restart(self):
        report = HealthReport([ProcessHealth("api", [run_check(CheckStatus.FAIL)])])
        assert "Consider running /restart all for recovery" in report.recommendations

    def test_empty_report(self):
        assert HealthReport().percentage == 0


class TestHealthService:

    @pytest.mark.asyncio
    async def test_all_processes(self, mock_pm2_client):
        report = await HealthService(mock_pm2_client).check(now_ms=NOW_MS)

        assert [p.name for p in report.processes] == ["api-server", "worker", "scheduler"]
        assert [p.percentage for p in report.processes] == [83, 67, 50]
        assert report.percentage == 67

    @pytest.mark.asyncio
    async def test_one_process(self, mock_pm2_client):
        report = await HealthService(mock_pm2_client).check("worker", now_ms=NOW_MS)
        assert [p.name for p in report.processes] == ["worker"]

    @pytest.mark.asyncio
    async def test_unknown_process(self, mock_pm2_client):
        with pytest.raises(ProcessManagerError, match='Process "ghost" not found'):
            await HealthService(mock_pm2_client).check("ghost")

    @pytest.mark.asyncio
    async def test_no_processes(self, mock_pm2_client):
        mock_pm2_client.list.return_value = []
        report = await HealthService(mock_pm2_client).check()
        assert report.processes == []
