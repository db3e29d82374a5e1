"""Per-process health checks with a weighted score and recommendations."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..pm2_client import ProcessManagerClient, ProcessManagerError
from .context_builder import format_uptime
from .models.process import ProcessInfo, ProcessStatus


MEMORY_THRESHOLD_MB = 500
CPU_WARN_PERCENT = 70
CPU_FAIL_PERCENT = 90
RESTART_WARN = 3
RESTART_FAIL = 10
UPTIME_PASS_MINUTES = 60
UPTIME_WARN_MINUTES = 10
UNSTABLE_FAIL = 3

GOOD_SCORE = 80
CRITICAL_SCORE = 50


class CheckStatus(str, Enum):
    """Outcome of a single health check."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


CHECK_POINTS = {CheckStatus.PASS: 2, CheckStatus.WARN: 1, CheckStatus.FAIL: 0}


@dataclass
class HealthCheck:
    name: str
    status: CheckStatus
    message: str
    details: Optional[str] = None


@dataclass
class ProcessHealth:
    """All checks for one process."""
    name: str
    checks: List[HealthCheck]

    @property
    def score(self) -> int:
        return sum(CHECK_POINTS[check.status] for check in self.checks)

    @property
    def max_score(self) -> int:
        return len(self.checks) * CHECK_POINTS[CheckStatus.PASS]

    @property
    def percentage(self) -> int:
        return _percent(self.score, self.max_score)


@dataclass
class HealthReport:
    """Health of every checked process plus the overall verdict."""
    processes: List[ProcessHealth] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        score = sum(p.score for p in self.processes)
        max_score = sum(p.max_score for p in self.processes)
        return _percent(score, max_score)

    @property
    def verdict(self) -> str:
        if self.percentage < CRITICAL_SCORE:
            return "Critical Issues Detected"
        if self.percentage < GOOD_SCORE:
            return "Some Issues Detected"
        return "System Health: Good"

    @property
    def recommendations(self) -> List[str]:
        if self.percentage < CRITICAL_SCORE:
            return ["Multiple processes need attention",
                    "Consider running /restart all for recovery"]
        if self.percentage < GOOD_SCORE:
            return ["Review individual process health",
                    "Monitor for recurring issues"]
        return ["All processes running smoothly"]


def _percent(score: int, max_score: int) -> int:
    if not max_score:
        return 0
    # half-up rounding
    return int(score * 100 / max_score + 0.5)


def _graded(value: float, warn_at: float, fail_at: float) -> CheckStatus:
    if value < warn_at:
        return CheckStatus.PASS
    if value < fail_at:
        return CheckStatus.WARN
    return CheckStatus.FAIL


def run_health_checks(process: ProcessInfo, now_ms: Optional[float] = None) -> List[HealthCheck]:
    """Status, memory, CPU, restart, uptime and stability checks for one process.

    Args:
        process: Process as listed by PM2
        now_ms: Current time in milliseconds, defaults to the wall clock

    Returns:
        Checks in a fixed order; each is worth two points when it passes
        and one when it warns
    """
    if now_ms is None:
        now_ms = time.time() * 1000
    env = process.pm2_env
    online = process.status == ProcessStatus.ONLINE.value

    memory_mb = process.memory_mb
    cpu = process.cpu
    restarts = process.restarts
    uptime_minutes = (now_ms - (env.pm_uptime or now_ms)) / 60000
    unstable = env.unstable_restarts

    if uptime_minutes > UPTIME_PASS_MINUTES:
        uptime_status = CheckStatus.PASS
    elif uptime_minutes > UPTIME_WARN_MINUTES:
        uptime_status = CheckStatus.WARN
    else:
        uptime_status = CheckStatus.FAIL

    return [
        HealthCheck(
            "Process Status",
            CheckStatus.PASS if online else CheckStatus.FAIL,
            f"Status: {process.status}",
            None if online else "Process is not running",
        ),
        HealthCheck(
            "Memory Usage",
            _graded(memory_mb, MEMORY_THRESHOLD_MB, MEMORY_THRESHOLD_MB * 1.5),
            f"Using {memory_mb:.1f}MB",
            f"Exceeds threshold of {MEMORY_THRESHOLD_MB}MB" if memory_mb > MEMORY_THRESHOLD_MB else None,
        ),
        HealthCheck(
            "CPU Usage",
            _graded(cpu, CPU_WARN_PERCENT, CPU_FAIL_PERCENT),
            f"{cpu}% CPU",
            "High CPU usage detected" if cpu > CPU_WARN_PERCENT else None,
        ),
        HealthCheck(
            "Restart Stability",
            _graded(restarts, RESTART_WARN, RESTART_FAIL),
            f"{restarts} restarts",
            "Frequent restarts detected" if restarts > RESTART_WARN else None,
        ),
        HealthCheck(
            "Uptime",
            uptime_status,
            format_uptime(env.pm_uptime, now_ms),
            "Recently started or restarted" if uptime_minutes < UPTIME_WARN_MINUTES else None,
        ),
        HealthCheck(
            "Error Recovery",
            _graded(unstable, 1, UNSTABLE_FAIL),
            f"{unstable} unstable restarts",
            "Process has been unstable" if unstable > 0 else None,
        ),
    ]


class HealthService:
    """Runs health checks over the processes PM2 reports."""

    def __init__(self, client: ProcessManagerClient):
        self.client = client

    async def check(self, name: Optional[str] = None, now_ms: Optional[float] = None) -> HealthReport:
        processes = await self.client.list()
        if name:
            processes = [p for p in processes if p.name == name]
            if not processes:
                raise ProcessManagerError(f'Process "{name}" not found')
        return HealthReport([ProcessHealth(p.name, run_health_checks(p, now_ms)) for p in processes])
