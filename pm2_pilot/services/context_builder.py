"""Plain-text process summaries used as LLM context."""

import time
from typing import List, Optional

from ..pm2_client import ProcessManagerClient, ProcessManagerError
from .models.process import ProcessInfo, ProcessStatus, filter_by_status


HIGH_MEMORY_MB = 500
HIGH_CPU_PERCENT = 80
FREQUENT_RESTARTS = 5


def format_uptime(started_ms: Optional[int], now_ms: Optional[float] = None) -> str:
    if not started_ms:
        return 'N/A'
    if now_ms is None:
        now_ms = time.time() * 1000

    seconds = int((now_ms - started_ms) / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h {minutes % 60}m"
    days = hours // 24
    return f"{days}d {hours % 24}h"


def identify_issues(processes: List[ProcessInfo]) -> List[str]:
    issues = []
    for p in processes:
        if p.memory_mb > HIGH_MEMORY_MB:
            issues.append(f"{p.name}: High memory usage ({p.memory_mb:.1f}MB)")
        if p.cpu > HIGH_CPU_PERCENT:
            issues.append(f"{p.name}: High CPU usage ({p.cpu}%)")
        if p.restarts > FREQUENT_RESTARTS:
            issues.append(f"{p.name}: Frequent restarts ({p.restarts} times)")
        if p.status == ProcessStatus.ERRORED.value:
            issues.append(f"{p.name}: Process in error state")
        if p.pm2_env.unstable_restarts > 0:
            issues.append(f"{p.name}: Unstable ({p.pm2_env.unstable_restarts} unstable restarts)")
    return issues


class ContextBuilder:
    """Describes the current PM2 state for question answering."""

    def __init__(self, client: ProcessManagerClient):
        self.client = client

    async def build_process_context(self, name: Optional[str] = None) -> str:
        processes = await self.client.list()
        if name:
            process = next((p for p in processes if p.name == name), None)
            if process is None:
                raise ProcessManagerError(f"Process {name} not found")
            return self.single_process_context(process)
        return self.all_processes_context(processes)

    def single_process_context(self, process: ProcessInfo) -> str:
        env = process.pm2_env
        lines = [
            f"Process: {process.name}",
            f"Status: {process.status}",
            f"PID: {process.pid or 'N/A'}",
            f"Memory: {process.memory_mb:.1f}MB",
            f"CPU: {process.cpu}%",
            f"Restarts: {process.restarts}",
            f"Unstable restarts: {env.unstable_restarts}",
            f"Uptime: {format_uptime(env.pm_uptime)}",
            f"Exec mode: {env.exec_mode or 'fork'}",
            f"Instances: {env.instances or 1}",
            f"Node version: {env.node_version or 'unknown'}",
        ]
        if env.watch:
            lines.append("File watching: enabled")
        if env.max_memory_restart:
            lines.append(f"Max memory restart: {env.max_memory_restart}")
        return "\n".join(lines)

    def all_processes_context(self, processes: List[ProcessInfo]) -> str:
        online = len(filter_by_status(processes, ProcessStatus.ONLINE.value))
        errored = len(filter_by_status(processes, ProcessStatus.ERRORED.value))
        stopped = len(filter_by_status(processes, ProcessStatus.STOPPED.value))
        total_cpu = sum(p.cpu for p in processes)
        total_memory = sum(p.memory_mb for p in processes)

        noun = 'process' if len(processes) == 1 else 'processes'
        lines = [
            f"Total {noun}: {len(processes)}",
            f"Online: {online}, Errored: {errored}, Stopped: {stopped}",
            f"Total CPU usage: {total_cpu:.1f}%",
            f"Total memory usage: {total_memory:.1f}MB",
            "",
            "Process details:",
        ]
        for p in processes:
            lines.append(f"- {p.name}: {p.status}, CPU: {p.cpu}%, "
                         f"Memory: {p.memory_mb:.1f}MB, Restarts: {p.restarts}")

        issues = identify_issues(processes)
        if issues:
            lines.extend(["", "Identified issues:"])
            lines.extend(f"- {issue}" for issue in issues)
        return "\n".join(lines)
