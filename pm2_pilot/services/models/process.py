"""Pydantic models for PM2 process records and log lines."""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional, Any
from enum import Enum


BYTES_PER_MB = 1024 * 1024


class ProcessStatus(str, Enum):
    """PM2 process status values."""

    ONLINE = "online"
    STOPPING = "stopping"
    STOPPED = "stopped"
    LAUNCHING = "launching"
    ERRORED = "errored"
    ONE_LAUNCH_STATUS = "one-launch-status"


class ProcessMonit(BaseModel):
    """Live resource usage reported by PM2."""

    memory: int = Field(0, description="Resident memory in bytes")
    cpu: float = Field(0.0, description="CPU usage percentage")


class Pm2Env(BaseModel):
    """Subset of the pm2_env block of `pm2 jlist` that the assistant reads."""

    model_config = {"extra": "allow"}

    status: str = Field("stopped", description="Process status")
    pm_id: Optional[int] = Field(None, description="PM2 process id")
    pm_uptime: Optional[int] = Field(None, description="Start timestamp in milliseconds")
    restart_time: int = Field(0, description="Total restart count")
    unstable_restarts: int = Field(0, description="Restarts PM2 considers unstable")
    exec_mode: Optional[str] = Field(None, description="fork_mode or cluster_mode")
    node_version: Optional[str] = Field(None, description="Node.js version")
    instances: Optional[Any] = Field(None, description="Instance count or 'max'")
    watch: Optional[Any] = Field(None, description="Watch flag or watched paths")
    max_memory_restart: Optional[Any] = Field(None, description="Memory restart threshold")
    pm_err_log_path: Optional[str] = Field(None, description="stderr log file")
    pm_out_log_path: Optional[str] = Field(None, description="stdout log file")
    pm_cwd: Optional[str] = Field(None, description="Working directory")


class ProcessInfo(BaseModel):
    """A single process as listed by `pm2 jlist`."""

    model_config = {"extra": "allow"}

    name: str = Field(description="Process name")
    pid: Optional[int] = Field(None, description="Operating system pid")
    pm_id: Optional[int] = Field(None, description="PM2 process id")
    monit: ProcessMonit = Field(default_factory=ProcessMonit)
    pm2_env: Pm2Env = Field(default_factory=Pm2Env)

    @property
    def status(self) -> str:
        return self.pm2_env.status

    @property
    def memory_mb(self) -> float:
        return (self.monit.memory or 0) / BYTES_PER_MB

    @property
    def cpu(self) -> float:
        return self.monit.cpu or 0.0

    @property
    def restarts(self) -> int:
        return self.pm2_env.restart_time or 0


class LogLevel(str, Enum):
    """Levels a parsed log line can carry."""

    INFO = "info"
    ERROR = "error"
    WARN = "warn"
    DEBUG = "debug"


class LogEntry(BaseModel):
    """One line read from a PM2 log file."""

    model_config = {"use_enum_values": True}

    timestamp: str = Field("", description="ISO timestamp, empty when unknown")
    level: LogLevel = Field(LogLevel.INFO, description="Detected log level")
    message: str = Field(description="Raw log line")
    process: str = Field("", description="Name of the process that wrote the line")
    type: str = Field("out", description="'out' for stdout, 'err' for stderr")


def filter_by_status(processes: List[ProcessInfo], status: str) -> List[ProcessInfo]:
    """Return the processes currently in the given status."""
    return [p for p in processes if p.status == status]


def timestamp_sort_key(timestamp: str) -> float:
    """Epoch seconds for an ISO-like log timestamp; 0.0 when it does not parse."""
    try:
        return datetime.fromisoformat(timestamp.replace('Z', '+00:00')).timestamp()
    except (ValueError, OverflowError, OSError):
        return 0.0
