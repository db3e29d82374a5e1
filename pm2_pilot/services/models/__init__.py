"""Data models for PM2 processes, logs and error analysis."""

from .process import (
    BYTES_PER_MB,
    LogEntry,
    LogLevel,
    Pm2Env,
    ProcessInfo,
    ProcessMonit,
    ProcessStatus,
    filter_by_status,
)
from .errors import (
    ErrorAnalysisResult,
    ErrorCategory,
    ErrorDiagnosis,
    ErrorSeverity,
    ParsedError,
)

__all__ = [
    "BYTES_PER_MB",
    "ErrorAnalysisResult",
    "ErrorCategory",
    "ErrorDiagnosis",
    "ErrorSeverity",
    "LogEntry",
    "LogLevel",
    "ParsedError",
    "Pm2Env",
    "ProcessInfo",
    "ProcessMonit",
    "ProcessStatus",
    "filter_by_status",
]
