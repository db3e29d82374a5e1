"""Pydantic models for parsed log errors and their diagnosis."""

from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum


class ErrorSeverity(str, Enum):
    """How badly an error affects the process."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Broad family an error belongs to."""

    MODULE = "module"
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    NETWORK = "network"
    PERMISSION = "permission"
    RESOURCE = "resource"
    OTHER = "other"


class ParsedError(BaseModel):
    """A structured record for one error-bearing log line."""

    type: str = Field(description="Human readable error type, e.g. 'Connection Refused'")
    message: str = Field(description="Trimmed raw log message")
    severity: ErrorSeverity = Field(description="Severity derived from the message")
    category: ErrorCategory = Field(description="Category derived from the message")
    file_path: Optional[str] = Field(None, description="Source file mentioned by the error")
    line_number: Optional[int] = Field(None, description="Line number from the first :line:col suffix")
    stack_trace: Optional[str] = Field(None, description="'at ...' frames joined by newlines")
    process_name: str = Field("", description="Process whose log contained the error")
    context: str = Field("", description="Short excerpt explaining where the error happened")
    timestamp: str = Field("", description="Timestamp of the log entry")


class ErrorDiagnosis(BaseModel):
    """Summary, root cause and suggestions for a set of errors."""

    summary: str
    root_cause: str
    actionable_suggestions: List[str] = Field(default_factory=list)
    follow_up_commands: List[str] = Field(default_factory=list)
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    confidence: float = Field(0.7, ge=0.0, le=1.0)


class ErrorAnalysisResult(BaseModel):
    """Outcome of analyzing a batch of log entries."""

    has_errors: bool = False
    error_count: int = 0
    parsed_errors: List[ParsedError] = Field(default_factory=list)
    diagnosis: Optional[ErrorDiagnosis] = None
    quick_fix: Optional[str] = None
