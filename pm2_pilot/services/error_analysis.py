"""Structured error extraction and diagnosis for PM2 log entries."""

import json
import logging
import math
import re
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..llm_client import LLMClient
from .models.errors import (
    ErrorAnalysisResult, ErrorCategory, ErrorDiagnosis, ErrorSeverity, ParsedError
)
from .models.process import LogEntry, timestamp_sort_key


ERROR_INDICATORS = [
    'error', 'exception', 'failed', 'cannot', 'unable', 'not found',
    'econnrefused', 'enotfound', 'eacces', 'etimedout', 'err_module_not_found',
    'typeerror', 'referenceerror', 'syntaxerror', 'unhandledpromiserejectionwarning',
]

ERROR_LEVELS = ('error', 'warn')


def _contains(token: str) -> Callable[[str], bool]:
    return lambda message: token in message


GENERIC_ERROR_PATTERN = re.compile(r'(\w+Error):')

# Evaluated top to bottom; the first matching row decides type, severity and category.
ERROR_SIGNATURES: List[Tuple[Callable[[str], bool], str, ErrorSeverity, ErrorCategory]] = [
    (_contains('ERR_MODULE_NOT_FOUND'), 'Module Not Found', ErrorSeverity.CRITICAL, ErrorCategory.MODULE),
    (_contains('ECONNREFUSED'), 'Connection Refused', ErrorSeverity.HIGH, ErrorCategory.NETWORK),
    (_contains('ENOTFOUND'), 'Host Not Found', ErrorSeverity.MEDIUM, ErrorCategory.NETWORK),
    (_contains('EACCES'), 'Permission Denied', ErrorSeverity.HIGH, ErrorCategory.PERMISSION),
    (_contains('ETIMEDOUT'), 'Connection Timeout', ErrorSeverity.MEDIUM, ErrorCategory.NETWORK),
    (_contains('TypeError'), 'Type Error', ErrorSeverity.HIGH, ErrorCategory.RUNTIME),
    (_contains('ReferenceError'), 'Reference Error', ErrorSeverity.HIGH, ErrorCategory.RUNTIME),
    (_contains('SyntaxError'), 'Syntax Error', ErrorSeverity.CRITICAL, ErrorCategory.SYNTAX),
    (_contains('UnhandledPromiseRejectionWarning'), 'Unhandled Promise Rejection',
     ErrorSeverity.MEDIUM, ErrorCategory.RUNTIME),
    (_contains('MaxListenersExceededWarning'), 'Memory Leak Warning', ErrorSeverity.LOW, ErrorCategory.RESOURCE),
    (_contains('Cannot find module'), 'Missing Module', ErrorSeverity.CRITICAL, ErrorCategory.MODULE),
]

FILE_PATH_PATTERNS = [
    re.compile(r'[\'"`]([^\'"`]*\.(?:js|ts|mjs|cjs|json))[\'"`]'),
    re.compile(r'file://([^)\s]+)'),
    re.compile(r'Cannot find module\s+[\'"`]([^\'"`]+)[\'"`]'),
    # "at /path/file.js:1:2" frames are left to line-number extraction
    re.compile(r'Error.*?([/\w.-]+\.(?:js|ts|mjs|cjs|json))'),
]
LINE_COL_SUFFIX = re.compile(r'(?::\d+){1,2}$')
LINE_NUMBER_PATTERN = re.compile(r':(\d+):\d+')
IMPORTED_FROM_PATTERN = re.compile(r'imported from (.+)')
FRAME_PATTERN = re.compile(r'(?:^|\s)at\s+([^(\n]+)')
CODE_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$')

CONTEXT_MAX_LENGTH = 100

DIAGNOSIS_PROMPT = """Analyze these PM2 process errors and provide an actionable diagnosis:

ERRORS:
{errors}

TASK: Provide a diagnosis with:
1. Root cause analysis
2. Specific actionable fixes
3. Recommended PM2 Pilot commands
4. Prevention strategies

Focus on the most critical issue first. Be specific and practical.

RESPONSE FORMAT (JSON only):
{{
  "summary": "Brief description of main issue",
  "rootCause": "Technical explanation of why this happened",
  "actionableSuggestions": ["Specific step 1", "Specific step 2", "Specific step 3"],
  "followUpCommands": ["command 1", "command 2"],
  "severity": "critical|high|medium|low",
  "confidence": 0.95
}}"""

QUICK_FIX_PROMPT = """Generate a single, specific quick fix for this error:

ERROR: {type}
MESSAGE: {message}
CATEGORY: {category}

Provide ONE specific action the user can take immediately. Be concrete and actionable.
Format: Just the action, no explanation."""


def is_error_entry(entry: LogEntry) -> bool:
    if entry.level in ERROR_LEVELS:
        return True
    lower = entry.message.lower()
    return any(indicator in lower for indicator in ERROR_INDICATORS)


def classify_error(message: str) -> Tuple[str, ErrorSeverity, ErrorCategory]:
    """Type, severity and category of a message; depends on the text alone."""
    for predicate, error_type, severity, category in ERROR_SIGNATURES:
        if predicate(message):
            return error_type, severity, category

    generic = GENERIC_ERROR_PATTERN.search(message)
    if generic:
        return generic.group(1), ErrorSeverity.MEDIUM, ErrorCategory.OTHER
    return 'Runtime Error', ErrorSeverity.MEDIUM, ErrorCategory.OTHER


def extract_file_path(message: str) -> Optional[str]:
    for pattern in FILE_PATH_PATTERNS:
        match = pattern.search(message)
        if match:
            return LINE_COL_SUFFIX.sub('', match.group(1))
    return None


def extract_line_number(message: str) -> Optional[int]:
    match = LINE_NUMBER_PATTERN.search(message)
    return int(match.group(1)) if match else None


def extract_stack_trace(message: str) -> Optional[str]:
    frames = [line.strip() for line in message.split('\n') if line.strip().startswith('at ')]
    return '\n'.join(frames) if frames else None


def extract_error_context(message: str) -> str:
    imported = IMPORTED_FROM_PATTERN.search(message)
    if imported:
        return f"Error occurred while importing from {imported.group(1)}"

    frame = FRAME_PATTERN.search(message)
    if frame:
        return f"Error in function: {frame.group(1).strip()}"

    first_line = message.split('\n')[0]
    if len(first_line) > CONTEXT_MAX_LENGTH:
        return first_line[:CONTEXT_MAX_LENGTH] + '...'
    return first_line


def parse_error(entry: LogEntry) -> ParsedError:
    message = entry.message.strip()
    error_type, severity, category = classify_error(message)
    return ParsedError(
        type=error_type,
        message=message,
        severity=severity,
        category=category,
        file_path=extract_file_path(message),
        line_number=extract_line_number(message),
        stack_trace=extract_stack_trace(message),
        process_name=entry.process,
        context=extract_error_context(message),
        timestamp=entry.timestamp,
    )


def fallback_diagnosis(errors: Sequence[ParsedError]) -> ErrorDiagnosis:
    """Canned diagnosis for the category of the most recent error."""
    main_error = errors[0]

    if main_error.category == ErrorCategory.MODULE:
        return ErrorDiagnosis(
            summary='Module or file not found',
            root_cause="The application is trying to load a module or file that doesn't exist",
            actionable_suggestions=[
                'Check if the referenced file exists at the specified path',
                'Verify the file path in your PM2 configuration',
                'Run npm install to ensure all dependencies are installed',
            ],
            follow_up_commands=['restart the process after fixing the path'],
            severity=ErrorSeverity.CRITICAL,
            confidence=0.8,
        )
    if main_error.category == ErrorCategory.NETWORK:
        return ErrorDiagnosis(
            summary='Network connectivity issue',
            root_cause='Unable to establish network connection to required service',
            actionable_suggestions=[
                'Check if the target service is running and accessible',
                'Verify network configuration and firewall settings',
                'Confirm connection URLs and ports are correct',
            ],
            follow_up_commands=['check process health', 'restart affected processes'],
            severity=ErrorSeverity.HIGH,
            confidence=0.7,
        )
    if main_error.category == ErrorCategory.PERMISSION:
        return ErrorDiagnosis(
            summary='Permission or access denied',
            root_cause='Insufficient permissions to access required resources',
            actionable_suggestions=[
                'Check file and directory permissions',
                'Ensure PM2 is running with appropriate user privileges',
                'Verify write access to log and PID directories',
            ],
            follow_up_commands=['check process status', 'restart with proper permissions'],
            severity=ErrorSeverity.HIGH,
            confidence=0.8,
        )
    return ErrorDiagnosis(
        summary='Application runtime error detected',
        root_cause='Runtime error occurred during application execution',
        actionable_suggestions=[
            'Review application code for the reported error',
            'Check application logs for additional context',
            'Consider adding better error handling',
        ],
        follow_up_commands=['show recent logs', 'restart the process'],
        severity=main_error.severity,
        confidence=0.6,
    )


def fallback_quick_fix(error: ParsedError) -> str:
    if error.category == ErrorCategory.MODULE:
        if error.file_path:
            return f"Check if file exists: {error.file_path}"
        return 'Run npm install to install missing dependencies'
    if error.category == ErrorCategory.NETWORK:
        return 'Verify target service is running and accessible'
    if error.category == ErrorCategory.PERMISSION:
        return 'Check file permissions and user access rights'
    if error.category == ErrorCategory.SYNTAX:
        if error.file_path and error.line_number:
            return f"Fix syntax error in {error.file_path} at line {error.line_number}"
        return 'Review code for syntax errors'
    return 'Restart the process to clear temporary issues'


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


class ErrorAnalysisService:
    """Turns log entries into ParsedErrors and a diagnosis.

    The LLM is used for the diagnosis and the quick fix when a configured
    client is available. Every LLM step has a deterministic fallback, so an
    analysis with errors always carries both.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client
        self.logger = logging.getLogger(__name__)

    @property
    def ai_available(self) -> bool:
        return self.llm_client is not None and self.llm_client.is_configured()

    async def analyze_log_errors(self, logs: Sequence[LogEntry],
                                 process_name: Optional[str] = None) -> ErrorAnalysisResult:
        if process_name:
            logs = [entry for entry in logs if entry.process == process_name]

        parsed_errors = self.parse_errors(logs)
        if not parsed_errors:
            return ErrorAnalysisResult()

        diagnosis = await self._diagnose(parsed_errors)
        quick_fix = await self._quick_fix(parsed_errors[0])

        return ErrorAnalysisResult(
            has_errors=True,
            error_count=len(parsed_errors),
            parsed_errors=parsed_errors,
            diagnosis=diagnosis,
            quick_fix=quick_fix,
        )

    def parse_errors(self, logs: Sequence[LogEntry]) -> List[ParsedError]:
        """Error-bearing entries as ParsedErrors, newest first."""
        errors = [parse_error(entry) for entry in logs if is_error_entry(entry)]
        return sorted(errors, key=lambda error: timestamp_sort_key(error.timestamp), reverse=True)

    async def _diagnose(self, errors: List[ParsedError]) -> ErrorDiagnosis:
        if not self.ai_available:
            return fallback_diagnosis(errors)

        summary = '\n'.join(f"{error.type}: {error.message[:200]}" for error in errors[:3])
        try:
            response = await self.llm_client.query(DIAGNOSIS_PROMPT.format(errors=summary))
        except Exception as e:
            self.logger.warning(f"AI diagnosis failed, using fallback rules: {e}")
            return fallback_diagnosis(errors)

        return self.parse_diagnosis_response(response, errors)

    def parse_diagnosis_response(self, response: str, errors: List[ParsedError]) -> ErrorDiagnosis:
        """Validate a JSON diagnosis from the LLM field by field."""
        try:
            parsed = json.loads(CODE_FENCE_PATTERN.sub('', response.strip()))
        except (json.JSONDecodeError, TypeError) as e:
            self.logger.debug(f"Unparsable diagnosis response: {e}")
            return fallback_diagnosis(errors)

        if not isinstance(parsed, dict):
            return fallback_diagnosis(errors)

        summary = parsed.get('summary')
        root_cause = parsed.get('rootCause')

        try:
            severity = ErrorSeverity(parsed.get('severity'))
        except ValueError:
            severity = ErrorSeverity.MEDIUM

        confidence = parsed.get('confidence')
        if (isinstance(confidence, (int, float)) and not isinstance(confidence, bool)
                and math.isfinite(confidence) and confidence > 0):
            confidence = min(1.0, float(confidence))
        else:
            confidence = 0.7

        return ErrorDiagnosis(
            summary=summary if isinstance(summary, str) and summary else 'Error analysis completed',
            root_cause=root_cause if isinstance(root_cause, str) and root_cause
            else 'Unable to determine root cause',
            actionable_suggestions=_string_list(parsed.get('actionableSuggestions')),
            follow_up_commands=_string_list(parsed.get('followUpCommands')),
            severity=severity,
            confidence=confidence,
        )

    async def _quick_fix(self, error: ParsedError) -> str:
        if not self.ai_available:
            return fallback_quick_fix(error)

        prompt = QUICK_FIX_PROMPT.format(
            type=error.type, message=error.message[:300], category=error.category.value
        )
        try:
            response = await self.llm_client.query(prompt)
        except Exception as e:
            self.logger.warning(f"AI quick fix failed, using fallback rules: {e}")
            return fallback_quick_fix(error)

        answer = response.strip().strip('"\'').strip()
        return answer or fallback_quick_fix(error)
