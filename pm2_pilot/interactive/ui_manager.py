"""Terminal output formatting for PM2 Pilot."""

from enum import Enum
from typing import List, Optional, Sequence

import click

from ..router.types import InputAnalysis
from ..services.conversation import PendingAction
from ..services.health import CRITICAL_SCORE, GOOD_SCORE, CheckStatus, HealthReport
from ..services.log_search import LogSearchResult
from ..services.models.errors import ErrorAnalysisResult, ErrorSeverity
from ..services.models.process import LogEntry, ProcessInfo


class MessageType(Enum):
    """Kinds of messages printed by the shell."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    PROMPT = "prompt"


MESSAGE_STYLES = {
    MessageType.SUCCESS: ("✅", "green"),
    MessageType.ERROR: ("❌", "red"),
    MessageType.WARNING: ("⚠️ ", "yellow"),
    MessageType.INFO: ("ℹ️ ", "blue"),
    MessageType.PROMPT: ("🚀", "magenta"),
}

STATUS_COLORS = {
    "online": "green",
    "stopped": "yellow",
    "stopping": "yellow",
    "launching": "cyan",
    "errored": "red",
}

SEVERITY_COLORS = {
    ErrorSeverity.CRITICAL: "red",
    ErrorSeverity.HIGH: "red",
    ErrorSeverity.MEDIUM: "yellow",
    ErrorSeverity.LOW: "blue",
}

CHECK_STYLES = {
    CheckStatus.PASS: ("✓", "green"),
    CheckStatus.WARN: ("⚠", "yellow"),
    CheckStatus.FAIL: ("✗", "red"),
}

HEALTH_BAR_WIDTH = 30


class UIManager:
    """Formats and prints shell output, optionally colored with click."""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors

    def colorize(self, text: str, color: Optional[str], bold: bool = False) -> str:
        if not self.use_colors or not color:
            return text
        return click.style(text, fg=color, bold=bold)

    def format_message(self, message: str, msg_type: MessageType = MessageType.INFO) -> str:
        icon, color = MESSAGE_STYLES[msg_type]
        return f"{icon} {self.colorize(message, color)}"

    def print_message(self, message: str, msg_type: MessageType = MessageType.INFO) -> None:
        click.echo(self.format_message(message, msg_type))

    def print_success(self, message: str) -> None:
        self.print_message(message, MessageType.SUCCESS)

    def print_error(self, message: str) -> None:
        self.print_message(message, MessageType.ERROR)

    def print_warning(self, message: str) -> None:
        self.print_message(message, MessageType.WARNING)

    def print_info(self, message: str) -> None:
        self.print_message(message, MessageType.INFO)

    def echo(self, text: str = "") -> None:
        click.echo(text)

    def format_prompt(self, prompt: str = "pm2-pilot") -> str:
        icon, color = MESSAGE_STYLES[MessageType.PROMPT]
        return f"{icon} {self.colorize(prompt, color)}> "

    def print_welcome(self, process_count: int, online_count: int, ai_info: Optional[str]) -> None:
        click.echo(self.colorize("PM2 Pilot - talk to your PM2 processes", "cyan", bold=True))
        click.echo("=" * 50)
        click.echo(f"Processes: {process_count} ({online_count} online)")
        click.echo(f"AI: {ai_info or 'not configured (heuristics only)'}")
        click.echo("Type /help for commands, or ask in plain language. 'exit' to quit.")
        click.echo()

    def print_goodbye(self) -> None:
        self.print_success("Goodbye!")

    def colorize_status(self, status: str) -> str:
        return self.colorize(status, STATUS_COLORS.get(status))

    def format_process_table(self, processes: Sequence[ProcessInfo]) -> str:
        if not processes:
            return "No PM2 processes running"

        name_width = max(len("name"), *(len(p.name) for p in processes))
        header = f"{'id':>3}  {'name'.ljust(name_width)}  {'status':<10}  {'cpu':>6}  {'memory':>9}  {'restarts':>8}"
        lines = [header, "-" * len(header)]
        for p in processes:
            pm_id = "" if p.pm_id is None else str(p.pm_id)
            # pad before coloring so ANSI codes do not break alignment
            status = self.colorize_status(p.status.ljust(10))
            lines.append(
                f"{pm_id:>3}  {p.name.ljust(name_width)}  {status}  "
                f"{p.cpu:>5.1f}%  {p.memory_mb:>7.1f}MB  {p.restarts:>8}"
            )
        return "\n".join(lines)

    def format_log_entries(self, entries: Sequence[LogEntry]) -> str:
        if not entries:
            return "No log entries found"

        lines = []
        for entry in reversed(entries):
            color = "red" if entry.level == "error" else "yellow" if entry.level == "warn" else None
            prefix = self.colorize(f"[{entry.process}]", "cyan")
            lines.append(f"{prefix} {self.colorize(entry.message, color)}")
        return "\n".join(lines)

    def format_pending_actions(self, pending: Sequence[PendingAction]) -> str:
        lines = ["Suggested actions:"]
        lines.extend(f"  {p.id}. {p.label}  ({p.command})" for p in pending)
        lines.append("Reply with a number to run one, or 'cancel'.")
        return "\n".join(lines)

    def format_analysis(self, analysis: InputAnalysis) -> str:
        """One-line debug view of how an input was classified."""
        actions = ", ".join(a.description for a in analysis.suggested_actions) or "none"
        return (f"intent={analysis.intent.value} confidence={analysis.confidence} "
                f"action_confidence={analysis.action_confidence} actions=[{actions}]")

    def format_error_analysis(self, result: ErrorAnalysisResult, limit: int = 5) -> str:
        if not result.has_errors:
            return "No errors found in recent logs"

        lines = [self.colorize(f"Found {result.error_count} error(s)", "red", bold=True), ""]
        for error in result.parsed_errors[:limit]:
            severity = self.colorize(error.severity.value.upper(), SEVERITY_COLORS.get(error.severity))
            where = f" [{error.process_name}]" if error.process_name else ""
            lines.append(f"{severity} {error.type}{where}")
            lines.append(f"   {error.context}")
            if error.file_path:
                location = error.file_path
                if error.line_number:
                    location += f":{error.line_number}"
                lines.append(f"   File: {location}")
        if result.error_count > limit:
            lines.append(f"   ... and {result.error_count - limit} more")

        diagnosis = result.diagnosis
        if diagnosis:
            lines.extend(["", self.colorize("Diagnosis", "cyan", bold=True)])
            lines.append(f"   {diagnosis.summary}")
            lines.append(f"   Root cause: {diagnosis.root_cause}")
            lines.extend(self._bullets("Suggestions", diagnosis.actionable_suggestions))
            lines.extend(self._bullets("Try next", diagnosis.follow_up_commands))

        if result.quick_fix:
            lines.extend(["", f"💡 Quick fix: {result.quick_fix}"])
        return "\n".join(lines)

    def format_health_report(self, report: HealthReport) -> str:
        if not report.processes:
            return "No PM2 processes running"

        lines = [self.colorize("🏥 PM2 Health Check Report", "blue", bold=True)]
        for process in report.processes:
            lines.extend(["", self.colorize(f"📍 {process.name}:", "cyan")])
            for check in process.checks:
                icon, color = CHECK_STYLES[check.status]
                lines.append(f"  {self.colorize(icon, color)} {self.colorize(check.name, color)}: {check.message}")
                if check.details:
                    lines.append(f"     └─ {check.details}")
            lines.append(f"  Health Score: {process.percentage}%")

        percentage = report.percentage
        color = "green" if percentage >= GOOD_SCORE else "yellow" if percentage >= CRITICAL_SCORE else "red"
        filled = int(percentage * HEALTH_BAR_WIDTH / 100 + 0.5)
        bar = "█" * filled + "░" * (HEALTH_BAR_WIDTH - filled)
        lines.extend([
            "",
            self.colorize("📊 Overall Health Score:", "blue", bold=True),
            f"  {self.colorize(bar, color)} {percentage}%",
            "",
            self.colorize(report.verdict, color, bold=True),
        ])
        lines.extend(f"  • {item}" for item in report.recommendations)
        return "\n".join(lines)

    def format_search_results(self, result: LogSearchResult) -> str:
        if not result.processes:
            return "No PM2 processes running"

        noun = "process" if len(result.processes) == 1 else "processes"
        lines = [self.colorize(f'🔍 Searching for: "{result.pattern}" in {len(result.processes)} {noun}',
                               "blue", bold=True)]
        for matches in result.processes:
            lines.extend(["", self.colorize(f"📄 {matches.process}:", "cyan")])
            if not matches.count:
                lines.append("  No matches")
                continue
            if matches.out:
                lines.append("  Output log matches:")
                lines.extend(f"    {entry.message}" for entry in matches.out)
            if matches.err:
                lines.append(self.colorize("  Error log matches:", "red"))
                lines.extend(f"    {self.colorize(entry.message, 'red')}" for entry in matches.err)
        lines.extend(["", f"{result.total_matches} match(es)"])
        return "\n".join(lines)

    @staticmethod
    def _bullets(title: str, items: List[str]) -> List[str]:
        if not items:
            return []
        return [f"   {title}:"] + [f"     • {item}" for item in items]
