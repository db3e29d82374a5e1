"""Slash command parsing with aliases and fuzzy suggestions."""

import difflib
from dataclasses import dataclass, field
from typing import Dict, List, Optional


COMMANDS: Dict[str, str] = {
    'status': 'Show all processes, or one process: /status [name]',
    'restart': 'Restart a process or all processes: /restart <name|all>',
    'stop': 'Stop a process or all processes: /stop <name|all>',
    'start': 'Start a process or all stopped processes: /start <name|all>',
    'reload': 'Zero-downtime reload of one process: /reload <name>',
    'logs': 'Show recent log lines: /logs <name> [lines]',
    'metrics': 'Show memory and CPU usage: /metrics [name]',
    'errors': 'Analyze recent errors and suggest fixes: /errors [name]',
    'health': 'Run health checks with a score and recommendations: /health [name]',
    'grep': 'Search process logs: /grep <pattern> [name]',
    'history': 'Show this session\'s conversation',
    'stats': 'Show conversation statistics',
    'ai': 'Show the configured AI provider',
    'clear': 'Clear conversation history and pending actions',
    'help': 'Show this help',
    'exit': 'Leave PM2 Pilot',
}


@dataclass
class SlashCommand:
    """A parsed slash command."""
    command: str
    args: List[str] = field(default_factory=list)
    confidence: float = 1.0
    suggestions: List[str] = field(default_factory=list)
    original_input: Optional[str] = None

    @property
    def target(self) -> Optional[str]:
        return self.args[0] if self.args else None

    @property
    def is_known(self) -> bool:
        return self.command in COMMANDS


class CommandParser:
    """Resolves ``/command args`` input to a known command."""

    def __init__(self):
        self.command_aliases = {
            'list': 'status',
            'ls': 'status',
            'ps': 'status',
            'info': 'status',
            'show': 'status',
            'reboot': 'restart',
            'kill': 'stop',
            'launch': 'start',
            'log': 'logs',
            'tail': 'logs',
            'monit': 'metrics',
            'check': 'health',
            'search': 'grep',
            'diagnose': 'errors',
            'err': 'errors',
            'hist': 'history',
            'statistics': 'stats',
            'provider': 'ai',
            'reset': 'clear',
            'h': 'help',
            '?': 'help',
            'quit': 'exit',
            'q': 'exit',
        }

    def parse(self, user_input: str) -> SlashCommand:
        """Parse slash command input.

        Args:
            user_input: Raw input, with or without the leading slash

        Returns:
            SlashCommand; unknown commands carry ``confidence`` below 1.0
            and close-match suggestions
        """
        text = user_input.strip()
        if text.startswith('/'):
            text = text[1:]

        tokens = text.split()
        if not tokens:
            return SlashCommand(command='help', original_input=user_input)

        name = tokens[0].lower()
        args = tokens[1:]

        if name in COMMANDS:
            return SlashCommand(command=name, args=args, original_input=user_input)

        if name in self.command_aliases:
            return SlashCommand(command=self.command_aliases[name], args=args, original_input=user_input)

        return SlashCommand(
            command=name,
            args=args,
            confidence=self._best_ratio(name),
            suggestions=self.suggest(name),
            original_input=user_input,
        )

    def suggest(self, name: str) -> List[str]:
        candidates = set(COMMANDS) | set(self.command_aliases)
        matches = difflib.get_close_matches(name, candidates, n=3, cutoff=0.6)

        suggestions: List[str] = []
        for match in matches:
            resolved = self.command_aliases.get(match, match)
            if resolved not in suggestions:
                suggestions.append(resolved)
        return [f"/{s}" for s in suggestions]

    def _best_ratio(self, name: str) -> float:
        candidates = set(COMMANDS) | set(self.command_aliases)
        return max(difflib.SequenceMatcher(None, name, c).ratio() for c in candidates)

    def help_text(self) -> str:
        width = max(len(name) for name in COMMANDS) + 2
        lines = ["Slash commands:"]
        lines.extend(f"  /{name.ljust(width)}{description}" for name, description in COMMANDS.items())
        lines.extend([
            "",
            "Or just type what you want:",
            '  "restart api-server", "why is worker slow?", "stop everything"',
            "Reply with a number to pick a suggested action, y/N to confirm, or 'cancel'.",
        ])
        return "\n".join(lines)
