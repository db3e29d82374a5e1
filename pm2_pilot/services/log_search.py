"""Pattern search across PM2 process logs."""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from ..pm2_client import ProcessManagerClient, ProcessManagerError
from .models.process import LogEntry


SEARCH_LINES = 1000
MAX_MATCHES = 20


@dataclass
class ProcessMatches:
    """Matching lines of one process, oldest first."""
    process: str
    out: List[LogEntry] = field(default_factory=list)
    err: List[LogEntry] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.out) + len(self.err)


@dataclass
class LogSearchResult:
    pattern: str
    processes: List[ProcessMatches] = field(default_factory=list)

    @property
    def total_matches(self) -> int:
        return sum(p.count for p in self.processes)


def compile_pattern(pattern: str) -> Pattern[str]:
    """Case-insensitive regex; text that is not a valid regex is matched literally."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


class LogSearchService:
    """Searches recent stdout and stderr lines of one or all processes."""

    def __init__(self, client: ProcessManagerClient, lines: int = SEARCH_LINES,
                 max_matches: int = MAX_MATCHES):
        self.client = client
        self.lines = lines
        self.max_matches = max_matches
        self.logger = logging.getLogger(__name__)

    async def search(self, pattern: str, process_name: Optional[str] = None) -> LogSearchResult:
        """Search process logs for a pattern.

        Args:
            pattern: Regular expression, or literal text when it does not compile
            process_name: Restrict the search to one process

        Returns:
            LogSearchResult with up to ``max_matches`` of the most recent
            matches per process and log file

        Raises:
            ProcessManagerError: If PM2 cannot be queried or the process does not exist
        """
        processes = await self.client.list()
        names = [p.name for p in processes]
        if process_name:
            if process_name not in names:
                raise ProcessManagerError(f'Process "{process_name}" not found')
            names = [process_name]

        regex = compile_pattern(pattern)
        result = LogSearchResult(pattern=pattern)
        for name in names:
            entries = await self.client.logs(lines=self.lines, process_name=name)
            matches = ProcessMatches(process=name)
            # logs() returns newest first
            for entry in reversed(entries):
                if regex.search(entry.message):
                    (matches.err if entry.type == 'err' else matches.out).append(entry)
            matches.out = matches.out[-self.max_matches:]
            matches.err = matches.err[-self.max_matches:]
            self.logger.debug(f"{matches.count} matches for {pattern!r} in {name}")
            result.processes.append(matches)
        return result
