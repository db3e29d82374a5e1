"""Async client for the PM2 process manager.

PM2 is driven through its command line: ``pm2 jlist`` for the process list
and ``pm2 <verb> <name>`` for lifecycle operations. Log entries are read
straight from the log files PM2 records in each process environment.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncIterator, List, Optional

from .config import PM2Config
from .services.models.process import LogEntry, LogLevel, ProcessInfo, timestamp_sort_key


TIMESTAMP_PATTERN = re.compile(
    r'(\d{4}-\d{2}-\d{2}[T\s]\d{2}:\d{2}:\d{2}(?:\.\d{3})?(?:Z|[+-]\d{2}:\d{2})?)'
)
LEVEL_PATTERN = re.compile(r'\b(error|err|warn|warning|info|debug)\b', re.IGNORECASE)


class ProcessManagerError(Exception):
    """Exception raised when the process manager cannot complete an operation."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: Optional[str] = None):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ProcessManagerClient(ABC):
    """Operations the assistant needs from a process manager."""

    async def connect(self) -> None:
        """Make sure the manager is reachable."""

    async def disconnect(self) -> None:
        """Release any connection state."""

    @abstractmethod
    async def list(self) -> List[ProcessInfo]:
        pass

    @abstractmethod
    async def describe(self, name: str) -> List[ProcessInfo]:
        pass

    @abstractmethod
    async def restart(self, name: str) -> None:
        pass

    @abstractmethod
    async def stop(self, name: str) -> None:
        pass

    @abstractmethod
    async def start(self, name: str) -> None:
        pass

    @abstractmethod
    async def delete(self, name: str) -> None:
        pass

    @abstractmethod
    async def reload(self, name: str) -> None:
        pass

    @abstractmethod
    async def logs(self, lines: int = 100, errors_only: bool = False,
                   process_name: Optional[str] = None) -> List[LogEntry]:
        pass

    async def get_error_logs(self, process_name: Optional[str] = None, lines: int = 50) -> List[LogEntry]:
        """Recent stderr lines, newest first."""
        return await self.logs(lines=lines, errors_only=True, process_name=process_name)

    async def get_process_names(self) -> List[str]:
        processes = await self.list()
        return [process.name for process in processes]


def parse_log_line(line: str, log_type: str, process_name: str) -> LogEntry:
    """Turn a raw log line into a LogEntry.

    Lines from the stderr file are always errors; stdout lines take their level
    from the first level keyword they contain.
    """
    timestamp_match = TIMESTAMP_PATTERN.search(line)
    level_match = LEVEL_PATTERN.search(line)

    level = LogLevel.INFO
    if log_type == 'err':
        level = LogLevel.ERROR
    elif level_match:
        level_str = level_match.group(1).lower()
        if level_str in ('error', 'err'):
            level = LogLevel.ERROR
        elif level_str in ('warn', 'warning'):
            level = LogLevel.WARN
        elif level_str == 'debug':
            level = LogLevel.DEBUG

    return LogEntry(
        timestamp=timestamp_match.group(1) if timestamp_match else '',
        level=level,
        message=line,
        process=process_name,
        type=log_type,
    )


class PM2Client(ProcessManagerClient):
    """ProcessManagerClient backed by the pm2 command line."""

    def __init__(self, config: Optional[PM2Config] = None):
        self.config = config or PM2Config()
        self.logger = logging.getLogger(__name__)
        self.connected = False

    async def _run(self, *args: str) -> str:
        """Run one pm2 invocation and return its stdout."""
        command = [self.config.pm2_binary, *args]
        self.logger.debug(f"Running: {' '.join(command)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProcessManagerError(
                f"pm2 executable not found: {self.config.pm2_binary}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.config.command_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            raise ProcessManagerError(
                f"pm2 {' '.join(args)} timed out after {self.config.command_timeout}s"
            )

        out = stdout.decode('utf-8', errors='replace')
        err = stderr.decode('utf-8', errors='replace')
        if proc.returncode != 0:
            message = err.strip() or out.strip() or f"exit code {proc.returncode}"
            raise ProcessManagerError(
                f"pm2 {' '.join(args)} failed: {message}",
                returncode=proc.returncode,
                stderr=err,
            )
        return out

    async def connect(self) -> None:
        try:
            await self._run('ping')
        except ProcessManagerError as e:
            raise ProcessManagerError(f"Failed to connect to PM2: {e}") from e
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def list(self) -> List[ProcessInfo]:
        output = await self._run('jlist')

        # pm2 may print update notices before the JSON payload
        start = output.find('[')
        if start == -1:
            raise ProcessManagerError("Failed to get process list: no JSON in pm2 output")

        try:
            raw_processes = json.loads(output[start:])
        except json.JSONDecodeError as e:
            raise ProcessManagerError(f"Failed to get process list: {e}") from e

        return [ProcessInfo.model_validate(raw) for raw in raw_processes]

    async def describe(self, name: str) -> List[ProcessInfo]:
        processes = await self.list()
        return [p for p in processes if p.name == name or str(p.pm_id) == name]

    async def restart(self, name: str) -> None:
        await self._run('restart', name)

    async def stop(self, name: str) -> None:
        await self._run('stop', name)

    async def start(self, name: str) -> None:
        await self._run('start', name)

    async def delete(self, name: str) -> None:
        await self._run('delete', name)

    async def reload(self, name: str) -> None:
        await self._run('reload', name)

    async def logs(self, lines: int = 100, errors_only: bool = False,
                   process_name: Optional[str] = None) -> List[LogEntry]:
        try:
            processes = await self.describe(process_name) if process_name else await self.list()
        except ProcessManagerError as e:
            raise ProcessManagerError(f"Failed to read logs: {e}") from e

        entries: List[LogEntry] = []
        for process in processes:
            env = process.pm2_env
            if env.pm_err_log_path:
                entries.extend(await self._read_log_file(env.pm_err_log_path, lines, 'err', process.name))
            if not errors_only and env.pm_out_log_path:
                entries.extend(await self._read_log_file(env.pm_out_log_path, lines, 'out', process.name))

        entries.sort(key=lambda entry: timestamp_sort_key(entry.timestamp), reverse=True)
        return entries[:lines]

    async def _read_log_file(self, file_path: str, max_lines: int, log_type: str,
                             process_name: str) -> List[LogEntry]:
        path = Path(file_path)
        if not path.exists():
            return []

        try:
            content = await asyncio.to_thread(path.read_text, encoding='utf-8', errors='replace')
        except OSError as e:
            self.logger.warning(f"Cannot read log file {file_path}: {e}")
            return []

        recent = [line for line in content.splitlines() if line.strip()][-max_lines:]
        now = datetime.now()
        entries = []
        for index, line in enumerate(recent):
            entry = parse_log_line(line, log_type, process_name)
            if not entry.timestamp:
                # Untimestamped lines keep file order: older lines get older stamps
                offset = timedelta(seconds=len(recent) - index - 1)
                entry.timestamp = (now - offset).isoformat()
            entries.append(entry)
        return entries

    async def follow_logs(self, process_name: Optional[str] = None) -> AsyncIterator[str]:
        """Yield raw log lines as PM2 emits them until cancelled."""
        args = ['logs', '--raw', '--lines', '0']
        if process_name:
            args.insert(1, process_name)

        try:
            proc = await asyncio.create_subprocess_exec(
                self.config.pm2_binary, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise ProcessManagerError(
                f"pm2 executable not found: {self.config.pm2_binary}"
            ) from e

        try:
            while True:
                line = await proc.stdout.readline()
                if not line:
                    break
                yield line.decode('utf-8', errors='replace').rstrip('\n')
        finally:
            if proc.returncode is None:
                proc.terminate()
                await proc.wait()
