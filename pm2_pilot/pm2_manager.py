"""Process lifecycle operations with user-facing result messages."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from .pm2_client import ProcessManagerClient
from .services.models.process import ProcessStatus, filter_by_status


@dataclass
class ProcessOperationResult:
    """Outcome of a lifecycle operation."""

    success: bool
    message: str
    process_count: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def success_result(cls, message: str, process_count: Optional[int] = None) -> "ProcessOperationResult":
        return cls(success=True, message=message, process_count=process_count)

    @classmethod
    def error_result(cls, message: str, error: str) -> "ProcessOperationResult":
        return cls(success=False, message=f"{message}: {error}", error=error)


class PM2Manager:
    """Wraps a ProcessManagerClient with batch handling and messages.

    Batch operations list processes first so that a no-op can be reported
    as such instead of issuing a pointless pm2 call.
    """

    def __init__(self, client: ProcessManagerClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def restart_all(self) -> ProcessOperationResult:
        """Restart every process; a no-op with count 0 when none exist."""
        try:
            processes = await self.client.list()
            if not processes:
                return ProcessOperationResult.success_result("No processes to restart", 0)
            await self.client.restart("all")
        except Exception as e:
            self.logger.error(f"Failed to restart all processes: {e}")
            return ProcessOperationResult.error_result("Failed to restart processes", str(e))

        return ProcessOperationResult.success_result(
            f"✅ Restarted {len(processes)} processes successfully", len(processes)
        )

    async def stop_all(self) -> ProcessOperationResult:
        try:
            processes = await self.client.list()
            online = filter_by_status(processes, ProcessStatus.ONLINE.value)
            if not online:
                return ProcessOperationResult.success_result("No online processes to stop", 0)
            await self.client.stop("all")
        except Exception as e:
            self.logger.error(f"Failed to stop all processes: {e}")
            return ProcessOperationResult.error_result("Failed to stop processes", str(e))

        return ProcessOperationResult.success_result(
            f"✅ Stopped {len(online)} processes successfully", len(online)
        )

    async def start_all(self) -> ProcessOperationResult:
        try:
            processes = await self.client.list()
            stopped = filter_by_status(processes, ProcessStatus.STOPPED.value)
            if not stopped:
                return ProcessOperationResult.success_result("No stopped processes to start", 0)
            await self.client.start("all")
        except Exception as e:
            self.logger.error(f"Failed to start all processes: {e}")
            return ProcessOperationResult.error_result("Failed to start processes", str(e))

        return ProcessOperationResult.success_result(
            f"✅ Started {len(stopped)} processes successfully", len(stopped)
        )

    async def _single(self, verb: str, past: str, name: str,
                      operation: Callable[[str], Awaitable[None]]) -> ProcessOperationResult:
        try:
            await operation(name)
        except Exception as e:
            self.logger.error(f"Failed to {verb} {name}: {e}")
            return ProcessOperationResult.error_result(f'Failed to {verb} "{name}"', str(e))
        return ProcessOperationResult.success_result(f'✅ {past} "{name}" successfully')

    async def restart_process(self, name: str) -> ProcessOperationResult:
        return await self._single("restart", "Restarted", name, self.client.restart)

    async def stop_process(self, name: str) -> ProcessOperationResult:
        return await self._single("stop", "Stopped", name, self.client.stop)

    async def start_process(self, name: str) -> ProcessOperationResult:
        return await self._single("start", "Started", name, self.client.start)

    async def reload_process(self, name: str) -> ProcessOperationResult:
        return await self._single("reload", "Reloaded", name, self.client.reload)

    async def get_process_status(self) -> Dict[str, int]:
        """Counts used by the shell banner; zeros when PM2 is unreachable."""
        try:
            processes = await self.client.list()
        except Exception as e:
            self.logger.warning(f"Could not list processes: {e}")
            return {"process_count": 0, "online_count": 0}

        return {
            "process_count": len(processes),
            "online_count": len(filter_by_status(processes, ProcessStatus.ONLINE.value)),
        }
