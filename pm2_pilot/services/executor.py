"""Execution of router actions against PM2."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..pm2_client import ProcessManagerClient
from ..pm2_manager import PM2Manager, ProcessOperationResult
from ..router.types import ALL_TARGET, Action, ActionType, SafetyLevel
from .models.process import BYTES_PER_MB, ProcessInfo, ProcessStatus, filter_by_status


@dataclass
class ExecutionResult:
    """Result of executing one action."""

    success: bool
    message: str
    data: Any = None
    requires_confirmation: bool = False
    confirmation_prompt: Optional[str] = None

    @classmethod
    def from_operation(cls, result: ProcessOperationResult) -> "ExecutionResult":
        data = {"process_count": result.process_count} if result.process_count else None
        return cls(success=result.success, message=result.message, data=data)


def format_process_status(process: ProcessInfo) -> str:
    return (f"📊 {process.name}: {process.status}\n"
            f"   💾 Memory: {process.memory_mb:.1f}MB\n"
            f"   🔥 CPU: {process.cpu:.1f}%\n"
            f"   🔄 Restarts: {process.restarts}")


def format_process_list_status(processes: List[ProcessInfo]) -> str:
    online = len(filter_by_status(processes, ProcessStatus.ONLINE.value))
    stopped = len(filter_by_status(processes, ProcessStatus.STOPPED.value))
    errored = len(filter_by_status(processes, ProcessStatus.ERRORED.value))

    lines = [f"📈 Process Summary: {len(processes)} total", f"   ✅ Online: {online}"]
    if stopped:
        lines.append(f"   ⏹️  Stopped: {stopped}")
    if errored:
        lines.append(f"   ❌ Errored: {errored}")
    return "\n".join(lines)


def format_process_metrics(process: ProcessInfo) -> str:
    return (f"📊 Metrics for {process.name}:\n"
            f"   💾 Memory: {process.memory_mb:.1f}MB\n"
            f"   🔥 CPU: {process.cpu:.1f}%\n"
            f"   📈 Status: {process.status}")


def format_system_metrics(processes: List[ProcessInfo]) -> str:
    total_memory = sum(p.monit.memory or 0 for p in processes) / BYTES_PER_MB
    total_cpu = sum(p.cpu for p in processes)
    return (f"📊 System Metrics:\n"
            f"   💾 Total Memory: {total_memory:.1f}MB\n"
            f"   🔥 Total CPU: {total_cpu:.1f}%\n"
            f"   📦 Processes: {len(processes)}")


class CommandExecutor:
    """Runs Actions with confirmation gating and formats the outcome."""

    def __init__(self, client: ProcessManagerClient, manager: Optional[PM2Manager] = None):
        self.client = client
        self.manager = manager or PM2Manager(client)
        self.logger = logging.getLogger(__name__)
        self._handlers: Dict[ActionType, Callable[[Action], Awaitable[ExecutionResult]]] = {
            ActionType.RESTART: self._execute_restart,
            ActionType.STOP: self._execute_stop,
            ActionType.START: self._execute_start,
            ActionType.STATUS: self._execute_status,
            ActionType.LOGS: self._execute_logs,
            ActionType.METRICS: self._execute_metrics,
            ActionType.INFO: self._execute_status,
        }

    @staticmethod
    def needs_confirmation(action: Action) -> bool:
        """Dangerous actions, and caution actions aimed at every process."""
        return (action.safety == SafetyLevel.DANGEROUS
                or (action.safety == SafetyLevel.CAUTION and action.target == ALL_TARGET))

    @staticmethod
    def confirmation_prompt(action: Action) -> str:
        """Yes/no question shown before running an action that needs confirmation."""
        emoji = "⚠️" if action.safety == SafetyLevel.DANGEROUS else "🤔"
        verb = action.type.value
        if action.target == ALL_TARGET:
            return (f"{emoji} Are you sure you want to {verb} ALL processes? "
                    f"This will affect your entire PM2 setup. (y/N)")
        if action.target:
            return f'{emoji} Are you sure you want to {verb} "{action.target}"? (y/N)'
        return f"{emoji} Are you sure you want to execute {verb}? (y/N)"

    async def execute_action(self, action: Action, user_confirmed: bool = False,
                             skip_confirmation: bool = False) -> ExecutionResult:
        """Execute one action.

        Args:
            action: Action to run
            user_confirmed: The user already answered yes to the confirmation prompt
            skip_confirmation: Run without asking, for callers that applied their own policy

        Returns:
            ExecutionResult. When confirmation is needed and neither flag is
            set, nothing runs and the result carries ``requires_confirmation``
            with the prompt. PM2 failures come back as unsuccessful results.
        """
        if self.needs_confirmation(action) and not (user_confirmed or skip_confirmation):
            return ExecutionResult(
                success=False,
                message="Confirmation required",
                requires_confirmation=True,
                confirmation_prompt=self.confirmation_prompt(action),
            )

        handler = self._handlers.get(action.type)
        if handler is None:
            # Every ActionType needs a handler above
            raise AssertionError(f"Unhandled action type: {action.type}")

        self.logger.debug(f"Executing {action.description}")
        try:
            return await handler(action)
        except Exception as e:
            self.logger.error(f"Failed to execute {action.type.value}: {e}")
            return ExecutionResult(success=False, message=f"Failed to execute {action.type.value}: {e}")

    async def execute_multiple_actions(self, actions: List[Action], user_confirmed: bool = False,
                                       skip_confirmation: bool = False) -> List[ExecutionResult]:
        """Run actions in order; a failed dangerous action halts the rest."""
        results = []
        for action in actions:
            result = await self.execute_action(action, user_confirmed, skip_confirmation)
            results.append(result)
            if not result.success and action.safety == SafetyLevel.DANGEROUS:
                self.logger.warning(f"Stopping batch after failed {action.description}")
                break
        return results

    async def _execute_restart(self, action: Action) -> ExecutionResult:
        if action.target == ALL_TARGET:
            return ExecutionResult.from_operation(await self.manager.restart_all())
        if action.target:
            return ExecutionResult.from_operation(await self.manager.restart_process(action.target))
        return ExecutionResult(success=False, message="No target specified for restart action")

    async def _execute_stop(self, action: Action) -> ExecutionResult:
        if action.target == ALL_TARGET:
            return ExecutionResult.from_operation(await self.manager.stop_all())
        if action.target:
            return ExecutionResult.from_operation(await self.manager.stop_process(action.target))
        return ExecutionResult(success=False, message="No target specified for stop action")

    async def _execute_start(self, action: Action) -> ExecutionResult:
        if action.target == ALL_TARGET:
            return ExecutionResult.from_operation(await self.manager.start_all())
        if action.target:
            return ExecutionResult.from_operation(await self.manager.start_process(action.target))
        return ExecutionResult(success=False, message="No target specified for start action")

    async def _find_process(self, name: str) -> Optional[ProcessInfo]:
        processes = await self.client.list()
        return next((p for p in processes if p.name == name), None)

    async def _execute_status(self, action: Action) -> ExecutionResult:
        if action.target and action.target != ALL_TARGET:
            process = await self._find_process(action.target)
            if process is None:
                return ExecutionResult(success=False, message=f'❌ Process "{action.target}" not found')
            return ExecutionResult(success=True, message=format_process_status(process), data=process)

        processes = await self.client.list()
        if not processes:
            return ExecutionResult(success=True, message="No PM2 processes running")
        return ExecutionResult(success=True, message=format_process_list_status(processes), data=processes)

    async def _execute_logs(self, action: Action) -> ExecutionResult:
        if not action.target or action.target == ALL_TARGET:
            return ExecutionResult(
                success=False,
                message="Please specify a process name for logs. Use: logs <process-name>",
            )
        return ExecutionResult(
            success=True,
            message=(f'📜 Starting log stream for "{action.target}". '
                     f'Use /logs {action.target} to see live logs.'),
            data={"process": action.target},
        )

    async def _execute_metrics(self, action: Action) -> ExecutionResult:
        if action.target and action.target != ALL_TARGET:
            process = await self._find_process(action.target)
            if process is None:
                return ExecutionResult(success=False, message=f'❌ Process "{action.target}" not found')
            return ExecutionResult(success=True, message=format_process_metrics(process),
                                   data=process.monit)

        processes = await self.client.list()
        return ExecutionResult(
            success=True,
            message=format_system_metrics(processes),
            data=[{"name": p.name, "memory": p.monit.memory, "cpu": p.monit.cpu} for p in processes],
        )
