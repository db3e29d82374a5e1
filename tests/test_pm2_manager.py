"""Tests for PM2Manager lifecycle operations."""

import pytest

from pm2_pilot.pm2_client import ProcessManagerError
from pm2_pilot.pm2_manager import PM2Manager, ProcessOperationResult


@pytest.fixture
def manager(mock_pm2_client):
    return PM2Manager(mock_pm2_client)


class TestProcessOperationResult:

    def test_success_result(self):
        result = ProcessOperationResult.success_result("done", 2)
        assert result.success is True
        assert result.process_count == 2
        assert result.error is None

    def test_error_result(self):
        result = ProcessOperationResult.error_result("Failed to stop processes", "timeout")
        assert result.success is False
        assert result.message == "Failed to stop processes: timeout"
        assert result.error == "timeout"


class TestBatchOperations:
    """Batch operations report zero-op results without calling pm2."""

    @pytest.mark.asyncio
    async def test_restart_all(self, manager, mock_pm2_client):
        result = await manager.restart_all()

        assert result.success is True
        assert result.process_count == 3
        mock_pm2_client.restart.assert_awaited_once_with("all")

    @pytest.mark.asyncio
    async def test_restart_all_without_processes(self, manager, mock_pm2_client):
        mock_pm2_client.list.return_value = []

        result = await manager.restart_all()

        assert result.message == "No processes to restart"
        assert result.process_count == 0
        mock_pm2_client.restart.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_all_without_online(self, manager, mock_pm2_client, process_factory):
        mock_pm2_client.list.return_value = [process_factory("worker", "stopped")]

        result = await manager.stop_all()

        assert result.success is True
        assert result.message == "No online processes to stop"
        mock_pm2_client.stop.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_all_without_stopped(self, manager, mock_pm2_client, process_factory):
        mock_pm2_client.list.return_value = [process_factory("api", "online")]

        result = await manager.start_all()

        assert result.message == "No stopped processes to start"
        mock_pm2_client.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_all_counts_online(self, manager, mock_pm2_client, process_factory):
        mock_pm2_client.list.return_value = [
            process_factory("a", "online", pm_id=0),
            process_factory("b", "online", pm_id=1),
            process_factory("c", "errored", pm_id=2),
        ]

        result = await manager.stop_all()

        assert result.message == "✅ Stopped 2 processes successfully"
        assert result.process_count == 2

    @pytest.mark.asyncio
    async def test_batch_failure(self, manager, mock_pm2_client):
        mock_pm2_client.restart.side_effect = ProcessManagerError("pm2 restart all failed: exit code 1")

        result = await manager.restart_all()

        assert result.success is False
        assert result.message == "Failed to restart processes: pm2 restart all failed: exit code 1"


class TestSingleOperations:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,client_method,past", [
        ("restart_process", "restart", "Restarted"),
        ("stop_process", "stop", "Stopped"),
        ("start_process", "start", "Started"),
        ("reload_process", "reload", "Reloaded"),
    ])
    async def test_success(self, manager, mock_pm2_client, method, client_method, past):
        result = await getattr(manager, method)("api")

        assert result.success is True
        assert result.message == f'✅ {past} "api" successfully'
        getattr(mock_pm2_client, client_method).assert_awaited_once_with("api")

    @pytest.mark.asyncio
    async def test_failure(self, manager, mock_pm2_client):
        mock_pm2_client.stop.side_effect = ProcessManagerError("process or namespace api not found")

        result = await manager.stop_process("api")

        assert result.success is False
        assert result.message == 'Failed to stop "api": process or namespace api not found'


class TestProcessStatus:

    @pytest.mark.asyncio
    async def test_counts(self, manager):
        assert await manager.get_process_status() == {"process_count": 3, "online_count": 1}

    @pytest.mark.asyncio
    async def test_unreachable_pm2(self, manager, mock_pm2_client):
        mock_pm2_client.list.side_effect = ProcessManagerError("pm2 executable not found: pm2")
        assert await manager.get_process_status() == {"process_count": 0, "online_count": 0}
