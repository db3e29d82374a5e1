"""Pytest configuration and shared fixtures."""

import pytest
import os
import logging
from unittest.mock import AsyncMock, Mock

from pm2_pilot.llm_client import LLMClient
from pm2_pilot.pm2_client import ProcessManagerClient
from pm2_pilot.services.models.process import LogEntry, ProcessInfo

# Disable logging during tests to reduce noise
logging.disable(logging.CRITICAL)

MB = 1024 * 1024


@pytest.fixture(autouse=True)
def clean_env():
    """Clean environment variables before each test."""
    env_vars_to_clean = [
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
        "AI_PROVIDER",
        "DEFAULT_MODEL",
        "AI_TEMPERATURE",
        "AI_MAX_TOKENS",
        "AI_REQUEST_TIMEOUT",
        "PM2_BINARY",
        "PM2_LOG_LINES",
        "PM2_COMMAND_TIMEOUT",
        "PM2_PILOT_AUTO_EXECUTE",
        "PM2_PILOT_CONFIRMATION_LEVEL",
        "PM2_PILOT_MAX_HISTORY",
        "PM2_PILOT_HISTORY_FILE",
        "PM2_PILOT_USE_COLORS",
        "PM2_PILOT_SHOW_CONFIDENCE",
        "LOG_LEVEL",
    ]

    # Store original values
    original_values = {}
    for var in env_vars_to_clean:
        original_values[var] = os.environ.get(var)
        if var in os.environ:
            del os.environ[var]

    yield

    # Restore original values
    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]


def make_process(name, status="online", pm_id=0, memory_mb=50, cpu=1.5, restarts=0, **env):
    """Build a ProcessInfo the way `pm2 jlist` would describe it."""
    return ProcessInfo.model_validate({
        "name": name,
        "pid": 1000 + pm_id if status == "online" else 0,
        "pm_id": pm_id,
        "monit": {"memory": int(memory_mb * MB), "cpu": cpu},
        "pm2_env": {"status": status, "pm_id": pm_id, "restart_time": restarts, **env},
    })


@pytest.fixture
def process_factory():
    return make_process


@pytest.fixture
def sample_processes():
    """Sample process list for testing."""
    return [
        make_process("api-server", "online", pm_id=0, memory_mb=120, cpu=12.5, restarts=2),
        make_process("worker", "stopped", pm_id=1, memory_mb=0, cpu=0),
        make_process("scheduler", "errored", pm_id=2, memory_mb=600, cpu=0, restarts=9),
    ]


@pytest.fixture
def sample_log_entries():
    """Sample stderr entries, oldest first."""
    return [
        LogEntry(
            timestamp="2024-01-15T10:00:00.000Z",
            level="error",
            message="Error: connect ECONNREFUSED 127.0.0.1:5432",
            process="api-server",
            type="err",
        ),
        LogEntry(
            timestamp="2024-01-15T10:05:00.000Z",
            level="info",
            message="Server listening on port 3000",
            process="api-server",
            type="out",
        ),
        LogEntry(
            timestamp="2024-01-15T10:10:00.000Z",
            level="error",
            message="Error [ERR_MODULE_NOT_FOUND]: Cannot find module '/app/x.js' imported from /app/index.js",
            process="worker",
            type="err",
        ),
    ]


@pytest.fixture
def mock_pm2_client(sample_processes):
    """ProcessManagerClient double with async methods."""
    client = Mock(spec=ProcessManagerClient)
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    client.list = AsyncMock(return_value=sample_processes)
    client.describe = AsyncMock(return_value=sample_processes[:1])
    client.restart = AsyncMock()
    client.stop = AsyncMock()
    client.start = AsyncMock()
    client.delete = AsyncMock()
    client.reload = AsyncMock()
    client.logs = AsyncMock(return_value=[])
    client.get_error_logs = AsyncMock(return_value=[])
    client.get_process_names = AsyncMock(return_value=[p.name for p in sample_processes])
    return client


@pytest.fixture
def mock_llm_client():
    """Configured LLM client double; set query.return_value or side_effect per test."""
    client = Mock(spec=LLMClient)
    client.is_configured.return_value = True
    client.query = AsyncMock(return_value="")
    client.query_with_history = AsyncMock(return_value="")
    client.get_config_info.return_value = "Provider: openai (configured)\nModel: gpt-4o-mini"
    return client
