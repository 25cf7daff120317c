import pytest
from unittest.mock import AsyncMock, MagicMock

from asyncutils.core.command_handler import CommandHandler
from asyncutils.core.services.simulation_service import (
    BatchReport, MemoReport, QueueReport, RetryReport, SimulatedTaskError, SimulationService, TimeoutReport,
)
from asyncutils.domain.events.task_events import RetryScheduled
from asyncutils.domain.models.common import TaskStatus
from asyncutils.domain.models.policies import RetryPolicy
from asyncutils.infrastructure.concurrency.runner import TaskOutcome
from asyncutils.infrastructure.concurrency.task_queue import QueueEntry


@pytest.fixture
def mock_simulation_service():
    service = MagicMock(spec=SimulationService)
    service.run_batch = AsyncMock()
    service.run_queue = AsyncMock()
    service.run_retry = AsyncMock()
    service.run_timeout = AsyncMock()
    return service


@pytest.fixture
def command_handler(mock_simulation_service, mock_ui):
    """Fixture to create CommandHandler with mocked services."""
    return CommandHandler(simulation_service=mock_simulation_service, ui=mock_ui)


@pytest.mark.asyncio
async def test_handle_run_batch(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    """Test that handle_run_batch renders one row per outcome."""
    error = SimulatedTaskError("task-1 failed")
    mock_simulation_service.run_batch.return_value = BatchReport(
        outcomes=[TaskOutcome(index=0, value="task-0"), TaskOutcome(index=1, error=error)],
        elapsed=0.1,
        peak_running=2,
    )

    await command_handler.handle_run_batch(2, 2, 0.01, fail_every=2)

    mock_simulation_service.run_batch.assert_awaited_once_with(2, 2, 0.01, 2)
    columns, rows = mock_ui.display_table.call_args.args
    assert columns == ["#", "Outcome", "Detail"]
    assert rows == [(0, "ok", "task-0"), (1, "failed", repr(error))]
    assert "1 failed" in mock_ui.display_info.call_args.args[0]
    mock_ui.display_error.assert_not_called()


@pytest.mark.asyncio
async def test_handle_run_batch_error(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    """Test that errors during a batch run are displayed."""
    mock_simulation_service.run_batch.side_effect = ValueError("Concurrency limit must be at least 1.")

    await command_handler.handle_run_batch(2, 0, 0.01)

    mock_ui.display_error.assert_called_once_with("Batch run failed: Concurrency limit must be at least 1.")
    mock_ui.display_table.assert_not_called()


@pytest.mark.asyncio
async def test_handle_queue(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    entries = [
        QueueEntry(id=1, task=None, status=TaskStatus.FULFILLED, result="task-0"),
        QueueEntry(id=2, task=None, status=TaskStatus.CANCELLED),
    ]
    stats = {"queued": 0, "running": 0, "fulfilled": 1, "rejected": 0, "cancelled": 1, "total": 2}
    mock_simulation_service.run_queue.return_value = QueueReport(stats=stats, entries=entries, elapsed=0.05, peak_running=1)

    await command_handler.handle_queue(2, 1, 0.01, clear_after=1)

    mock_simulation_service.run_queue.assert_awaited_once_with(2, 1, 0.01, 1, 0)
    entry_call, stats_call = mock_ui.display_table.call_args_list
    assert entry_call.args[1] == [(1, "fulfilled", "task-0"), (2, "cancelled", None)]
    assert entry_call.kwargs["title"] == "Queue entries"
    assert ("cancelled", 1) in stats_call.args[1]
    mock_ui.display_info.assert_called_once()


@pytest.mark.asyncio
async def test_handle_retry_success(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    retries = [RetryScheduled(operation="flaky", attempt_number=1, delay_seconds=0.5, error_type="SimulatedTaskError")]
    mock_simulation_service.run_retry.return_value = RetryReport(
        attempts=2, elapsed=0.5, value="succeeded on attempt 2", retries=retries,
    )
    policy = RetryPolicy(max_attempts=3, delay=0.5)

    await command_handler.handle_retry(1, policy)

    mock_simulation_service.run_retry.assert_awaited_once_with(1, policy)
    assert mock_ui.display_table.call_args.args[1] == [(1, "SimulatedTaskError", "0.500")]
    output = mock_ui.display_output.call_args
    assert output.args[0].startswith("succeeded on attempt 2")
    assert output.kwargs["title"] == "Retry"


@pytest.mark.asyncio
async def test_handle_retry_exhausted(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    mock_simulation_service.run_retry.return_value = RetryReport(
        attempts=1, elapsed=0.0, error=SimulatedTaskError("attempt 1 failed"),
    )

    await command_handler.handle_retry(5, RetryPolicy(max_attempts=1))

    mock_ui.display_table.assert_not_called()
    mock_ui.display_error.assert_called_once_with("Gave up after 1 attempts: attempt 1 failed")


@pytest.mark.asyncio
async def test_handle_timeout(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    mock_simulation_service.run_timeout.return_value = TimeoutReport(timed_out=True, elapsed=0.1)
    await command_handler.handle_timeout(1.0, 0.1)
    mock_ui.display_warning.assert_called_once()

    mock_simulation_service.run_timeout.return_value = TimeoutReport(timed_out=False, elapsed=0.01, value="task-0")
    await command_handler.handle_timeout(0.01, 1.0)
    assert mock_ui.display_output.call_args.args[0].startswith("task-0 settled")


@pytest.mark.asyncio
async def test_handle_timeout_error(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    mock_simulation_service.run_timeout.side_effect = ValueError("timeout must be non-negative")
    await command_handler.handle_timeout(1.0, -1)
    mock_ui.display_error.assert_called_once_with("Timeout simulation failed: timeout must be non-negative")


def test_handle_show_config(command_handler: CommandHandler, mock_ui: MagicMock):
    command_handler.handle_show_config({"retry.delay": 0.5, "queue.concurrency": 4})
    mock_ui.display_table.assert_called_once_with(
        ["Key", "Value"],
        [("queue.concurrency", 4), ("retry.delay", 0.5)],
        title="Effective configuration",
    )


@pytest.mark.asyncio
async def test_handle_memo(command_handler: CommandHandler, mock_simulation_service: MagicMock, mock_ui: MagicMock):
    mock_simulation_service.run_memo = AsyncMock(
        return_value=MemoReport(calls=8, invocations=2, hits=4, shared=2, elapsed=0.05),
    )

    await command_handler.handle_memo(4, 2, 0.01, 30.0)

    mock_simulation_service.run_memo.assert_awaited_once_with(4, 2, 0.01, 30.0)
    rows = mock_ui.display_table.call_args.args[1]
    assert ("invocations", 2) in rows
    assert mock_ui.display_table.call_args.kwargs["title"] == "Memoization"
