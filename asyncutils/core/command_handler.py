"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work
to the SimulationService and renders the resulting reports through the
injected UserInterface.
"""

import logging
from typing import Any, Dict

from asyncutils.core.services.simulation_service import SimulationService
from asyncutils.domain.interfaces.user_interface import UserInterface
from asyncutils.domain.models.policies import RetryPolicy

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the simulation service."""

    def __init__(self, simulation_service: SimulationService, ui: UserInterface):
        self.simulation_service = simulation_service
        self.ui = ui

    async def handle_run_batch(self, count: int, limit: int, duration: float, fail_every: int = 0) -> None:
        """Handles the 'run-batch' command."""
        logger.info(f"Handling 'run-batch': count={count}, limit={limit}, duration={duration}, fail_every={fail_every}")
        try:
            report = await self.simulation_service.run_batch(count, limit, duration, fail_every)
        except Exception as e:
            logger.error(f"Batch run failed: {e}", exc_info=True)
            self.ui.display_error(f"Batch run failed: {e}")
            return

        rows = [
            (o.index, "ok" if o.ok else "failed", o.value if o.ok else repr(o.error))
            for o in report.outcomes
        ]
        self.ui.display_table(["#", "Outcome", "Detail"], rows, title="Batch outcomes")
        failed = sum(1 for o in report.outcomes if not o.ok)
        self.ui.display_info(
            f"{len(report.outcomes)} tasks, {failed} failed, peak concurrency {report.peak_running}/{limit}, "
            f"elapsed {report.elapsed:.3f}s"
        )

    async def handle_queue(self, count: int, concurrency: int, duration: float, clear_after: int = 0, fail_every: int = 0) -> None:
        """Handles the 'queue' command."""
        logger.info(f"Handling 'queue': count={count}, concurrency={concurrency}, clear_after={clear_after}")
        try:
            report = await self.simulation_service.run_queue(count, concurrency, duration, clear_after, fail_every)
        except Exception as e:
            logger.error(f"Queue simulation failed: {e}", exc_info=True)
            self.ui.display_error(f"Queue simulation failed: {e}")
            return

        rows = [
            (entry.id, entry.status.value, entry.result if entry.error is None else repr(entry.error))
            for entry in report.entries
        ]
        self.ui.display_table(["Id", "Status", "Detail"], rows, title="Queue entries")
        stats = report.stats
        self.ui.display_table(
            ["Status", "Count"],
            [(name, stats[name]) for name in ("queued", "running", "fulfilled", "rejected", "cancelled", "total")],
            title="Queue stats",
        )
        self.ui.display_info(
            f"Peak concurrency {report.peak_running}/{concurrency}, {len(report.events)} events, "
            f"elapsed {report.elapsed:.3f}s"
        )

    async def handle_retry(self, failures: int, policy: RetryPolicy) -> None:
        """Handles the 'retry' command."""
        logger.info(f"Handling 'retry': failures={failures}, policy={policy}")
        try:
            report = await self.simulation_service.run_retry(failures, policy)
        except Exception as e:
            logger.error(f"Retry simulation failed: {e}", exc_info=True)
            self.ui.display_error(f"Retry simulation failed: {e}")
            return

        if report.retries:
            self.ui.display_table(
                ["Attempt", "Error", "Wait (s)"],
                [(r.attempt_number, r.error_type, f"{r.delay_seconds:.3f}") for r in report.retries],
                title="Retries",
            )
        if report.error is not None:
            self.ui.display_error(f"Gave up after {report.attempts} attempts: {report.error}")
        else:
            self.ui.display_output(f"{report.value} (elapsed {report.elapsed:.3f}s)", title="Retry")

    async def handle_timeout(self, duration: float, timeout: float) -> None:
        """Handles the 'timeout' command."""
        logger.info(f"Handling 'timeout': duration={duration}, timeout={timeout}")
        try:
            report = await self.simulation_service.run_timeout(duration, timeout)
        except Exception as e:
            logger.error(f"Timeout simulation failed: {e}", exc_info=True)
            self.ui.display_error(f"Timeout simulation failed: {e}")
            return

        if report.timed_out:
            self.ui.display_warning(f"Timed out after {report.elapsed:.3f}s (deadline {timeout}s)")
        else:
            self.ui.display_output(f"{report.value} settled in {report.elapsed:.3f}s", title="Timeout")

    async def handle_memo(self, callers: int, keys: int, duration: float, ttl: float) -> None:
        """Handles the 'memo' command."""
        logger.info(f"Handling 'memo': callers={callers}, keys={keys}, ttl={ttl}")
        try:
            report = await self.simulation_service.run_memo(callers, keys, duration, ttl)
        except Exception as e:
            logger.error(f"Memo simulation failed: {e}", exc_info=True)
            self.ui.display_error(f"Memo simulation failed: {e}")
            return

        self.ui.display_table(
            ["Metric", "Value"],
            [
                ("calls", report.calls),
                ("invocations", report.invocations),
                ("hits", report.hits),
                ("shared in-flight", report.shared),
            ],
            title="Memoization",
        )
        self.ui.display_info(f"elapsed {report.elapsed:.3f}s")

    def handle_show_config(self, config: Dict[str, Any]) -> None:
        """Handles the 'config' command."""
        self.ui.display_table(["Key", "Value"], sorted(config.items()), title="Effective configuration")
