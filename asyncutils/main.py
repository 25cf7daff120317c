"""Main entry point for the asyncutils demonstration CLI.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

from asyncutils.core.command_handler import CommandHandler
from asyncutils.core.services.simulation_service import SimulationService
from asyncutils.domain.models.policies import BackoffStrategy, RetryPolicy
from asyncutils.infrastructure.cli.display import ConsoleDisplay
from asyncutils.infrastructure.config.settings import (
    effective_config, get_config, get_default_concurrency, get_log_level, get_memo_ttl, get_retry_policy,
    load_configuration,
)
from asyncutils.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(log_level: Optional[str] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    load_configuration()
    level = getattr(logging, log_level.upper(), logging.INFO) if log_level else get_log_level()
    setup_logging(log_level=level, log_file=get_config("logging.file"), log_format=get_config("logging.format"))

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    dependencies['simulation_service'] = SimulationService()
    dependencies['command_handler'] = CommandHandler(
        simulation_service=dependencies['simulation_service'],
        ui=dependencies['ui'],
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="asyncutils",
    help="Exercise the asyncutils coordination components with synthetic workloads.",
    add_completion=False,
)


def run_async(ctx: typer.Context, coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async command handler to completion from a sync Typer command."""
    try:
        asyncio.run(coro)
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        ctx.obj['ui'].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)


def _handler(ctx: typer.Context) -> CommandHandler:
    return ctx.obj['command_handler']


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING...). Defaults to config."),
    ] = None,
):
    """Build the application before any command runs."""
    ctx.obj = create_dependencies(log_level)


@app.command(name="run-batch")
def run_batch(
    ctx: typer.Context,
    count: Annotated[int, typer.Option("--count", "-n", min=0, help="Number of tasks.")] = 10,
    limit: Annotated[Optional[int], typer.Option("--limit", "-k", min=1, help="Maximum tasks in flight.")] = None,
    duration: Annotated[float, typer.Option("--duration", "-d", min=0.0, help="Seconds each task sleeps.")] = 0.05,
    fail_every: Annotated[int, typer.Option("--fail-every", min=0, help="Fail every Nth task (0 = never).")] = 0,
):
    """Run a batch through the bounded concurrency runner."""
    effective_limit = limit or get_default_concurrency()
    run_async(ctx, _handler(ctx).handle_run_batch(count, effective_limit, duration, fail_every))


@app.command(name="queue")
def queue_command(
    ctx: typer.Context,
    count: Annotated[int, typer.Option("--count", "-n", min=0, help="Number of tasks to enqueue.")] = 10,
    concurrency: Annotated[Optional[int], typer.Option("--concurrency", "-c", min=1, help="Queue concurrency.")] = None,
    duration: Annotated[float, typer.Option("--duration", "-d", min=0.0, help="Seconds each task sleeps.")] = 0.05,
    clear_after: Annotated[int, typer.Option("--clear-after", min=0, help="Clear the queue once N tasks started (0 = never).")] = 0,
    fail_every: Annotated[int, typer.Option("--fail-every", min=0, help="Fail every Nth task (0 = never).")] = 0,
):
    """Push tasks through a TaskQueue and report per-entry status."""
    effective_concurrency = concurrency or get_default_concurrency()
    run_async(ctx, _handler(ctx).handle_queue(count, effective_concurrency, duration, clear_after, fail_every))


@app.command(name="retry")
def retry_command(
    ctx: typer.Context,
    failures: Annotated[int, typer.Option("--failures", "-f", min=0, help="Failures before the operation succeeds.")] = 2,
    attempts: Annotated[Optional[int], typer.Option("--attempts", "-a", min=1, help="Attempt budget.")] = None,
    delay: Annotated[Optional[float], typer.Option("--delay", min=0.0, help="Base delay between attempts (s).")] = None,
    strategy: Annotated[Optional[BackoffStrategy], typer.Option("--strategy", help="Backoff strategy.")] = None,
):
    """Retry a flaky operation and show each scheduled retry."""
    configured = get_retry_policy()
    policy = RetryPolicy(
        max_attempts=attempts if attempts is not None else configured.max_attempts,
        delay=delay if delay is not None else configured.delay,
        strategy=strategy or configured.strategy,
        factor=configured.factor,
        max_delay=configured.max_delay,
    )
    run_async(ctx, _handler(ctx).handle_retry(failures, policy))


@app.command(name="timeout")
def timeout_command(
    ctx: typer.Context,
    duration: Annotated[float, typer.Option("--duration", "-d", min=0.0, help="Seconds the operation takes.")] = 0.5,
    timeout: Annotated[float, typer.Option("--timeout", "-t", min=0.0, help="Deadline in seconds.")] = 0.1,
):
    """Race an operation against a deadline."""
    run_async(ctx, _handler(ctx).handle_timeout(duration, timeout))


@app.command(name="memo")
def memo_command(
    ctx: typer.Context,
    callers: Annotated[int, typer.Option("--callers", "-n", min=1, help="Concurrent calls per round.")] = 8,
    keys: Annotated[int, typer.Option("--keys", "-k", min=1, help="Distinct argument values.")] = 2,
    duration: Annotated[float, typer.Option("--duration", "-d", min=0.0, help="Seconds each real lookup takes.")] = 0.05,
    ttl: Annotated[Optional[float], typer.Option("--ttl", min=0.001, help="Entry lifetime in seconds. Defaults to config.")] = None,
):
    """Memoize a slow lookup and show hits versus real invocations."""
    effective_ttl = ttl if ttl is not None else get_memo_ttl()
    run_async(ctx, _handler(ctx).handle_memo(callers, keys, duration, effective_ttl))


@app.command(name="config")
def config_command(ctx: typer.Context):
    """Show the effective configuration."""
    _handler(ctx).handle_show_config(effective_config())


def cli_entry_point():
    """Function called by the console script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
