"""Scheduler service command."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Run the extraction scheduler until interrupted."""
        try:
            asyncio.run(_run_scheduler(config))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nScheduler stopped")


async def _run_scheduler(config_path: Path | None = None) -> None:
    from memloop.cli.runtime import create_coordinator, load_config_or_exit
    from memloop.extraction.scheduler import ExtractionScheduler
    from memloop.logging import configure_logging
    from memloop.observability import init_sentry

    configure_logging(use_rich=True, log_to_file=True)

    config = load_config_or_exit(config_path)
    if config.sentry:
        init_sentry(config.sentry)

    coordinator = create_coordinator(config)
    scheduler = ExtractionScheduler(coordinator, config)
    if not await scheduler.start():
        logger.error("scheduler_start_failed")
        raise typer.Exit(1)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    next_run = scheduler.get_next_scheduled_run()
    logger.info(
        "scheduler_serving",
        extra={"schedule.next_run": next_run.isoformat() if next_run else None},
    )
    try:
        await shutdown_event.wait()
    finally:
        await scheduler.stop()
        # In-flight runs are allowed to finish
        await scheduler.wait_for_runs()
