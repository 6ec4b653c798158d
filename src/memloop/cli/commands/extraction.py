"""Extraction run and status commands."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer

from memloop.cli.console import (
    console,
    create_table,
    dim,
    error,
    format_bytes,
    format_relative,
    success,
    warning,
)
from memloop.extraction.types import RunResult

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


def register(app: typer.Typer) -> None:
    """Register the run and status commands."""

    @app.command()
    def run(
        config: ConfigOption = None,
        catch_up: Annotated[
            bool,
            typer.Option(
                "--catch-up",
                help="Flag the run as a catch-up run",
            ),
        ] = False,
        output_json: Annotated[
            bool,
            typer.Option(
                "--json",
                help="Output the run result as JSON",
            ),
        ] = False,
    ) -> None:
        """Run one extraction now.

        Discovers new transcripts in the configured vaults, has the agent
        extract durable facts into a sandbox copy of the memory file, and
        commits the result.
        """
        from memloop.cli.runtime import create_coordinator, load_config_or_exit
        from memloop.logging import configure_logging

        configure_logging()
        memloop_config = load_config_or_exit(config)
        coordinator = create_coordinator(memloop_config)

        result = asyncio.run(coordinator.run_extraction(is_catch_up=catch_up))
        if output_json:
            console.print(json.dumps(result.to_dict(), indent=2), markup=False)
        else:
            print_run_result(result)
        if not result.success:
            raise typer.Exit(1)

    @app.command()
    def status(config: ConfigOption = None) -> None:
        """Show last run, catch-up need, next scheduled run and memory size."""
        from memloop.cli.runtime import load_config_or_exit

        memloop_config = load_config_or_exit(config)
        asyncio.run(_status(memloop_config))


def print_run_result(result: RunResult) -> None:
    if result.success:
        success(f"Extraction complete ({result.duration_ms} ms)")
    else:
        error(f"Extraction failed: {result.error}")

    table = create_table("Run", [("Field", "cyan"), ("Value", "white")])
    table.add_row("Catch-up", "yes" if result.was_catch_up else "no")
    table.add_row("Discovered", str(result.transcripts_discovered))
    table.add_row("Unprocessed", str(result.transcripts_unprocessed))
    table.add_row("Processed", str(result.transcripts_processed))
    table.add_row("Duplicates filtered", str(result.duplicates_filtered))
    console.print(table)


async def _status(config) -> None:
    from croniter import croniter

    from memloop.extraction.scheduler import (
        get_catchup_threshold_ms,
        get_cron_schedule,
        get_next_fire_time,
        needs_catch_up,
    )
    from memloop.config.paths import get_all_paths
    from memloop.extraction.state import ExtractionStateStore
    from memloop.memory import check_memory_size, read_memory_file

    store = ExtractionStateStore()
    state = await store.load()
    threshold_ms = get_catchup_threshold_ms(config)
    cron = get_cron_schedule(config)

    table = create_table("Extraction", [("Field", "cyan"), ("Value", "white")])
    table.add_row("State file", str(store.path))
    table.add_row(
        "Last run",
        f"{state.last_run_at.isoformat()} ({format_relative(state.last_run_at)})"
        if state.last_run_at
        else "never",
    )
    table.add_row("Processed transcripts", str(len(state.processed_transcripts)))
    table.add_row("Catch-up threshold", f"{threshold_ms // 3_600_000}h")
    table.add_row("Needs catch-up", "yes" if needs_catch_up(state, threshold_ms) else "no")
    table.add_row("Schedule", repr(cron))
    if croniter.is_valid(cron):
        next_run = get_next_fire_time(cron, config.timezone)
        table.add_row("Next run", f"{next_run.isoformat()} ({format_relative(next_run)})")
    else:
        table.add_row("Next run", "[red]invalid schedule[/red]")
    console.print(table)

    content = await read_memory_file(config.memory.path)
    size = check_memory_size(
        content,
        warning_bytes=config.memory.warning_bytes,
        max_bytes=config.memory.max_bytes,
    )
    console.print(
        f"Memory: {config.memory.path} "
        f"({format_bytes(size.size_bytes)} of {format_bytes(config.memory.max_bytes)})"
    )
    if size.is_over_limit:
        error("Memory file is at or over its size limit; the next commit will prune it")
    elif size.is_warning:
        warning("Memory file is approaching its size limit")
    elif not content:
        dim("Memory file is empty or missing")

    paths_table = create_table("Paths", [("Name", "cyan"), ("Path", "white")])
    for name, path in get_all_paths().items():
        paths_table.add_row(name, str(path) if path else "-")
    console.print(paths_table)
