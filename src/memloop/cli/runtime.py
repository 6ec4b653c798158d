"""Shared bootstrap helpers for CLI entrypoints."""

from pathlib import Path

import typer

from memloop.cli.console import error
from memloop.config import ConfigError, MemloopConfig, load_config
from memloop.extraction.coordinator import ExtractionCoordinator
from memloop.extraction.state import ExtractionStateStore


def load_config_or_exit(config_path: Path | None) -> MemloopConfig:
    """Load configuration, printing the problem and exiting on failure."""
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        error(str(e))
        raise typer.Exit(1) from None
    except ConfigError as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None


def create_coordinator(config: MemloopConfig) -> ExtractionCoordinator:
    return ExtractionCoordinator(config, state_store=ExtractionStateStore())
