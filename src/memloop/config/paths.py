"""Centralized path management for memloop.

Pipeline state (config, extraction state, prompt override, logs) lives under a
single base directory. The base directory can be overridden with the
MEMLOOP_HOME environment variable.

The canonical memory document lives outside that directory, where the
assistant reads it (``~/.claude/rules/memory.md`` by default).

Default locations:
- Linux/macOS: ~/.memloop
- Windows: %USERPROFILE%\\.memloop
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "MEMLOOP_HOME"
MEMORY_FILE_ENV_VAR = "MEMORY_FILE_PATH_OVERRIDE"
VAULTS_DIR_ENV_VAR = "VAULTS_DIR"

# Staging area for the agent, relative to the vaults directory
SANDBOX_DIRNAME = ".memory-extraction"
SANDBOX_FILENAME = "memory.md"


def get_system_timezone() -> str:
    """Detect system timezone, falling back to UTC.

    Resolution order:
    1. TZ environment variable (if set)
    2. /etc/timezone file (Debian/Ubuntu)
    3. /etc/localtime symlink target (most Linux distros)
    4. Fallback to UTC

    Returns:
        IANA timezone name (e.g., "America/New_York", "Europe/London", "UTC").
    """
    if tz := os.environ.get("TZ"):
        return tz

    try:
        tz = Path("/etc/timezone").read_text().strip()
        if tz:
            return tz
    except (FileNotFoundError, PermissionError):
        pass

    try:
        link = Path("/etc/localtime").resolve()
        parts = str(link).split("zoneinfo/")
        if len(parts) > 1:
            return parts[1]
    except (FileNotFoundError, PermissionError):
        pass

    return "UTC"


@lru_cache(maxsize=1)
def get_memloop_home() -> Path:
    """Get the base directory for all memloop data.

    Resolution order:
    1. MEMLOOP_HOME environment variable (if set)
    2. Platform default (~/.memloop)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".memloop"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_memloop_home() / "config.toml"


def get_state_path() -> Path:
    """Get the extraction state file path (last run, processed transcripts)."""
    return get_memloop_home() / "extraction-state.json"


def get_prompt_override_path() -> Path:
    """Get the user override location for the extraction prompt."""
    return get_memloop_home() / "durable-facts.md"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_memloop_home() / "logs"


def get_memory_file_path() -> Path:
    """Get the canonical memory document path.

    Uses MEMORY_FILE_PATH_OVERRIDE if set, otherwise ~/.claude/rules/memory.md.
    """
    if override := os.environ.get(MEMORY_FILE_ENV_VAR):
        return Path(override).expanduser()
    return Path.home() / ".claude" / "rules" / "memory.md"


def get_vaults_path() -> Path:
    """Get the root directory that holds the vaults.

    Uses VAULTS_DIR if set, otherwise ~/vaults.
    """
    if env_dir := os.environ.get(VAULTS_DIR_ENV_VAR):
        return Path(env_dir).expanduser()
    return Path.home() / "vaults"


def get_sandbox_dir(vaults_dir: Path) -> Path:
    """Get the sandbox directory for a vaults root."""
    return Path(vaults_dir) / SANDBOX_DIRNAME


def get_sandbox_path(vaults_dir: Path) -> Path:
    """Get the sandbox memory file for a vaults root."""
    return get_sandbox_dir(vaults_dir) / SANDBOX_FILENAME


def get_all_paths() -> dict[str, Path | None]:
    """Get all standard paths for debugging/display."""
    return {
        "home": get_memloop_home(),
        "config": get_config_path(),
        "state": get_state_path(),
        "prompt_override": get_prompt_override_path(),
        "logs": get_logs_path(),
        "memory": get_memory_file_path(),
        "vaults": get_vaults_path(),
    }
