"""Configuration models using Pydantic."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator

from memloop.config.paths import (
    get_memory_file_path,
    get_system_timezone,
    get_vaults_path,
)

logger = logging.getLogger(__name__)

# Memory document tuning. Business constants, overridable via [memory].
MAX_MEMORY_SIZE_BYTES = 50 * 1024
MEMORY_SIZE_WARNING_BYTES = 45 * 1024
DUPLICATE_THRESHOLD = 0.85

DEFAULT_ALLOWED_TOOLS = ["Glob", "Grep", "Read", "Edit", "Write", "Task"]


class VaultConfig(BaseModel):
    """A vault whose chat transcripts feed the extraction pipeline.

    Transcripts are read from ``{path}/{inbox}/chats/*.md``. A relative
    ``path`` is resolved against the configured ``vaults_dir``.
    """

    id: str
    path: Path
    inbox: str = "00_Inbox"


class ExtractionConfig(BaseModel):
    """Configuration for the scheduled extraction run.

    ``schedule`` and ``catchup_hours`` are raw overrides; None means "use the
    built-in default". Environment variables take precedence over both (see
    ``memloop.extraction.scheduler``).
    """

    schedule: str | None = None
    catchup_hours: str | int | float | None = None
    # Delay before the single retry of a failed agent call
    retry_delay_ms: int = 2000


class AgentConfig(BaseModel):
    """Options passed to the fact-extraction agent."""

    model: str = "haiku"
    allowed_tools: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_TOOLS)
    )
    permission_mode: Literal["default", "acceptEdits", "bypassPermissions", "plan"] = (
        "acceptEdits"
    )
    max_budget_usd: float | None = 0.50
    cli_path: str = "claude"


class MemoryConfig(BaseModel):
    """Configuration for the canonical memory document."""

    path: Path = Field(default_factory=get_memory_file_path)
    max_bytes: int = MAX_MEMORY_SIZE_BYTES
    warning_bytes: int = MEMORY_SIZE_WARNING_BYTES
    duplicate_threshold: float = DUPLICATE_THRESHOLD

    @field_validator("duplicate_threshold")
    @classmethod
    def _check_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("duplicate_threshold must be between 0 and 1")
        return value


class SentryConfig(BaseModel):
    """Configuration for Sentry error tracking."""

    dsn: SecretStr | None = None
    environment: str = "production"
    release: str | None = None
    traces_sample_rate: float = 0.0
    profiles_sample_rate: float = 0.0
    send_default_pii: bool = False
    debug: bool = False


class ConfigError(Exception):
    """Configuration error."""

    pass


class MemloopConfig(BaseModel):
    """Root configuration model."""

    vaults_dir: Path = Field(default_factory=get_vaults_path)
    vaults: list[VaultConfig] = Field(default_factory=list)
    timezone: str = Field(default_factory=get_system_timezone)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    sentry: SentryConfig | None = None

    def resolve_vault_path(self, vault: VaultConfig) -> Path:
        """Resolve a vault's directory, relative paths anchored at vaults_dir."""
        path = vault.path.expanduser()
        if path.is_absolute():
            return path
        return self.vaults_dir.expanduser() / path

    def get_vault(self, vault_id: str) -> VaultConfig:
        """Get a vault config by id.

        Raises:
            ConfigError: If the vault is not configured.
        """
        for vault in self.vaults:
            if vault.id == vault_id:
                return vault
        available = ", ".join(sorted(v.id for v in self.vaults)) or "none"
        raise ConfigError(f"Unknown vault '{vault_id}'. Available: {available}")
