"""Configuration module."""

from memloop.config.loader import get_default_config, load_config
from memloop.config.models import (
    DUPLICATE_THRESHOLD,
    MAX_MEMORY_SIZE_BYTES,
    MEMORY_SIZE_WARNING_BYTES,
    AgentConfig,
    ConfigError,
    ExtractionConfig,
    MemloopConfig,
    MemoryConfig,
    SentryConfig,
    VaultConfig,
)
from memloop.config.paths import (
    get_config_path,
    get_memloop_home,
    get_memory_file_path,
    get_state_path,
    get_vaults_path,
)

__all__ = [
    "DUPLICATE_THRESHOLD",
    "MAX_MEMORY_SIZE_BYTES",
    "MEMORY_SIZE_WARNING_BYTES",
    "AgentConfig",
    "ConfigError",
    "ExtractionConfig",
    "MemloopConfig",
    "MemoryConfig",
    "SentryConfig",
    "VaultConfig",
    "get_config_path",
    "get_default_config",
    "get_memloop_home",
    "get_memory_file_path",
    "get_state_path",
    "get_vaults_path",
    "load_config",
]
