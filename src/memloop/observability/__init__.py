"""Observability module for Sentry integration."""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memloop.config import SentryConfig

logger = logging.getLogger(__name__)

# Check availability
try:
    import sentry_sdk
    from sentry_sdk.integrations.asyncio import AsyncioIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    SENTRY_AVAILABLE = True
except ImportError:
    SENTRY_AVAILABLE = False


def init_sentry(config: "SentryConfig") -> bool:
    """Initialize Sentry if the SDK is installed and a DSN is configured.

    Failed extraction runs are logged at ERROR, so they become Sentry events;
    INFO run lifecycle messages become breadcrumbs.

    Returns:
        True if Sentry was initialized, False otherwise.
    """
    if not SENTRY_AVAILABLE:
        logger.debug("Sentry SDK not installed, skipping initialization")
        return False

    if not config.dsn:
        logger.debug("Sentry DSN not configured, skipping initialization")
        return False

    sentry_sdk.init(
        dsn=config.dsn.get_secret_value(),
        environment=config.environment,
        release=config.release,
        traces_sample_rate=config.traces_sample_rate,
        profiles_sample_rate=config.profiles_sample_rate,
        send_default_pii=config.send_default_pii,
        debug=config.debug,
        integrations=[
            AsyncioIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
    )

    logger.info(f"Sentry initialized (environment={config.environment})")
    return True
