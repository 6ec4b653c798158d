"""Cron-driven extraction scheduler with startup catch-up.

Overrides are read from the environment first, then from ``[extraction]`` in
config.toml:

- ``EXTRACTION_SCHEDULE``: cron expression (default ``0 3 * * *``). An empty
  value is honored as-is and rejected by ``start()`` as an invalid schedule.
- ``EXTRACTION_CATCHUP_HOURS``: staleness threshold in whole hours
  (default 24). Invalid or non-positive values fall back to the default.
"""

import asyncio
import logging
import os
import re
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from memloop.config.models import MemloopConfig
from memloop.extraction.coordinator import ExtractionCoordinator
from memloop.extraction.state import ExtractionState, ExtractionStateStore
from memloop.memory.sandbox import check_and_recover

logger = logging.getLogger(__name__)

DEFAULT_CRON_SCHEDULE = "0 3 * * *"
DEFAULT_CATCHUP_THRESHOLD_MS = 24 * 60 * 60 * 1000

ENV_EXTRACTION_SCHEDULE = "EXTRACTION_SCHEDULE"
ENV_CATCHUP_THRESHOLD_HOURS = "EXTRACTION_CATCHUP_HOURS"

_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?\d+)")


def get_cron_schedule(
    config: MemloopConfig | None = None, environ: Mapping[str, str] | None = None
) -> str:
    environ = os.environ if environ is None else environ
    if ENV_EXTRACTION_SCHEDULE in environ:
        return environ[ENV_EXTRACTION_SCHEDULE]
    if config is not None and config.extraction.schedule is not None:
        return config.extraction.schedule
    return DEFAULT_CRON_SCHEDULE


def parse_catchup_hours(value: Any) -> int | None:
    """Parse an hours override, truncating fractions. None if unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        hours = int(value)
    else:
        match = _LEADING_NUMBER_RE.match(str(value))
        if not match:
            return None
        hours = int(match.group(1))
    return hours if hours > 0 else None


def get_catchup_threshold_ms(
    config: MemloopConfig | None = None, environ: Mapping[str, str] | None = None
) -> int:
    environ = os.environ if environ is None else environ
    raw: Any = environ.get(ENV_CATCHUP_THRESHOLD_HOURS)
    if raw is None and config is not None:
        raw = config.extraction.catchup_hours
    if raw is None:
        return DEFAULT_CATCHUP_THRESHOLD_MS

    hours = parse_catchup_hours(raw)
    if hours is None:
        logger.warning("invalid_catchup_hours", extra={"config.value": str(raw)})
        return DEFAULT_CATCHUP_THRESHOLD_MS
    return hours * 60 * 60 * 1000


def needs_catch_up(
    state: ExtractionState,
    threshold_ms: int | None = None,
    now: datetime | None = None,
) -> bool:
    """True when the last run is strictly older than the threshold (or never happened)."""
    if state.last_run_at is None:
        return True
    if threshold_ms is None:
        threshold_ms = get_catchup_threshold_ms()
    now = now or datetime.now(UTC)
    return now - state.last_run_at > timedelta(milliseconds=threshold_ms)


def get_next_fire_time(
    cron: str, timezone: str = "UTC", now: datetime | None = None
) -> datetime:
    """Next cron fire time after ``now``, evaluated in ``timezone``, returned in UTC."""
    from zoneinfo import ZoneInfo

    from croniter import croniter

    try:
        tz = ZoneInfo(timezone)
    except Exception:
        logger.warning("invalid_timezone", extra={"schedule.timezone": timezone})
        tz = ZoneInfo("UTC")

    base = (now or datetime.now(UTC)).astimezone(tz)
    return croniter(cron, base).get_next(datetime).astimezone(UTC)


class ExtractionScheduler:
    """Fires ``run_extraction`` on a cron schedule.

    Example:
        scheduler = ExtractionScheduler(coordinator, config)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        coordinator: ExtractionCoordinator,
        config: MemloopConfig,
        state_store: ExtractionStateStore | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self._coordinator = coordinator
        self._config = config
        self._state_store = state_store or coordinator.state_store
        self._environ = environ
        self._cron: str | None = None
        self._task: asyncio.Task | None = None
        self._catch_up_task: asyncio.Task | None = None
        self._run_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    @property
    def catch_up_task(self) -> asyncio.Task | None:
        return self._catch_up_task

    @property
    def run_task(self) -> asyncio.Task | None:
        """The most recent scheduled run, if any."""
        return self._run_task

    async def start(self) -> bool:
        """Start the cron loop. Returns False if already running or the schedule is invalid."""
        if self._task is not None:
            return False

        from croniter import croniter

        cron = get_cron_schedule(self._config, self._environ)
        if not croniter.is_valid(cron):
            logger.error("invalid_cron_schedule", extra={"schedule.cron": cron})
            return False

        self._cron = cron
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "extraction_scheduler_started",
            extra={"schedule.cron": cron, "schedule.timezone": self._config.timezone},
        )

        recovery = await check_and_recover(
            self._config.vaults_dir.expanduser(), self._config.memory.path
        )
        if recovery.recovery_needed:
            logger.info("startup_recovery", extra={"recovery.action": recovery.action})

        state = await self._state_store.load()
        threshold_ms = get_catchup_threshold_ms(self._config, self._environ)
        if needs_catch_up(state, threshold_ms):
            logger.info(
                "extraction_catch_up_triggered",
                extra={
                    "state.last_run_at": (
                        state.last_run_at.isoformat() if state.last_run_at else None
                    )
                },
            )
            self._catch_up_task = asyncio.create_task(
                self._coordinator.run_extraction(is_catch_up=True)
            )
        return True

    async def stop(self) -> None:
        """Stop the cron loop. A run already in progress is left to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        self._cron = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("extraction_scheduler_stopped")

    def in_flight_tasks(self) -> list[asyncio.Task]:
        """Catch-up and scheduled runs that have not finished yet."""
        return [
            t for t in (self._catch_up_task, self._run_task) if t is not None and not t.done()
        ]

    async def wait_for_runs(self) -> None:
        """Wait for every in-flight run to complete."""
        pending = self.in_flight_tasks()
        if pending:
            logger.info("extraction_waiting_for_runs", extra={"runs.pending": len(pending)})
            await asyncio.gather(*pending, return_exceptions=True)

    def get_next_scheduled_run(self, now: datetime | None = None) -> datetime | None:
        """Next fire time in UTC, or None when the scheduler is stopped."""
        if self._task is None or self._cron is None:
            return None
        return get_next_fire_time(self._cron, self._config.timezone, now)

    async def _run_tick(self) -> None:
        try:
            await self._coordinator.run_extraction()
        except Exception as e:
            logger.error("scheduled_extraction_error", extra={"error.message": str(e)})

    async def _loop(self) -> None:
        base = datetime.now(UTC)
        while True:
            next_run = self.get_next_scheduled_run(now=base)
            if next_run is None:
                return
            delay = (next_run - datetime.now(UTC)).total_seconds()
            logger.debug(
                "extraction_next_run",
                extra={
                    "schedule.next_run": next_run.isoformat(),
                    "schedule.delay_s": round(delay),
                },
            )
            await asyncio.sleep(max(delay, 0))

            if self._run_task is not None and not self._run_task.done():
                logger.warning(
                    "scheduled_extraction_skipped",
                    extra={"schedule.next_run": next_run.isoformat()},
                )
            else:
                # Runs outside the loop task so stop() never cancels it mid-run
                self._run_task = asyncio.create_task(self._run_tick())
            base = max(next_run, datetime.now(UTC))
