"""Scheduler for background tasks (daily reminder sweeps)."""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Awaitable, Callable, Optional

from src.logging import get_logger
from src.models.clock import utcnow

logger = get_logger(__name__)

SweepRunner = Callable[[datetime], Awaitable[dict[str, int]]]


@dataclass
class DailyJob:
    """A sweep that runs once per date at or after a wall-clock time."""

    name: str
    run_at: time
    runner: SweepRunner
    last_run: Optional[date] = field(default=None)

    def is_due(self, now: datetime) -> bool:
        return now.time() >= self.run_at and self.last_run != now.date()


class SchedulerService:
    """Background task scheduler for the daily sweeps."""

    def __init__(
        self,
        jobs: list[DailyJob],
        interval_seconds: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize scheduler service."""
        self.jobs = jobs
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._running = False

    async def start(self) -> None:
        """Start scheduler loop."""
        self._running = True
        logger.info(
            "Scheduler started",
            interval_seconds=self.interval_seconds,
            jobs=[f"{job.name}@{job.run_at.strftime('%H:%M')}" for job in self.jobs],
        )

        while self._running:
            try:
                await self.run_due_jobs()
                await asyncio.sleep(self.interval_seconds)
            except Exception as e:
                logger.error("Scheduler error", error=str(e))
                await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        """Stop scheduler loop."""
        self._running = False
        logger.info("Scheduler stopped")

    async def run_due_jobs(self) -> list[str]:
        """Run every job that is due now; each job runs at most once per date.

        Returns:
            Names of the jobs that ran
        """
        now = self.clock()
        ran = []
        for job in self.jobs:
            if not job.is_due(now):
                continue

            # A failed sweep is not retried on the same date
            job.last_run = now.date()
            try:
                counts = await job.runner(now)
                logger.info("sweep_finished", job=job.name, **counts)
            except Exception as e:
                logger.error("sweep_failed", job=job.name, error=str(e), exc_info=True)
            ran.append(job.name)

        return ran
