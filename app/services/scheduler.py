"""Periodic background jobs on the application's event loop."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class PeriodicJob:
    """Runs ``func`` once on start, then every ``interval`` seconds until cancelled."""

    def __init__(self, name: str, interval: float, func: Callable[[], Awaitable[object]]):
        self.name = name
        self.interval = interval
        self.func = func
        self.runs = 0
        self.task: Optional[asyncio.Task] = None

    async def run_forever(self) -> None:
        while True:
            try:
                await self.func()
            except asyncio.CancelledError:
                raise
            except Exception:
                # A failed run must not stop the schedule
                logger.exception("Background job '%s' failed", self.name)
            self.runs += 1
            await asyncio.sleep(self.interval)


class BackgroundScheduler:
    def __init__(self):
        self.jobs: List[PeriodicJob] = []

    def every(self, interval: float, func: Callable[[], Awaitable[object]], name: str) -> PeriodicJob:
        job = PeriodicJob(name, interval, func)
        self.jobs.append(job)
        return job

    @property
    def running(self) -> bool:
        return any(job.task is not None and not job.task.done() for job in self.jobs)

    def start(self) -> None:
        for job in self.jobs:
            if job.task is None or job.task.done():
                job.task = asyncio.create_task(job.run_forever(), name=f"job:{job.name}")
                logger.info("Scheduled job '%s' every %ss", job.name, job.interval)

    async def stop(self) -> None:
        tasks = [job.task for job in self.jobs if job.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for job in self.jobs:
            job.task = None
        logger.info("Background scheduler stopped")
