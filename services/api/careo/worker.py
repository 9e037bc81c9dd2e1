"""Periodic job loop: alert sweeps, intake generation and food/fluid archiving."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, List, Optional

import structlog

from careo.config import settings
from careo.medication import generate_next_day_intakes
from careo.observability import init_logging, init_otel
from careo.records import archive_food_fluid_logs
from careo.sweep import generate_food_fluid_alerts, generate_medication_alerts, generate_night_check_alerts
from careo.timefmt import utcnow

log = structlog.get_logger("careo-worker")


@dataclass
class Job:
    name: str
    func: Callable[[datetime], Any]
    every: Optional[timedelta] = None
    # UTC hour for daily jobs
    at_hour: Optional[int] = None
    last_run: Optional[datetime] = None
    last_day: Optional[date] = None

    def due(self, now: datetime) -> bool:
        if self.at_hour is not None:
            return now.hour >= self.at_hour and self.last_day != now.date()
        return self.last_run is None or now - self.last_run >= self.every

    def mark(self, now: datetime) -> None:
        self.last_run = now
        self.last_day = now.date()


@dataclass
class Scheduler:
    jobs: List[Job] = field(default_factory=list)

    def run_pending(self, now: Optional[datetime] = None) -> List[str]:
        """Run every due job once.

        A failing interval job waits for its next interval. A failing daily
        job stays due and is retried on the next tick.
        """
        now = now or utcnow()
        ran = []
        for job in self.jobs:
            if not job.due(now):
                continue
            try:
                job.func(now)
            except Exception:
                log.exception("job_failed", job=job.name)
                if job.at_hour is None:
                    job.mark(now)
            else:
                job.mark(now)
                ran.append(job.name)
        return ran


def _daily_archive(now: datetime) -> int:
    return archive_food_fluid_logs(now=now)


def build_scheduler() -> Scheduler:
    return Scheduler(jobs=[
        Job("food_fluid_sweep", generate_food_fluid_alerts, every=timedelta(minutes=settings.food_fluid_sweep_minutes)),
        Job("night_check_sweep", generate_night_check_alerts, every=timedelta(minutes=settings.night_check_sweep_minutes)),
        Job("medication_sweep", generate_medication_alerts, every=timedelta(minutes=settings.medication_sweep_minutes)),
        Job("intake_generation", generate_next_day_intakes, at_hour=settings.intake_generation_hour_utc),
        Job("food_fluid_archive", _daily_archive, at_hour=settings.food_fluid_archive_hour_utc),
    ])


def main():
    init_logging("careo-worker")
    init_otel("careo-worker")
    scheduler = build_scheduler()
    log.info("worker_started", jobs=[j.name for j in scheduler.jobs], poll_seconds=settings.worker_poll_seconds)
    while True:
        scheduler.run_pending()
        time.sleep(settings.worker_poll_seconds)


if __name__ == "__main__":
    main()
