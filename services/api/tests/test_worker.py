from datetime import datetime, timedelta, timezone

from careo.worker import Job, Scheduler, build_scheduler


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, now):
        self.calls.append(now)


def test_interval_job_waits_for_its_interval():
    rec = Recorder()
    scheduler = Scheduler(jobs=[Job("sweep", rec, every=timedelta(minutes=15))])
    assert scheduler.run_pending(at(8)) == ["sweep"]
    assert scheduler.run_pending(at(8, 10)) == []
    assert scheduler.run_pending(at(8, 15)) == ["sweep"]
    assert rec.calls == [at(8), at(8, 15)]


def test_daily_job_runs_once_per_day_after_its_hour():
    rec = Recorder()
    scheduler = Scheduler(jobs=[Job("archive", rec, at_hour=7)])
    assert scheduler.run_pending(at(6, 59)) == []
    assert scheduler.run_pending(at(7, 1)) == ["archive"]
    assert scheduler.run_pending(at(9)) == []
    assert scheduler.run_pending(at(7, day=16)) == ["archive"]


def test_failing_job_does_not_block_others():
    rec = Recorder()

    def boom(now):
        raise RuntimeError("database unavailable")

    scheduler = Scheduler(jobs=[
        Job("broken", boom, every=timedelta(minutes=5)),
        Job("healthy", rec, every=timedelta(minutes=5)),
    ])
    assert scheduler.run_pending(at(8)) == ["healthy"]
    # The failed job waits for its next slot like any other.
    assert scheduler.run_pending(at(8, 1)) == []
    assert scheduler.run_pending(at(8, 5)) == ["healthy"]
    assert len(rec.calls) == 2


def test_failed_daily_job_retries_next_tick():
    calls = []

    def flaky(now):
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")

    scheduler = Scheduler(jobs=[Job("intake_generation", flaky, at_hour=0)])
    assert scheduler.run_pending(at(0, 1)) == []
    assert scheduler.run_pending(at(0, 2)) == ["intake_generation"]
    assert scheduler.run_pending(at(0, 3)) == []
    assert calls == [at(0, 1), at(0, 2)]


def test_default_schedule():
    jobs = {j.name: j for j in build_scheduler().jobs}
    assert set(jobs) == {"food_fluid_sweep", "night_check_sweep", "medication_sweep",
                         "intake_generation", "food_fluid_archive"}
    assert jobs["medication_sweep"].every == timedelta(minutes=15)
    assert jobs["food_fluid_sweep"].every == timedelta(hours=1)
    assert jobs["intake_generation"].at_hour == 0
    assert jobs["food_fluid_archive"].at_hour == 7


def test_first_tick_runs_every_due_job(make_resident, alerts_for):
    make_resident()
    ran = build_scheduler().run_pending(at(13))
    assert "food_fluid_sweep" in ran
    assert "intake_generation" in ran
    assert len(alerts_for("R-001", "food_fluid")) == 1
