"""Periodic alert sweeps.

A sweep scans every active resident, feeds the latest relevant care events
into the threshold rules and hands unmet thresholds to the alert sink. Each
resident is evaluated in its own transaction; an exception is logged and
counted and the sweep moves on to the next resident. The sink's dedupe keys
make a repeated sweep at the same instant a no-op.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import structlog
from prometheus_client import Counter, Histogram
from sqlalchemy import text
from sqlalchemy.orm import Session

from careo import rules
from careo.alerts import create_alert
from careo.db import db_session
from careo.timefmt import DAY_MS, MINUTE_MS, from_ms, local, local_ms, to_ms, utcnow

log = structlog.get_logger("careo-sweep")

SWEEP_FAILURES = Counter("careo_sweep_failures_total", "Residents whose evaluation raised", ["sweep"])
SWEEP_SECONDS = Histogram("careo_sweep_seconds", "Sweep duration", ["sweep"])

FOOD_FLUID_SWEEP = "food_fluid"
NIGHT_CHECK_SWEEP = "night_check"
MEDICATION_SWEEP = "medication"

# Missed doses older than this are no longer chased.
MISSED_DOSE_LOOKBACK_MS = DAY_MS


@dataclass
class SweepResult:
    alerts_created: int = 0
    residents_checked: int = 0
    failures: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def active_residents(db: Session) -> List[Dict[str, Any]]:
    rows = db.execute(text("""
        SELECT id, organization_id, team_id, first_name, last_name
        FROM residents
        WHERE status IS NULL OR status = 'active'
        ORDER BY id
    """)).mappings().all()
    return [dict(r) for r in rows]


def display_name(resident: Mapping[str, Any]) -> str:
    return f"{resident['first_name']} {resident['last_name']}"


def _run(sweep: str, now: datetime, evaluate: Callable[[Session, Mapping[str, Any], datetime], int]) -> SweepResult:
    started = time.perf_counter()
    with db_session() as db:
        residents = active_residents(db)

    result = SweepResult(residents_checked=len(residents))
    log.info("sweep_started", sweep=sweep, residents=len(residents), at=now.isoformat())
    for resident in residents:
        try:
            with db_session() as db:
                result.alerts_created += evaluate(db, resident, now)
        except Exception:
            result.failures += 1
            SWEEP_FAILURES.labels(sweep=sweep).inc()
            log.exception("sweep_resident_failed", sweep=sweep, resident_id=resident["id"])

    SWEEP_SECONDS.labels(sweep=sweep).observe(time.perf_counter() - started)
    log.info("sweep_complete", sweep=sweep, **result.as_dict())
    return result


def _emit(db: Session, resident: Mapping[str, Any], decision: Optional[rules.AlertDecision], now: datetime) -> int:
    if decision is None:
        return 0
    _, created = create_alert(db, resident, decision, at_ms=to_ms(now))
    return int(created)


# --- Food / fluid ------------------------------------------------------------

def evaluate_food_fluid(db: Session, resident: Mapping[str, Any], now: datetime) -> int:
    # From local midnight yesterday, so last night's 22:00 onwards is covered.
    since = local_ms(local(now).date() - timedelta(days=1), "00:00")
    rows = db.execute(text("""
        SELECT section, MAX(logged_at) AS last_logged
        FROM food_fluid_logs
        WHERE resident_id=:rid AND logged_at >= :since
        GROUP BY section
    """), {"rid": resident["id"], "since": since}).mappings().all()
    last = {r["section"].lower(): from_ms(r["last_logged"]) for r in rows}

    name = display_name(resident)
    created = 0
    for period in rules.FOOD_FLUID_PERIODS:
        decision = rules.food_fluid_rule(now, last.get(period.key), period, name)
        created += _emit(db, resident, decision, now)
    return created


def generate_food_fluid_alerts(now: Optional[datetime] = None) -> SweepResult:
    return _run(FOOD_FLUID_SWEEP, now or utcnow(), evaluate_food_fluid)


# --- Night checks ------------------------------------------------------------

def evaluate_night_checks(db: Session, resident: Mapping[str, Any], now: datetime) -> int:
    configs = db.execute(text("""
        SELECT c.id, c.check_type, c.frequency_minutes, MAX(r.recorded_at) AS last_recorded
        FROM night_check_configurations c
        LEFT JOIN night_check_recordings r ON r.configuration_id = c.id
        WHERE c.resident_id=:rid AND c.is_active=:t
        GROUP BY c.id, c.check_type, c.frequency_minutes
        ORDER BY c.id
    """), {"rid": resident["id"], "t": True}).mappings().all()

    name = display_name(resident)
    created = 0
    for c in configs:
        config = rules.NightCheckConfig(c["id"], c["check_type"], c["frequency_minutes"])
        last = from_ms(c["last_recorded"]) if c["last_recorded"] is not None else None
        created += _emit(db, resident, rules.night_check_rule(now, last, config, name), now)
    return created


def generate_night_check_alerts(now: Optional[datetime] = None) -> SweepResult:
    return _run(NIGHT_CHECK_SWEEP, now or utcnow(), evaluate_night_checks)


# --- Medication --------------------------------------------------------------

def evaluate_medication(db: Session, resident: Mapping[str, Any], now: datetime) -> int:
    now_ms = to_ms(now)
    intakes = db.execute(text("""
        SELECT i.id, i.medication_id, i.scheduled_time, i.state,
               m.name, m.strength, m.strength_unit
        FROM medication_intakes i
        JOIN medications m ON m.id = i.medication_id
        WHERE i.resident_id=:rid
          AND ((i.state = 'scheduled' AND i.scheduled_time <= :due_by)
               OR (i.state = 'missed' AND i.scheduled_time >= :missed_since))
        ORDER BY i.scheduled_time, i.id
    """), {
        "rid": resident["id"],
        "due_by": now_ms + rules.MEDICATION_DUE_SOON_MINUTES * MINUTE_MS,
        "missed_since": now_ms - MISSED_DOSE_LOOKBACK_MS,
    }).mappings().all()

    name = display_name(resident)
    created = 0
    for i in intakes:
        dose = rules.MedicationDose(
            intake_id=i["id"],
            medication_id=i["medication_id"],
            medication_name=i["name"],
            strength=i["strength"],
            strength_unit=i["strength_unit"],
            scheduled_time=from_ms(i["scheduled_time"]),
            state=i["state"],
        )
        created += _emit(db, resident, rules.medication_rule(now, dose, name), now)
    return created


def generate_medication_alerts(now: Optional[datetime] = None) -> SweepResult:
    return _run(MEDICATION_SWEEP, now or utcnow(), evaluate_medication)


SWEEPS: Dict[str, Callable[[Optional[datetime]], SweepResult]] = {
    FOOD_FLUID_SWEEP: generate_food_fluid_alerts,
    NIGHT_CHECK_SWEEP: generate_night_check_alerts,
    MEDICATION_SWEEP: generate_medication_alerts,
}


def run_sweep(now: Optional[datetime] = None, kinds: Optional[Iterable[str]] = None) -> Dict[str, SweepResult]:
    now = now or utcnow()
    selected = list(kinds) if kinds else list(SWEEPS)
    unknown = [k for k in selected if k not in SWEEPS]
    if unknown:
        raise ValueError(f"unknown sweep(s): {', '.join(unknown)}")
    return {k: SWEEPS[k](now) for k in selected}
