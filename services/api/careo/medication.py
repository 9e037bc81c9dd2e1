"""Medications and their scheduled intakes."""
from __future__ import annotations

import json
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.orm import Session

from careo.alerts import auto_resolve_medication
from careo.db import db_session
from careo.errors import NotFound
from careo.records import get_resident
from careo.timefmt import iso_date, local, local_ms, now_ms, to_ms, utcnow

log = structlog.get_logger("careo-medication")

PRN = "PRN (As Needed)"
STAT = "One time (STAT)"
# Days between doses for the non-daily frequencies; everything else is daily.
FREQUENCY_STEP_DAYS = {"Weekly": 7, "Monthly": 30}
INITIAL_SCHEDULE_DAYS = 7

MEDICATION_COLUMNS = ("id, resident_id, name, strength, strength_unit, dosage_form, route, frequency, "
                      "schedule_type, times, instructions, prescriber_name, start_date, end_date, status")
INTAKE_COLUMNS = "id, medication_id, resident_id, scheduled_time, state, state_modified_by, state_modified_at, notes"


def _medication_row(r: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(r)
    d["times"] = json.loads(d["times"]) if d.get("times") else []
    return d


def get_medication(db: Session, organization_id: str, medication_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"""
        SELECT {MEDICATION_COLUMNS}, organization_id, team_id FROM medications
        WHERE id=:id AND organization_id=:oid
    """), {"id": medication_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("medication_not_found")
    return _medication_row(row)


def is_dose_day(medication: Mapping[str, Any], day: date) -> bool:
    if medication["schedule_type"] == PRN or not medication["times"]:
        return False
    start = date.fromisoformat(medication["start_date"])
    if day < start:
        return False
    if medication.get("end_date") and day > date.fromisoformat(medication["end_date"]):
        return False
    if medication["frequency"] == STAT:
        return day == start
    step = FREQUENCY_STEP_DAYS.get(medication["frequency"], 1)
    return (day - start).days % step == 0


def schedule_intakes(db: Session, medication: Mapping[str, Any], day: date,
                     not_before_ms: Optional[int] = None) -> int:
    """Create the intakes of ``medication`` due on ``day``; existing slots are left alone."""
    if not is_dose_day(medication, day):
        return 0
    created = 0
    now = now_ms()
    for hhmm in medication["times"]:
        scheduled = local_ms(day, hhmm)
        if not_before_ms is not None and scheduled < not_before_ms:
            continue
        exists = db.execute(text("SELECT id FROM medication_intakes WHERE medication_id=:mid AND scheduled_time=:st"),
                            {"mid": medication["id"], "st": scheduled}).scalar()
        if exists:
            continue
        db.execute(text(f"""
            INSERT INTO medication_intakes({INTAKE_COLUMNS}, organization_id, team_id, created_at, updated_at)
            VALUES (:id, :mid, :rid, :st, 'scheduled', NULL, NULL, NULL, :oid, :tid, :t, :t)
        """), {
            "id": str(uuid.uuid4()),
            "mid": medication["id"],
            "rid": medication["resident_id"],
            "st": scheduled,
            "oid": medication["organization_id"],
            "tid": medication["team_id"],
            "t": now,
        })
        created += 1
    return created


def create_medication(db: Session, organization_id: str, created_by: str, payload: Mapping[str, Any],
                      at: Optional[datetime] = None) -> Dict[str, Any]:
    resident = get_resident(db, organization_id, payload["resident_id"])
    at = at or utcnow()
    medication_id = str(uuid.uuid4())
    db.execute(text(f"""
        INSERT INTO medications({MEDICATION_COLUMNS}, organization_id, team_id, created_by, created_at)
        VALUES (:id, :rid, :name, :st, :su, :df, :route, :freq, :sched, :times, :instr, :presc, :sd, :ed, 'active',
                :oid, :tid, :by, :t)
    """), {
        "id": medication_id,
        "rid": resident["id"],
        "name": payload["name"],
        "st": payload["strength"],
        "su": payload["strength_unit"],
        "df": payload["dosage_form"],
        "route": payload["route"],
        "freq": payload["frequency"],
        "sched": payload["schedule_type"],
        "times": json.dumps(list(payload.get("times") or [])),
        "instr": payload.get("instructions"),
        "presc": payload["prescriber_name"],
        "sd": iso_date(payload["start_date"]),
        "ed": iso_date(payload.get("end_date")),
        "oid": organization_id,
        "tid": resident["team_id"],
        "by": created_by,
        "t": to_ms(at),
    })
    medication = get_medication(db, organization_id, medication_id)

    today = local(at).date()
    scheduled = 0
    for offset in range(INITIAL_SCHEDULE_DAYS):
        scheduled += schedule_intakes(db, medication, today + timedelta(days=offset), not_before_ms=to_ms(at))
    log.info("medication_created", medication_id=medication_id, resident_id=resident["id"], intakes=scheduled)
    return {**medication, "intakes_scheduled": scheduled}


def generate_next_day_intakes(now: Optional[datetime] = None) -> int:
    """Daily job: create tomorrow's intakes (care-home calendar) for every active medication."""
    now = now or utcnow()
    target = local(now).date() + timedelta(days=1)
    with db_session() as db:
        ids = db.execute(text("SELECT id, organization_id FROM medications WHERE status='active' ORDER BY id")).all()

    total = 0
    for medication_id, organization_id in ids:
        try:
            with db_session() as db:
                total += schedule_intakes(db, get_medication(db, organization_id, medication_id), target)
        except Exception:
            log.exception("intake_generation_failed", medication_id=medication_id)
    log.info("intakes_generated", date=target.isoformat(), medications=len(ids), created=total)
    return total


def get_intake(db: Session, organization_id: str, intake_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {INTAKE_COLUMNS} FROM medication_intakes WHERE id=:id AND organization_id=:oid"),
                     {"id": intake_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("intake_not_found")
    return dict(row)


def list_intakes(db: Session, organization_id: str, resident_id: str, day: Optional[date] = None) -> List[Dict[str, Any]]:
    sql = f"SELECT {INTAKE_COLUMNS} FROM medication_intakes WHERE organization_id=:oid AND resident_id=:rid"
    params: Dict[str, Any] = {"oid": organization_id, "rid": resident_id}
    if day is not None:
        sql += " AND scheduled_time >= :start AND scheduled_time < :end"
        params.update(start=local_ms(day, "00:00"), end=local_ms(day + timedelta(days=1), "00:00"))
    rows = db.execute(text(sql + " ORDER BY scheduled_time, id"), params).mappings().all()
    return [dict(r) for r in rows]


def update_intake_state(db: Session, organization_id: str, intake_id: str, state: str, modified_by: str,
                        notes: Optional[str] = None) -> Dict[str, Any]:
    intake = get_intake(db, organization_id, intake_id)
    params: Dict[str, Any] = {"s": state, "by": modified_by, "t": now_ms(), "id": intake_id}
    notes_sql = ""
    if notes is not None:
        notes_sql = ", notes=:notes"
        params["notes"] = notes
    db.execute(text(f"""
        UPDATE medication_intakes SET state=:s, state_modified_by=:by, state_modified_at=:t, updated_at=:t{notes_sql}
        WHERE id=:id
    """), params)
    resolved = auto_resolve_medication(db, intake["resident_id"], intake_id)
    if resolved:
        log.info("medication_alerts_resolved", intake_id=intake_id, count=resolved)
    return get_intake(db, organization_id, intake_id)
