from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

import pytest
from sqlalchemy import text

from careo import db as careo_db
from careo.config import settings
from careo.tables import metadata
from careo.timefmt import care_day, now_ms, to_ms

ORG = "O-001"
TEAM = "T-001"

@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Any]:
    """Fresh SQLite database per test, built from the table metadata."""
    monkeypatch.setattr(settings, "database_url_app", f"sqlite:///{tmp_path / 'careo.db'}")
    monkeypatch.setattr(settings, "careo_timezone", "Europe/London")
    careo_db.reset_engine()
    engine = careo_db.engine()
    metadata.create_all(engine)
    yield engine
    careo_db.reset_engine()


@pytest.fixture
def db(database):
    with careo_db.db_session() as session:
        yield session


@pytest.fixture
def make_resident(database):
    def _make(rid: str = "R-001", status: Optional[str] = "active", first_name: str = "Margaret",
              last_name: str = "Hughes", organization_id: str = ORG) -> Dict[str, Any]:
        row = {"id": rid, "organization_id": organization_id, "team_id": TEAM,
               "first_name": first_name, "last_name": last_name}
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO residents(id, organization_id, team_id, first_name, last_name, status, created_at, updated_at)
                VALUES (:id, :organization_id, :team_id, :first_name, :last_name, :status, :t, :t)
            """), {**row, "status": status, "t": now_ms()})
        return row
    return _make


@pytest.fixture
def make_food_log(database):
    def _make(resident_id: str, section: str, logged_at: datetime, archived: bool = False) -> str:
        log_id = str(uuid.uuid4())
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO food_fluid_logs(id, resident_id, organization_id, section, type_of_food_drink,
                    portion_served, amount_eaten, fluid_consumed_ml, signature, date, logged_at, is_archived,
                    archived_at, created_by)
                VALUES (:id, :rid, :oid, :sec, 'Porridge', '1 bowl', 'All', 200, 'JS', :d, :t, :a, NULL, 'U-001')
            """), {"id": log_id, "rid": resident_id, "oid": ORG, "sec": section,
                   "d": care_day(logged_at), "t": to_ms(logged_at), "a": archived})
        return log_id
    return _make


@pytest.fixture
def make_config(database):
    def _make(resident_id: str, check_type: str, frequency_minutes: Optional[int] = None,
              config_id: Optional[str] = None, is_active: bool = True) -> str:
        config_id = config_id or f"C-{uuid.uuid4().hex[:8]}"
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO night_check_configurations(id, resident_id, organization_id, team_id, check_type,
                    frequency_minutes, selected_items, is_active, created_by, created_at)
                VALUES (:id, :rid, :oid, :tid, :ct, :freq, NULL, :active, 'U-001', :t)
            """), {"id": config_id, "rid": resident_id, "oid": ORG, "tid": TEAM, "ct": check_type,
                   "freq": frequency_minutes, "active": is_active, "t": now_ms()})
        return config_id
    return _make


@pytest.fixture
def make_recording(database):
    def _make(config_id: str, resident_id: str, check_type: str, recorded_at: datetime) -> str:
        recording_id = str(uuid.uuid4())
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO night_check_recordings(id, configuration_id, resident_id, organization_id, check_type,
                    recorded_at, check_data, notes, recorded_by, recorded_by_name, created_at)
                VALUES (:id, :cid, :rid, :oid, :ct, :at, NULL, NULL, 'U-001', 'Night Carer', :t)
            """), {"id": recording_id, "cid": config_id, "rid": resident_id, "oid": ORG, "ct": check_type,
                   "at": to_ms(recorded_at), "t": now_ms()})
        return recording_id
    return _make


@pytest.fixture
def make_medication(database):
    def _make(resident_id: str, medication_id: str = "M-001", times=("08:00", "20:00"),
              frequency: str = "Twice daily (BD)", schedule_type: str = "Scheduled",
              start_date: str = "2026-01-01", end_date: Optional[str] = None, name: str = "Paracetamol") -> str:
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO medications(id, resident_id, organization_id, team_id, name, strength, strength_unit,
                    dosage_form, route, frequency, schedule_type, times, instructions, prescriber_name,
                    start_date, end_date, status, created_by, created_at)
                VALUES (:id, :rid, :oid, :tid, :name, '500', 'mg', 'Tablet', 'Oral', :freq, :sched, :times, NULL,
                    'Dr Patel', :sd, :ed, 'active', 'U-001', :t)
            """), {"id": medication_id, "rid": resident_id, "oid": ORG, "tid": TEAM, "name": name,
                   "freq": frequency, "sched": schedule_type, "times": json.dumps(list(times)),
                   "sd": start_date, "ed": end_date, "t": now_ms()})
        return medication_id
    return _make


@pytest.fixture
def make_intake(database):
    def _make(medication_id: str, resident_id: str, scheduled: datetime, state: str = "scheduled",
              intake_id: Optional[str] = None) -> str:
        intake_id = intake_id or f"I-{uuid.uuid4().hex[:8]}"
        with careo_db.db_session() as s:
            s.execute(text("""
                INSERT INTO medication_intakes(id, medication_id, resident_id, organization_id, team_id,
                    scheduled_time, state, created_at, updated_at)
                VALUES (:id, :mid, :rid, :oid, :tid, :st, :state, :t, :t)
            """), {"id": intake_id, "mid": medication_id, "rid": resident_id, "oid": ORG, "tid": TEAM,
                   "st": to_ms(scheduled), "state": state, "t": now_ms()})
        return intake_id
    return _make


def open_alerts(resident_id: str, alert_type: Optional[str] = None) -> list:
    sql = "SELECT id, alert_type, severity, title, dedupe_key, time_period FROM alerts WHERE resident_id=:rid AND is_resolved=:f"
    params: Dict[str, Any] = {"rid": resident_id, "f": False}
    if alert_type:
        sql += " AND alert_type=:t"
        params["t"] = alert_type
    with careo_db.db_session() as s:
        return [dict(r) for r in s.execute(text(sql + " ORDER BY created_at, id"), params).mappings().all()]


@pytest.fixture
def alerts_for():
    return open_alerts
