"""Care records consumed by the sweeps: residents, food/fluid logs, night checks.

Recording an event auto-resolves the open alerts it answers.
"""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.orm import Session

from careo.alerts import auto_resolve_food_fluid, auto_resolve_night_check
from careo.db import db_session
from careo.errors import Conflict, NotFound
from careo.rules import food_fluid_day, period_for_section
from careo.timefmt import care_day, iso_date, local, now_ms, to_ms, utcnow

log = structlog.get_logger("careo-records")

RESIDENT_COLUMNS = ("id, organization_id, team_id, first_name, last_name, date_of_birth, room_number, "
                    "admission_date, status, created_at, updated_at")
FOOD_FLUID_COLUMNS = ("id, resident_id, section, type_of_food_drink, portion_served, amount_eaten, "
                      "fluid_consumed_ml, signature, date, logged_at, is_archived, archived_at")
CONFIG_COLUMNS = ("id, resident_id, team_id, check_type, frequency_minutes, selected_items, is_active, "
                  "created_at, updated_at")
RECORDING_COLUMNS = ("id, configuration_id, resident_id, check_type, recorded_at, check_data, notes, "
                     "recorded_by, recorded_by_name")


# --- Residents ---------------------------------------------------------------

def get_resident(db: Session, organization_id: str, resident_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {RESIDENT_COLUMNS} FROM residents WHERE id=:id AND organization_id=:oid"),
                     {"id": resident_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("resident_not_found")
    return dict(row)


def list_residents(db: Session, organization_id: str, team_id: Optional[str] = None,
                   include_inactive: bool = False) -> List[Dict[str, Any]]:
    sql = f"SELECT {RESIDENT_COLUMNS} FROM residents WHERE organization_id=:oid"
    params: Dict[str, Any] = {"oid": organization_id}
    if team_id:
        sql += " AND team_id=:tid"
        params["tid"] = team_id
    if not include_inactive:
        sql += " AND (status IS NULL OR status = 'active')"
    rows = db.execute(text(sql + " ORDER BY last_name, first_name, id"), params).mappings().all()
    return [dict(r) for r in rows]


def create_resident(db: Session, organization_id: str, team_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    rid = payload.get("id") or str(uuid.uuid4())
    exists = db.execute(text("SELECT id FROM residents WHERE id=:id"), {"id": rid}).scalar()
    if exists:
        raise Conflict("resident_exists")
    now = now_ms()
    db.execute(text(f"""
        INSERT INTO residents({RESIDENT_COLUMNS})
        VALUES (:id, :oid, :tid, :fn, :ln, :dob, :room, :adm, 'active', :t, :t)
    """), {
        "id": rid,
        "oid": organization_id,
        "tid": payload.get("team_id") or team_id,
        "fn": payload["first_name"],
        "ln": payload["last_name"],
        "dob": iso_date(payload.get("date_of_birth")),
        "room": payload.get("room_number"),
        "adm": iso_date(payload.get("admission_date")) or care_day(utcnow()),
        "t": now,
    })
    return get_resident(db, organization_id, rid)


def set_resident_status(db: Session, organization_id: str, resident_id: str, status: str) -> Dict[str, Any]:
    get_resident(db, organization_id, resident_id)
    db.execute(text("UPDATE residents SET status=:s, updated_at=:t WHERE id=:id"),
               {"s": status, "t": now_ms(), "id": resident_id})
    return get_resident(db, organization_id, resident_id)


# --- Food / fluid ------------------------------------------------------------

def _food_fluid_row(r: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(r)
    d["is_archived"] = bool(d["is_archived"])
    return d


def get_food_fluid_log(db: Session, organization_id: str, log_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {FOOD_FLUID_COLUMNS} FROM food_fluid_logs WHERE id=:id AND organization_id=:oid"),
                     {"id": log_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("food_fluid_log_not_found")
    return _food_fluid_row(row)


def create_food_fluid_log(db: Session, organization_id: str, created_by: str, payload: Mapping[str, Any],
                          at: Optional[datetime] = None) -> Dict[str, Any]:
    resident = get_resident(db, organization_id, payload["resident_id"])
    at = at or utcnow()
    log_id = str(uuid.uuid4())
    db.execute(text(f"""
        INSERT INTO food_fluid_logs({FOOD_FLUID_COLUMNS}, organization_id, created_by)
        VALUES (:id, :rid, :sec, :typ, :por, :amt, :ml, :sig, :d, :t, :f, NULL, :oid, :by)
    """), {
        "id": log_id,
        "rid": resident["id"],
        "sec": payload["section"],
        "typ": payload["type_of_food_drink"],
        "por": payload["portion_served"],
        "amt": payload["amount_eaten"],
        "ml": payload.get("fluid_consumed_ml"),
        "sig": payload["signature"],
        "d": care_day(at),
        "t": to_ms(at),
        "f": False,
        "oid": organization_id,
        "by": created_by,
    })
    period = period_for_section(payload["section"])
    if period is not None:
        day = food_fluid_day(period, at)
        resolved = auto_resolve_food_fluid(db, resident["id"], period.key, day)
        if resolved:
            log.info("food_fluid_alerts_resolved", resident_id=resident["id"], period=period.key, day=day,
                     count=resolved)
    return get_food_fluid_log(db, organization_id, log_id)


def list_food_fluid_logs(db: Session, organization_id: str, resident_id: str, day: str,
                         include_archived: Optional[bool] = None) -> List[Dict[str, Any]]:
    sql = (f"SELECT {FOOD_FLUID_COLUMNS} FROM food_fluid_logs "
           "WHERE organization_id=:oid AND resident_id=:rid AND date=:d")
    params: Dict[str, Any] = {"oid": organization_id, "rid": resident_id, "d": day}
    if include_archived is not None:
        sql += " AND is_archived=:a"
        params["a"] = include_archived
    rows = db.execute(text(sql + " ORDER BY logged_at DESC"), params).mappings().all()
    return [_food_fluid_row(r) for r in rows]


def update_food_fluid_log(db: Session, organization_id: str, log_id: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
    existing = get_food_fluid_log(db, organization_id, log_id)
    if existing["is_archived"]:
        raise Conflict("food_fluid_log_archived")
    fields = {k: v for k, v in updates.items() if v is not None}
    if fields:
        assignments = ", ".join(f"{k}=:{k}" for k in fields)
        db.execute(text(f"UPDATE food_fluid_logs SET {assignments}, updated_at=:updated_at WHERE id=:id"),
                   {**fields, "updated_at": now_ms(), "id": log_id})
    return get_food_fluid_log(db, organization_id, log_id)


def delete_food_fluid_log(db: Session, organization_id: str, log_id: str) -> None:
    existing = get_food_fluid_log(db, organization_id, log_id)
    if existing["is_archived"]:
        raise Conflict("food_fluid_log_archived")
    db.execute(text("DELETE FROM food_fluid_logs WHERE id=:id"), {"id": log_id})


def archive_food_fluid_logs(target_date: Optional[str] = None, now: Optional[datetime] = None) -> int:
    """Archive every unarchived log of ``target_date`` (default: the previous care-home day)."""
    now = now or utcnow()
    target_date = target_date or (local(now).date() - timedelta(days=1)).isoformat()
    with db_session() as db:
        count = db.execute(text("""
            UPDATE food_fluid_logs SET is_archived=:tr, archived_at=:t
            WHERE date=:d AND is_archived=:f
        """), {"tr": True, "t": to_ms(now), "d": target_date, "f": False}).rowcount or 0
    log.info("food_fluid_logs_archived", date=target_date, count=count)
    return count


# --- Night checks ------------------------------------------------------------

def _config_row(r: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(r)
    d["selected_items"] = json.loads(d["selected_items"]) if d.get("selected_items") else None
    d["is_active"] = bool(d["is_active"])
    return d


def get_night_check_configuration(db: Session, organization_id: str, config_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {CONFIG_COLUMNS} FROM night_check_configurations WHERE id=:id AND organization_id=:oid"),
                     {"id": config_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("night_check_configuration_not_found")
    return _config_row(row)


def create_night_check_configuration(db: Session, organization_id: str, created_by: str,
                                     payload: Mapping[str, Any]) -> Dict[str, Any]:
    resident = get_resident(db, organization_id, payload["resident_id"])
    config_id = str(uuid.uuid4())
    items = payload.get("selected_items")
    db.execute(text("""
        INSERT INTO night_check_configurations(id, resident_id, organization_id, team_id, check_type,
            frequency_minutes, selected_items, is_active, created_by, created_at)
        VALUES (:id, :rid, :oid, :tid, :ct, :freq, :items, :tr, :by, :t)
    """), {
        "id": config_id,
        "rid": resident["id"],
        "oid": organization_id,
        "tid": resident["team_id"],
        "ct": payload["check_type"],
        "freq": payload.get("frequency_minutes"),
        "items": json.dumps(items) if items is not None else None,
        "tr": True,
        "by": created_by,
        "t": now_ms(),
    })
    return get_night_check_configuration(db, organization_id, config_id)


def update_night_check_configuration(db: Session, organization_id: str, config_id: str, updated_by: str,
                                     updates: Mapping[str, Any]) -> Dict[str, Any]:
    get_night_check_configuration(db, organization_id, config_id)
    fields = {k: v for k, v in updates.items() if v is not None}
    if "selected_items" in fields:
        fields["selected_items"] = json.dumps(fields["selected_items"])
    assignments = "".join(f"{k}=:{k}, " for k in fields)
    db.execute(text(f"UPDATE night_check_configurations SET {assignments}updated_by=:by, updated_at=:t WHERE id=:id"),
               {**fields, "by": updated_by, "t": now_ms(), "id": config_id})
    return get_night_check_configuration(db, organization_id, config_id)


def list_night_check_configurations(db: Session, organization_id: str, resident_id: str,
                                    include_inactive: bool = False) -> List[Dict[str, Any]]:
    sql = f"SELECT {CONFIG_COLUMNS} FROM night_check_configurations WHERE organization_id=:oid AND resident_id=:rid"
    params: Dict[str, Any] = {"oid": organization_id, "rid": resident_id}
    if not include_inactive:
        sql += " AND is_active=:tr"
        params["tr"] = True
    rows = db.execute(text(sql + " ORDER BY created_at"), params).mappings().all()
    return [_config_row(r) for r in rows]


def _recording_row(r: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(r)
    d["check_data"] = json.loads(d["check_data"]) if d.get("check_data") else None
    return d


def create_night_check_recording(db: Session, organization_id: str, recorded_by: str,
                                 payload: Mapping[str, Any]) -> Dict[str, Any]:
    config = get_night_check_configuration(db, organization_id, payload["configuration_id"])
    if not config["is_active"]:
        raise Conflict("night_check_configuration_inactive")
    recording_id = str(uuid.uuid4())
    data = payload.get("check_data")
    db.execute(text(f"""
        INSERT INTO night_check_recordings({RECORDING_COLUMNS}, organization_id, created_at)
        VALUES (:id, :cid, :rid, :ct, :at, :data, :notes, :by, :byn, :oid, :t)
    """), {
        "id": recording_id,
        "cid": config["id"],
        "rid": config["resident_id"],
        "ct": config["check_type"],
        "at": payload.get("recorded_at") or now_ms(),
        "data": json.dumps(data) if data is not None else None,
        "notes": payload.get("notes"),
        "by": recorded_by,
        "byn": payload.get("recorded_by_name"),
        "oid": organization_id,
        "t": now_ms(),
    })
    resolved = auto_resolve_night_check(db, config["resident_id"], config["id"], config["check_type"])
    if resolved:
        log.info("night_check_alerts_resolved", resident_id=config["resident_id"], configuration_id=config["id"],
                 count=resolved)
    row = db.execute(text(f"SELECT {RECORDING_COLUMNS} FROM night_check_recordings WHERE id=:id"),
                     {"id": recording_id}).mappings().first()
    return _recording_row(row)


def list_night_check_recordings(db: Session, organization_id: str, resident_id: str,
                                limit: int = 100) -> List[Dict[str, Any]]:
    rows = db.execute(text(f"""
        SELECT {RECORDING_COLUMNS} FROM night_check_recordings
        WHERE organization_id=:oid AND resident_id=:rid
        ORDER BY recorded_at DESC
        LIMIT :lim
    """), {"oid": organization_id, "rid": resident_id, "lim": int(limit)}).mappings().all()
    return [_recording_row(r) for r in rows]
