"""Alert sink and alert queries.

``create_alert`` is the only writer used by the sweeps. Deduplication is a
lookup-before-insert on (resident, alert type, dedupe key) among unresolved
alerts; it is not backed by a database constraint, so two sweeps racing on
the same resident can still both insert.
"""
from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog
from prometheus_client import Counter
from sqlalchemy import text
from sqlalchemy.orm import Session

from careo.errors import NotFound
from careo.rules import FOOD_FLUID, MEDICATION, NIGHT_CHECK, SEVERITY_RANK, AlertDecision
from careo.timefmt import now_ms

log = structlog.get_logger("careo-alerts")

ALERTS_CREATED = Counter("careo_alerts_created_total", "Alerts created", ["alert_type", "severity"])
ALERTS_RESOLVED = Counter("careo_alerts_resolved_total", "Alerts resolved", ["alert_type", "auto"])

_COLUMNS = ("id, resident_id, organization_id, team_id, alert_type, severity, title, message, time_period, "
            "dedupe_key, metadata, is_resolved, created_at, resolved_at, resolved_by, resolution_note, auto_resolved")


def _row(r: Mapping[str, Any]) -> Dict[str, Any]:
    d = dict(r)
    d["metadata"] = json.loads(d["metadata"]) if d.get("metadata") else None
    d["is_resolved"] = bool(d["is_resolved"])
    d["auto_resolved"] = bool(d["auto_resolved"])
    return d


def _sort(alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(alerts, key=lambda a: (SEVERITY_RANK.get(a["severity"], len(SEVERITY_RANK)), -a["created_at"]))


def find_open(db: Session, resident_id: str, alert_type: str, dedupe_key: str) -> Optional[str]:
    return db.execute(text(
        "SELECT id FROM alerts WHERE resident_id=:rid AND alert_type=:t AND dedupe_key=:k AND is_resolved=:f "
        "ORDER BY created_at LIMIT 1"
    ), {"rid": resident_id, "t": alert_type, "k": dedupe_key, "f": False}).scalar()


def create_alert(db: Session, resident: Mapping[str, Any], decision: AlertDecision,
                 at_ms: Optional[int] = None) -> Tuple[str, bool]:
    """Insert ``decision`` for ``resident`` unless an equivalent alert is still open.

    Returns ``(alert_id, created)``; ``created`` is False when the open alert
    already existed.
    """
    existing = find_open(db, resident["id"], decision.alert_type, decision.dedupe_key)
    if existing:
        return existing, False

    at_ms = now_ms() if at_ms is None else at_ms
    if decision.supersedes:
        supersede(db, resident["id"], decision.alert_type, decision.supersedes,
                  note=f"Superseded by {decision.title.lower()}", at_ms=at_ms)

    alert_id = str(uuid.uuid4())
    db.execute(text(f"""
        INSERT INTO alerts({_COLUMNS})
        VALUES (:id, :rid, :oid, :tid, :t, :sev, :title, :msg, :tp, :k, :md, :f, :now, NULL, NULL, NULL, :f)
    """), {
        "id": alert_id,
        "rid": resident["id"],
        "oid": resident["organization_id"],
        "tid": resident["team_id"],
        "t": decision.alert_type,
        "sev": decision.severity,
        "title": decision.title,
        "msg": decision.message,
        "tp": decision.time_period,
        "k": decision.dedupe_key,
        "md": json.dumps(decision.metadata, default=str) if decision.metadata else None,
        "f": False,
        "now": at_ms,
    })
    ALERTS_CREATED.labels(alert_type=decision.alert_type, severity=decision.severity).inc()
    log.info("alert_created", alert_id=alert_id, resident_id=resident["id"], alert_type=decision.alert_type,
             severity=decision.severity, dedupe_key=decision.dedupe_key)
    return alert_id, True


def supersede(db: Session, resident_id: str, alert_type: str, dedupe_keys: Iterable[str], note: str,
              at_ms: Optional[int] = None) -> int:
    """Auto-resolve the open alerts of ``resident_id`` carrying any of ``dedupe_keys``."""
    resolved = 0
    for key in dedupe_keys:
        resolved += _resolve_where(db, "resident_id=:rid AND alert_type=:t AND dedupe_key=:k",
                                   {"rid": resident_id, "t": alert_type, "k": key},
                                   note=note, auto=True, at_ms=at_ms)
    return resolved


def _resolve_where(db: Session, where: str, params: Dict[str, Any], *, note: str, auto: bool,
                   resolved_by: Optional[str] = None, at_ms: Optional[int] = None) -> int:
    rows = db.execute(text(f"SELECT id, alert_type FROM alerts WHERE {where} AND is_resolved=:f"),
                      {**params, "f": False}).mappings().all()
    if not rows:
        return 0
    at_ms = now_ms() if at_ms is None else at_ms
    for r in rows:
        db.execute(text("""
            UPDATE alerts SET is_resolved=:tr, resolved_at=:now, resolved_by=:by, resolution_note=:note, auto_resolved=:auto
            WHERE id=:id
        """), {"tr": True, "now": at_ms, "by": resolved_by, "note": note, "auto": auto, "id": r["id"]})
        ALERTS_RESOLVED.labels(alert_type=r["alert_type"], auto=str(auto).lower()).inc()
    return len(rows)


def resolve_alert(db: Session, organization_id: str, alert_id: str, resolved_by: Optional[str] = None,
                  note: Optional[str] = None, auto: bool = False) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {_COLUMNS} FROM alerts WHERE id=:id AND organization_id=:oid"),
                     {"id": alert_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("alert_not_found")
    if not row["is_resolved"]:
        _resolve_where(db, "id=:id", {"id": alert_id}, note=note or "Resolved", auto=auto, resolved_by=resolved_by)
    return get_alert(db, organization_id, alert_id)


def get_alert(db: Session, organization_id: str, alert_id: str) -> Dict[str, Any]:
    row = db.execute(text(f"SELECT {_COLUMNS} FROM alerts WHERE id=:id AND organization_id=:oid"),
                     {"id": alert_id, "oid": organization_id}).mappings().first()
    if not row:
        raise NotFound("alert_not_found")
    return _row(row)


def auto_resolve_food_fluid(db: Session, resident_id: str, time_period: str, day: str) -> int:
    return _resolve_where(db, "resident_id=:rid AND alert_type=:t AND time_period=:tp AND dedupe_key=:k",
                          {"rid": resident_id, "t": FOOD_FLUID, "tp": time_period, "k": f"{day}:{time_period}"},
                          note=f"Food/fluid logged for {time_period} period", auto=True)


def auto_resolve_night_check(db: Session, resident_id: str, configuration_id: str, check_type: str) -> int:
    return _resolve_where(db, "resident_id=:rid AND alert_type=:t AND (dedupe_key=:k OR dedupe_key LIKE :p)",
                          {"rid": resident_id, "t": NIGHT_CHECK, "k": f"config:{configuration_id}",
                           "p": f"config:{configuration_id}:%"},
                          note=f"{check_type} check recorded", auto=True)


def auto_resolve_medication(db: Session, resident_id: str, intake_id: str) -> int:
    return _resolve_where(db, "resident_id=:rid AND alert_type=:t AND dedupe_key LIKE :p",
                          {"rid": resident_id, "t": MEDICATION, "p": f"intake:{intake_id}:%"},
                          note="Medication intake status updated", auto=True)


def clear_unresolved(db: Session, organization_id: str, resolved_by: Optional[str] = None) -> int:
    return _resolve_where(db, "organization_id=:oid", {"oid": organization_id},
                          note="Cleared by administrator", auto=False, resolved_by=resolved_by)


def resident_alerts(db: Session, organization_id: str, resident_id: str) -> List[Dict[str, Any]]:
    rows = db.execute(text(f"""
        SELECT {_COLUMNS} FROM alerts
        WHERE organization_id=:oid AND resident_id=:rid AND is_resolved=:f
    """), {"oid": organization_id, "rid": resident_id, "f": False}).mappings().all()
    return _sort([_row(r) for r in rows])


def _empty_counts() -> Dict[str, int]:
    return {"total": 0, "critical": 0, "warning": 0, "info": 0}


def alert_counts(db: Session, organization_id: str, resident_ids: Iterable[str]) -> Dict[str, Dict[str, int]]:
    ids = list(dict.fromkeys(resident_ids))
    counts = {rid: _empty_counts() for rid in ids}
    if not ids:
        return counts
    params: Dict[str, Any] = {"oid": organization_id, "f": False}
    params.update({f"r{i}": rid for i, rid in enumerate(ids)})
    placeholders = ", ".join(f":r{i}" for i in range(len(ids)))
    rows = db.execute(text(f"""
        SELECT resident_id, severity, COUNT(*) AS n FROM alerts
        WHERE organization_id=:oid AND is_resolved=:f AND resident_id IN ({placeholders})
        GROUP BY resident_id, severity
    """), params).mappings().all()
    for r in rows:
        c = counts[r["resident_id"]]
        c["total"] += r["n"]
        if r["severity"] in c:
            c[r["severity"]] += r["n"]
    return counts


def resident_alert_counts(db: Session, organization_id: str, resident_id: str) -> Dict[str, int]:
    return alert_counts(db, organization_id, [resident_id])[resident_id]


def organization_alerts(db: Session, organization_id: str, include_resolved: bool = False) -> List[Dict[str, Any]]:
    sql = f"SELECT {_COLUMNS} FROM alerts WHERE organization_id=:oid"
    params: Dict[str, Any] = {"oid": organization_id}
    if not include_resolved:
        sql += " AND is_resolved=:f"
        params["f"] = False
    rows = db.execute(text(sql), params).mappings().all()
    return _sort([_row(r) for r in rows])
