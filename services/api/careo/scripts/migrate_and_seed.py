from __future__ import annotations
import json, os, subprocess, sys
from datetime import timedelta
from pathlib import Path

import structlog
from sqlalchemy import create_engine, text

from careo.config import settings
from careo.medication import INITIAL_SCHEDULE_DAYS, get_medication, schedule_intakes
from careo.observability import init_logging
from careo.security import hash_password
from careo.timefmt import local, now_ms, to_ms, utcnow

log = structlog.get_logger("careo-migrate")

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"

DEMO_RESIDENTS = [
    ("Margaret", "Hughes"), ("Arthur", "Bennett"), ("Edith", "Clarke"), ("Harold", "Price"),
    ("Doris", "Fletcher"), ("Wilfred", "Shaw"), ("Irene", "Walsh"), ("Stanley", "Cole"),
]

def main():
    init_logging("careo-migrate")
    db_url = (os.environ.get("DATABASE_URL_MIGRATOR") or os.environ.get("CAREO_DATABASE_URL_MIGRATOR")
              or settings.database_url_migrator or settings.database_url_app)
    if not db_url:
        raise SystemExit("No database URL configured (set DATABASE_URL_APP or DATABASE_URL_MIGRATOR)")

    env = {**os.environ, "DATABASE_URL_MIGRATOR": db_url}
    subprocess.run([sys.executable, "-m", "alembic", "-c", str(ALEMBIC_INI), "upgrade", "head"], check=True, env=env)
    log.info("migrations_complete")

    eng = create_engine(db_url, future=True)
    now = utcnow()
    t = to_ms(now)
    oid, tid = settings.demo_organization_id, settings.demo_team_id

    with eng.begin() as c:
        if not c.execute(text("SELECT id FROM users WHERE email=:e"), {"e": settings.demo_admin_email}).scalar():
            c.execute(text("""
                INSERT INTO users(id, organization_id, team_id, email, password_hash, role, created_at)
                VALUES ('U-001', :oid, :tid, :e, :ph, 'admin', :t)
            """), {"oid": oid, "tid": tid, "e": settings.demo_admin_email,
                   "ph": hash_password(settings.demo_admin_password), "t": t})
        else:
            c.execute(text("UPDATE users SET password_hash=:ph WHERE email=:e"),
                      {"e": settings.demo_admin_email, "ph": hash_password(settings.demo_admin_password)})

        count = min(settings.demo_resident_count, len(DEMO_RESIDENTS))
        for i, (first, last) in enumerate(DEMO_RESIDENTS[:count], start=1):
            rid = f"R-{i:03d}"
            if c.execute(text("SELECT id FROM residents WHERE id=:id"), {"id": rid}).scalar():
                continue
            c.execute(text("""
                INSERT INTO residents(id, organization_id, team_id, first_name, last_name, room_number,
                    admission_date, status, created_at, updated_at)
                VALUES (:id, :oid, :tid, :fn, :ln, :room, :adm, 'active', :t, :t)
            """), {"id": rid, "oid": oid, "tid": tid, "fn": first, "ln": last, "room": str(100 + i),
                   "adm": local(now).date().isoformat(), "t": t})
            c.execute(text("""
                INSERT INTO night_check_configurations(id, resident_id, organization_id, team_id, check_type,
                    frequency_minutes, selected_items, is_active, created_by, created_at)
                VALUES (:id, :rid, :oid, :tid, 'positioning', 120, NULL, :tr, 'U-001', :t)
            """), {"id": f"NC-{rid}-POS", "rid": rid, "oid": oid, "tid": tid, "tr": True, "t": t})
            c.execute(text("""
                INSERT INTO night_check_configurations(id, resident_id, organization_id, team_id, check_type,
                    frequency_minutes, selected_items, is_active, created_by, created_at)
                VALUES (:id, :rid, :oid, :tid, 'bed_rails', NULL, NULL, :tr, 'U-001', :t)
            """), {"id": f"NC-{rid}-BR", "rid": rid, "oid": oid, "tid": tid, "tr": True, "t": t})
            c.execute(text("""
                INSERT INTO medications(id, resident_id, organization_id, team_id, name, strength, strength_unit,
                    dosage_form, route, frequency, schedule_type, times, instructions, prescriber_name,
                    start_date, end_date, status, created_by, created_at)
                VALUES (:id, :rid, :oid, :tid, 'Paracetamol', '500', 'mg', 'Tablet', 'Oral', 'Twice daily (BD)',
                    'Scheduled', :times, 'With food', 'Dr Patel', :sd, NULL, 'active', 'U-001', :t)
            """), {"id": f"M-{rid}-1", "rid": rid, "oid": oid, "tid": tid,
                   "times": json.dumps(["08:00", "20:00"]), "sd": local(now).date().isoformat(), "t": t})
            med = get_medication(c, oid, f"M-{rid}-1")
            for offset in range(INITIAL_SCHEDULE_DAYS):
                schedule_intakes(c, med, local(now).date() + timedelta(days=offset), not_before_ms=t)

        c.execute(text("""
            INSERT INTO audit_log(time, organization_id, actor_user_id, action, resource, resource_id, detail)
            VALUES (:t, :oid, 'U-001', 'seed.complete', 'organization', :oid, :d)
        """), {"t": now_ms(), "oid": oid, "d": json.dumps({"residents": count})})

    log.info("demo_seeded", organization_id=oid, team_id=tid, residents=count, admin=settings.demo_admin_email)

if __name__ == "__main__":
    main()
