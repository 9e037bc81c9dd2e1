from __future__ import annotations

import json
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.orm import Session

from careo.timefmt import now_ms

def audit(db: Session, organization_id: str | None, actor_user_id: str | None, action: str, resource: str,
          resource_id: str | None, detail: Dict[str, Any] | None = None) -> None:
    db.execute(text("""
        INSERT INTO audit_log(time, organization_id, actor_user_id, action, resource, resource_id, detail)
        VALUES (:t,:oid,:uid,:a,:r,:rid,:d)
    """), {
        "t": now_ms(),
        "oid": organization_id,
        "uid": actor_user_id,
        "a": action,
        "r": resource,
        "rid": resource_id,
        "d": json.dumps(detail, default=str) if detail else None,
    })
