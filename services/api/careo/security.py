from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from jose import jwt
from careo.config import settings

ph = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=2, hash_len=32, salt_len=16)

ROLES = ("admin", "manager", "nurse", "carer")

def hash_password(pw: str) -> str:
    return ph.hash(pw)

def verify_password(hash_: str, pw: str) -> bool:
    try:
        return ph.verify(hash_, pw)
    except (VerificationError, InvalidHashError):
        return False

def create_access_token(subject: str, organization_id: str, team_id: str | None, role: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=int(settings.careo_access_token_minutes))
    payload: Dict[str, Any] = {
        "iss": settings.careo_jwt_issuer,
        "aud": settings.careo_jwt_audience,
        "sub": subject,
        "organization_id": organization_id,
        "team_id": team_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.careo_jwt_secret, algorithm="HS256")

def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.careo_jwt_secret,
        algorithms=["HS256"],
        audience=settings.careo_jwt_audience,
        issuer=settings.careo_jwt_issuer,
    )
