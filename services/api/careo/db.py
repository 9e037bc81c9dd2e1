from __future__ import annotations
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from careo.config import settings

_engine = None
_SessionLocal = None

def engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        _engine = create_engine(settings.database_url_app, pool_pre_ping=True, future=True)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, future=True)
    return _engine

def session_local():
    if _SessionLocal is None:
        engine()
    return _SessionLocal

def reset_engine() -> None:
    """Drop the cached engine so the next call picks up ``settings.database_url_app``."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None

@contextmanager
def db_session() -> Generator[Session, None, None]:
    db = session_local()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
