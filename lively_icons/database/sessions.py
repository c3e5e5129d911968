"""Session factory and request/task scoped session helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session, sessionmaker

from .engines import get_engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def init_session_factory() -> None:
    """Bind the session factory to the application engine (idempotent)."""
    SessionLocal.configure(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, committed on success."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for Celery tasks and other short-lived DB work."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


init_session_factory()


__all__ = ["SessionLocal", "get_db", "get_db_session", "init_session_factory"]
