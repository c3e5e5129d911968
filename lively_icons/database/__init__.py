"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


from .sessions import SessionLocal, get_db, get_db_session  # noqa: E402

__all__ = ["Base", "SessionLocal", "get_db", "get_db_session"]
