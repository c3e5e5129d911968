"""Database engine factories for the API process and Celery workers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from lively_icons.core.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _add_pool_events(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        logger.debug("Database connection established")
        if _is_sqlite(str(engine.url)):
            # SQLite leaves FK enforcement off unless asked per connection
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @event.listens_for(engine, "invalidate")
    def _on_invalidate(_dbapi_connection: Any, _connection_record: Any, exception: Any) -> None:
        logger.warning(
            "Database connection invalidated",
            extra={
                "event": "db_connection_invalidated",
                "exception": str(exception) if exception else "unknown",
            },
        )


def create_app_engine(url: Optional[str] = None) -> Engine:
    db_url = url or settings.database_url
    if _is_sqlite(db_url):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, future=True, **kwargs)
    else:
        engine = create_engine(
            db_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            pool_recycle=300,
            future=True,
        )
    _add_pool_events(engine)
    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_app_engine()
    return _engine


__all__ = ["create_app_engine", "get_engine"]
