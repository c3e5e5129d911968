# lively_icons/init_db.py
"""Create any missing tables on the configured database."""

import logging

from lively_icons.database import Base
from lively_icons.database.engines import get_engine
import lively_icons.models  # noqa: F401  registers tables

logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())
    logger.info(f"Database tables ready ({len(Base.metadata.tables)} tables)")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
