"""Batch job repository."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models.batch_job import BatchJob
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BatchJobRepository(BaseRepository[BatchJob]):
    def __init__(self, db: Session):
        super().__init__(db, BatchJob)

    def get_owned(self, batch_id: str, clerk_user_id: str) -> Optional[BatchJob]:
        return self.find_one_by(id=batch_id, clerk_user_id=clerk_user_id)
