"""Batch generation job tracked by status and per-prompt progress."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.time_utils import utc_now
from ..database import Base
from .types import JSONType, uuid_pk


class BatchJob(Base):
    __tablename__ = "batch_jobs"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="queued")
    total_prompts: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prompts: Mapped[List[str]] = mapped_column(JSONType, nullable=False)
    style: Mapped[str] = mapped_column(String(50), nullable=False)
    animation: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    icon_ids: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_batches_user_created", "clerk_user_id", "created_at"),)

    @property
    def progress(self) -> float:
        if not self.total_prompts:
            return 0.0
        done = (self.completed_count or 0) + (self.failed_count or 0)
        return round(done / self.total_prompts, 4)
