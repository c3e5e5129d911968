"""Generated icon model and the generation event ledger."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.time_utils import utc_now
from ..database import Base
from .types import JSONType, TimestampMixin, uuid_pk


class GeneratedIcon(TimestampMixin, Base):
    """
    An AI-generated SVG with its animation metadata.

    Icons are owned by a user and optionally attached to a team. Deletion is
    soft (``deleted_at``); queries must filter on it.
    """

    __tablename__ = "generated_icons"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str] = mapped_column(String(50), nullable=False)
    animation: Mapped[str] = mapped_column(String(50), nullable=False)
    trigger: Mapped[str] = mapped_column(String(50), nullable=False)
    svg_code: Mapped[str] = mapped_column(Text, nullable=False)
    component_code: Mapped[str] = mapped_column(Text, nullable=False)
    preview_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    blob_storage_key: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[Optional[List[str]]] = mapped_column(JSONType, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stroke_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_icon_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    reference_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cdn_slug: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_icons_user_created", "clerk_user_id", "created_at"),
        Index("ix_icons_cdn_slug", "clerk_user_id", "cdn_slug"),
    )

    def __repr__(self) -> str:
        return f"<GeneratedIcon(id={self.id}, name={self.name!r})>"


class GenerationEvent(Base):
    """Usage ledger row written for every generate/refine/export/delete."""

    __tablename__ = "generation_events"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    icon_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("generated_icons.id", ondelete="SET NULL"), nullable=True
    )
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSONType, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    __table_args__ = (Index("ix_events_user_created", "clerk_user_id", "created_at"),)
