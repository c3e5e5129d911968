"""Saved generation presets (style, color, animation) per user or team."""

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base
from .types import TimestampMixin, uuid_pk


class StyleTemplate(TimestampMixin, Base):
    __tablename__ = "style_templates"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    team_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt_modifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    style: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stroke_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    animation: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    trigger: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
