"""Collections of icons and their public share links."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.time_utils import utc_now
from ..database import Base
from .types import TimestampMixin, uuid_pk


class Collection(TimestampMixin, Base):
    """A named grouping of icons; collections may nest one level or more."""

    __tablename__ = "collections"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    team_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_collection_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


class CollectionIcon(Base):
    """Join table between collections and icons."""

    __tablename__ = "collection_icons"

    collection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    )
    icon_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("generated_icons.id", ondelete="CASCADE"), primary_key=True
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )


class SharedCollection(TimestampMixin, Base):
    __tablename__ = "shared_collections"

    id: Mapped[str] = uuid_pk()
    collection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    public_slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_embed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
