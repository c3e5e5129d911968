"""Subscription model: plan, billing state and token balances per user."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base
from .types import TimestampMixin, uuid_pk


class Subscription(TimestampMixin, Base):
    """
    One row per authenticated user.

    ``tokens_balance`` holds the monthly (or lifetime, for free) allotment and
    ``top_up_tokens`` holds purchased tokens that never expire. Spending
    draws on the monthly balance first.
    """

    __tablename__ = "subscriptions"

    id: Mapped[str] = uuid_pk()
    clerk_user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    stripe_customer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    plan_type: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    tokens_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_up_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_refresh_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Set when the account enters past_due; dunning steps measure from here
    past_due_since: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def total_tokens(self) -> int:
        return (self.tokens_balance or 0) + (self.top_up_tokens or 0)

    def __repr__(self) -> str:
        return f"<Subscription(user={self.clerk_user_id}, plan={self.plan_type}, status={self.status})>"
