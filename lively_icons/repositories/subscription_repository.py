"""
Subscription Repository for Lively Icons

Data access for per-user subscriptions: lookups by Clerk user, Stripe
customer and Stripe subscription, plus the sweeps used by scheduled tasks.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.subscription import Subscription
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self, db: Session):
        super().__init__(db, Subscription)

    def get_by_user(self, clerk_user_id: str) -> Optional[Subscription]:
        return self.find_one_by(clerk_user_id=clerk_user_id)

    def get_by_user_for_update(self, clerk_user_id: str) -> Optional[Subscription]:
        """Row-locking read used before balance mutations (no-op on SQLite)."""
        try:
            return (
                self.db.query(Subscription)
                .filter(Subscription.clerk_user_id == clerk_user_id)
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking subscription for {clerk_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock subscription: {str(e)}")

    def get_by_stripe_customer(self, customer_id: str) -> Optional[Subscription]:
        return self.find_one_by(stripe_customer_id=customer_id)

    def get_by_stripe_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self.find_one_by(stripe_subscription_id=subscription_id)

    def list_due_for_refresh(self, now: datetime) -> List[Subscription]:
        """Active paid subscriptions whose refresh date has passed."""
        try:
            return (
                self.db.query(Subscription)
                .filter(
                    Subscription.status == "active",
                    Subscription.plan_type != "free",
                    Subscription.tokens_refresh_date.isnot(None),
                    Subscription.tokens_refresh_date <= now,
                )
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing subscriptions due for refresh: {str(e)}")
            raise RepositoryException(f"Failed to list subscriptions: {str(e)}")

    def list_active_paid(self) -> List[Subscription]:
        try:
            return (
                self.db.query(Subscription)
                .filter(Subscription.status == "active", Subscription.plan_type != "free")
                .order_by(Subscription.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing paid subscriptions: {str(e)}")
            raise RepositoryException(f"Failed to list subscriptions: {str(e)}")
