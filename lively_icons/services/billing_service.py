# lively_icons/services/billing_service.py
"""
Billing Service for Lively Icons

Creates Stripe Checkout sessions (plan upgrades and token top-ups) and
Customer Portal sessions. Plan changes themselves are applied by the
Stripe webhook, never here.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.constants import TOKEN_PACKS, TokenPack
from ..core.enums import PlanType
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..models.subscription import Subscription
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

TOPUP_METADATA_TYPE = "topup"


def configure_stripe() -> bool:
    """Set the Stripe API key from settings; False when Stripe is not configured."""
    api_key = settings.stripe_api_key
    if not api_key:
        return False
    stripe.api_key = api_key
    stripe.max_network_retries = 1
    return True


def get_token_pack(pack_index: int) -> TokenPack:
    if not 0 <= pack_index < len(TOKEN_PACKS):
        raise ValidationException("Invalid request", code="invalid_pack", details={"packIndex": pack_index})
    return TOKEN_PACKS[pack_index]


def first_price_id(stripe_subscription) -> Optional[str]:
    items = (stripe_subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


class BillingService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.stripe_configured = configure_stripe()
        if not self.stripe_configured:
            self.logger.warning("Stripe secret key not configured")

    def _require_subscription(self, clerk_user_id: str, message: str = "No subscription found") -> Subscription:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        if subscription is None:
            raise NotFoundException(message, code="no_subscription")
        return subscription

    def _require_stripe(self) -> None:
        if not self.stripe_configured:
            raise ServiceException("Payments are not configured", code="stripe_not_configured")

    @BaseService.measure_operation("create_checkout_session")
    def create_checkout_session(self, clerk_user_id: str, price_id: str) -> str:
        """Subscription-mode checkout for one of the configured plan prices; returns the session URL."""
        if price_id not in settings.price_to_plan:
            raise ValidationException("Unknown price", code="invalid_price", details={"priceId": price_id})
        subscription = self._require_subscription(
            clerk_user_id, "No subscription found. Please sign up first."
        )
        self._require_stripe()
        try:
            session = stripe.checkout.Session.create(
                customer=subscription.stripe_customer_id,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{settings.app_url}/playground?tab=ai-generate&upgraded=true",
                cancel_url=f"{settings.app_url}/pricing",
                metadata={"clerkUserId": clerk_user_id},
                subscription_data={"metadata": {"clerkUserId": clerk_user_id}},
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating checkout session: {str(e)}")
            raise ServiceException("Failed to create checkout session", code="stripe_error")
        self.log_operation("checkout_session_created", clerk_user_id=clerk_user_id, price_id=price_id)
        return session.url

    @BaseService.measure_operation("create_portal_session")
    def create_portal_session(self, clerk_user_id: str) -> str:
        subscription = self._require_subscription(clerk_user_id)
        self._require_stripe()
        try:
            session = stripe.billing_portal.Session.create(
                customer=subscription.stripe_customer_id,
                return_url=f"{settings.app_url}/playground?tab=ai-generate",
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating portal session: {str(e)}")
            raise ServiceException("Failed to create portal session", code="stripe_error")
        return session.url

    @BaseService.measure_operation("create_topup_session")
    def create_topup_session(self, clerk_user_id: str, pack_index: int) -> str:
        """One-time payment checkout for a token pack. Paid plans only."""
        pack = get_token_pack(pack_index)
        subscription = self._require_subscription(clerk_user_id)
        if subscription.plan_type == PlanType.FREE.value:
            raise ForbiddenException(
                "Token top-ups are only available for Pro and Team plans. Please upgrade first.",
                code="plan_required",
            )
        self._require_stripe()
        try:
            session = stripe.checkout.Session.create(
                customer=subscription.stripe_customer_id,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": settings.stripe_currency,
                            "product_data": {
                                "name": f"{pack.name} Token Pack ({pack.tokens} tokens)",
                                "description": (
                                    f"{pack.tokens} generation tokens for Lively Icons AI Generator. Never expires."
                                ),
                            },
                            "unit_amount": pack.price_cents,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=f"{settings.app_url}/playground?tab=ai-generate&topup=success",
                cancel_url=f"{settings.app_url}/playground?tab=ai-generate",
                metadata={
                    "clerkUserId": clerk_user_id,
                    "tokens": str(pack.tokens),
                    "type": TOPUP_METADATA_TYPE,
                },
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating top-up session: {str(e)}")
            raise ServiceException("Failed to create top-up session", code="stripe_error")
        self.log_operation("topup_session_created", clerk_user_id=clerk_user_id, pack=pack.name)
        return session.url

    def create_customer(self, email: Optional[str], name: Optional[str], clerk_user_id: str) -> str:
        """Create the Stripe customer backing a new subscription row."""
        self._require_stripe()
        try:
            customer = stripe.Customer.create(email=email, name=name, metadata={"clerkUserId": clerk_user_id})
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating customer for {clerk_user_id}: {str(e)}")
            raise ServiceException("Failed to create Stripe customer", code="stripe_error")
        return customer.id

    def retrieve_subscription_price(self, stripe_subscription_id: str) -> Optional[str]:
        """Price id of the first item on a Stripe subscription."""
        self._require_stripe()
        try:
            stripe_subscription = stripe.Subscription.retrieve(stripe_subscription_id)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error retrieving subscription {stripe_subscription_id}: {str(e)}")
            raise ServiceException("Failed to load Stripe subscription", code="stripe_error")
        return first_price_id(stripe_subscription)

