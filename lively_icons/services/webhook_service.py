# lively_icons/services/webhook_service.py
"""
Webhook handling for Stripe (billing) and Clerk (user lifecycle).

Both handlers verify the signature first and then dispatch on the event
type. Unknown event types are acknowledged without action. Emails and
follow-up jobs are best-effort: their failures are logged and never fail
the webhook, so the provider does not redeliver an already applied event.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session
import stripe
from svix.webhooks import Webhook, WebhookVerificationError

from ..core.config import settings
from ..core.enums import PlanType, SubscriptionStatus
from ..core.exceptions import DomainException, ServiceException, UnauthorizedException
from ..core.time_utils import format_long_date, utc_now
from ..integrations.clerk_client import ClerkClient, get_clerk_client
from ..repositories.factory import RepositoryFactory
from ..tasks.dunning import start_dunning
from .base import BaseService
from .billing_service import TOPUP_METADATA_TYPE, BillingService, first_price_id
from .email import EmailService
from .subscription_service import SubscriptionService, monthly_allotment
from .team_service import TeamService
from .token_service import TokenService

logger = logging.getLogger(__name__)

SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")


def resolve_plan_type(price_id: Optional[str]) -> str:
    if not price_id:
        return PlanType.FREE.value
    return settings.price_to_plan.get(price_id, PlanType.FREE.value)


def display_name(first_name: Optional[str], last_name: Optional[str]) -> Optional[str]:
    name = " ".join(part for part in (first_name, last_name) if part)
    return name or None


class StripeWebhookService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        clerk_client: Optional[ClerkClient] = None,
        billing_service: Optional[BillingService] = None,
        dunning_starter: Optional[Callable[[str, Optional[datetime]], Any]] = None,
    ):
        super().__init__(db)
        self.subscription_repository = RepositoryFactory.create_subscription_repository(db)
        self.subscription_service = SubscriptionService(db)
        self.token_service = TokenService(db)
        self.email_service = email_service or EmailService(db)
        self._clerk_client = clerk_client
        self._billing_service = billing_service
        self.start_dunning = dunning_starter or start_dunning

    @property
    def clerk_client(self) -> ClerkClient:
        if self._clerk_client is None:
            self._clerk_client = get_clerk_client()
        return self._clerk_client

    @property
    def billing_service(self) -> BillingService:
        if self._billing_service is None:
            self._billing_service = BillingService(self.db)
        return self._billing_service

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        if not signature:
            raise UnauthorizedException("Missing stripe-signature header", code="missing_signature")
        secret = settings.stripe_webhook_signing_secret
        if not secret:
            raise ServiceException("Webhook secret not configured", code="webhook_not_configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            self.logger.warning(f"Stripe webhook signature verification failed: {str(e)}")
            raise UnauthorizedException("Invalid signature", code="invalid_signature")

    @BaseService.measure_operation("stripe_webhook")
    def handle_event(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        event_type = event["type"]
        obj = event["data"]["object"]
        handlers = {
            "checkout.session.completed": self._checkout_completed,
            "invoice.payment_succeeded": self._payment_succeeded,
            "invoice.payment_failed": self._payment_failed,
            "customer.subscription.updated": self._subscription_updated,
            "customer.subscription.deleted": self._subscription_deleted,
        }
        handler = handlers.get(event_type)
        if handler is None:
            self.logger.info(f"Ignoring Stripe event {event_type}")
            return {"received": True}
        handler(obj)
        self.log_operation("stripe_event_handled", event_type=event_type)
        return {"received": True}

    def _send_best_effort(self, description: str, send: Callable[..., Any], *args: Any) -> None:
        try:
            send(*args)
        except ServiceException as exc:
            self.logger.error(f"Failed to send {description} email: {exc.message}")

    def _checkout_completed(self, session: Mapping[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        clerk_user_id = metadata.get("clerkUserId")
        if not clerk_user_id:
            self.logger.error("checkout.session.completed: missing clerkUserId in metadata")
            return

        subscription_id = session.get("subscription")
        if session.get("mode") == "subscription" and subscription_id:
            plan_type = resolve_plan_type(self.billing_service.retrieve_subscription_price(subscription_id))
            self.subscription_service.update_plan(clerk_user_id, plan_type, subscription_id)
            user = self.clerk_client.get_user_email_info(clerk_user_id)
            if user is not None:
                config = SubscriptionService.get_plan_limits(plan_type)
                self._send_best_effort(
                    "upgrade confirmation",
                    self.email_service.send_upgrade_confirmation,
                    user.email,
                    user.name,
                    config.name,
                    monthly_allotment(plan_type),
                )
        elif session.get("mode") == "payment" and metadata.get("type") == TOPUP_METADATA_TYPE:
            try:
                tokens = int(metadata.get("tokens") or 0)
            except ValueError:
                tokens = 0
            if tokens > 0:
                self.token_service.credit_top_up(clerk_user_id, tokens)

    def _payment_succeeded(self, invoice: Mapping[str, Any]) -> None:
        subscription = self.subscription_repository.get_by_stripe_customer(invoice.get("customer"))
        if subscription is None:
            return
        if invoice.get("billing_reason") == "subscription_cycle":
            self.token_service.refresh_monthly_tokens(subscription.clerk_user_id)
        if subscription.status == SubscriptionStatus.PAST_DUE.value:
            # clearing past_due_since retires the pending dunning steps
            self.subscription_service.reactivate(subscription.clerk_user_id)

    def _mark_past_due(self, clerk_user_id: str) -> None:
        subscription = self.subscription_repository.get_by_user(clerk_user_id)
        was_past_due = subscription is not None and subscription.status == SubscriptionStatus.PAST_DUE.value
        updated = self.subscription_service.mark_past_due(clerk_user_id)
        if updated is None or was_past_due:
            return
        try:
            self.start_dunning(clerk_user_id, updated.past_due_since)
        except Exception as exc:
            self.logger.error(f"Failed to start dunning sequence for {clerk_user_id}: {exc}")

    def _payment_failed(self, invoice: Mapping[str, Any]) -> None:
        subscription = self.subscription_repository.get_by_stripe_customer(invoice.get("customer"))
        if subscription is None:
            return
        self._mark_past_due(subscription.clerk_user_id)

    def _subscription_updated(self, stripe_subscription: Mapping[str, Any]) -> None:
        subscription = self.subscription_repository.get_by_stripe_customer(stripe_subscription.get("customer"))
        if subscription is None:
            return
        status = stripe_subscription.get("status")
        if status == "active":
            plan_type = resolve_plan_type(first_price_id(stripe_subscription))
            if plan_type != subscription.plan_type:
                self.subscription_service.update_plan(
                    subscription.clerk_user_id, plan_type, stripe_subscription.get("id")
                )
            elif subscription.status == SubscriptionStatus.PAST_DUE.value:
                self.subscription_service.reactivate(subscription.clerk_user_id)
        elif status == "past_due":
            self._mark_past_due(subscription.clerk_user_id)

    def _subscription_deleted(self, stripe_subscription: Mapping[str, Any]) -> None:
        subscription = self.subscription_repository.get_by_stripe_customer(stripe_subscription.get("customer"))
        if subscription is None:
            return
        self.subscription_service.downgrade_to_free(subscription.clerk_user_id)

        user = self.clerk_client.get_user_email_info(subscription.clerk_user_id)
        if user is None:
            return
        items = (stripe_subscription.get("items") or {}).get("data") or []
        period_end = (items[0].get("current_period_end") if items else None) or stripe_subscription.get(
            "current_period_end"
        )
        end_date = datetime.fromtimestamp(period_end, tz=timezone.utc) if period_end else utc_now()
        self._send_best_effort(
            "cancellation",
            self.email_service.send_cancellation_confirmation,
            user.email,
            user.name,
            format_long_date(end_date, "the end of your billing period"),
        )


class ClerkWebhookService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        billing_service: Optional[BillingService] = None,
        team_service: Optional[TeamService] = None,
    ):
        super().__init__(db)
        self.subscription_service = SubscriptionService(db)
        self.email_service = email_service or EmailService(db)
        self._billing_service = billing_service
        self._team_service = team_service

    @property
    def billing_service(self) -> BillingService:
        if self._billing_service is None:
            self._billing_service = BillingService(self.db)
        return self._billing_service

    @property
    def team_service(self) -> TeamService:
        if self._team_service is None:
            self._team_service = TeamService(self.db, email_service=self.email_service)
        return self._team_service

    def verify(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        secret = settings.clerk_webhook_signing_secret
        if not secret:
            raise ServiceException("Webhook secret not configured", code="webhook_not_configured")
        svix_headers = {name: headers.get(name) for name in SVIX_HEADERS}
        if not all(svix_headers.values()):
            raise UnauthorizedException("Missing svix headers", code="missing_signature")
        try:
            return Webhook(secret).verify(payload, svix_headers)
        except WebhookVerificationError as e:
            self.logger.warning(f"Clerk webhook verification failed: {str(e)}")
            raise UnauthorizedException("Invalid webhook signature", code="invalid_signature")

    @BaseService.measure_operation("clerk_webhook")
    def handle_event(self, event: Mapping[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type")
        data = event.get("data") or {}
        if event_type == "user.created":
            return self._user_created(data)
        if event_type == "user.deleted":
            clerk_user_id = data.get("id")
            if clerk_user_id:
                self.subscription_service.cancel(clerk_user_id)
            self.log_operation("clerk_user_deleted", clerk_user_id=clerk_user_id)
        return {"received": True}

    def _user_created(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        clerk_user_id = data["id"]
        if self.subscription_service.get_subscription(clerk_user_id) is not None:
            return {"received": True, "status": "already_exists"}

        addresses = data.get("email_addresses") or []
        email = addresses[0].get("email_address") if addresses else None
        name = display_name(data.get("first_name"), data.get("last_name"))

        customer_id = self.billing_service.create_customer(email, name, clerk_user_id)
        self.subscription_service.create_free_subscription(clerk_user_id, customer_id)
        self.log_operation("clerk_user_created", clerk_user_id=clerk_user_id)

        if email:
            try:
                self.email_service.send_welcome(email, name or "there")
            except ServiceException as exc:
                self.logger.error(f"Failed to send welcome email: {exc.message}")
            try:
                joined = self.team_service.accept_pending_for_email(clerk_user_id, email)
            except DomainException as exc:
                self.logger.error(f"Failed to auto-accept invitations for {clerk_user_id}: {exc.message}")
            else:
                if joined:
                    self.log_operation("invitations_auto_accepted", clerk_user_id=clerk_user_id, teams=joined)
        return {"received": True}
