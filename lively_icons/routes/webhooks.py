# lively_icons/routes/webhooks.py
"""
Inbound webhooks, mounted under /api/webhooks.

Signatures are verified against the raw request body, so both handlers
read the body themselves and hand the blocking service work to a thread.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.health import WebhookAckResponse
from ..services.webhook_service import ClerkWebhookService, StripeWebhookService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def get_clerk_webhook_service(db: Session = Depends(get_db)) -> ClerkWebhookService:
    return ClerkWebhookService(db)


def get_stripe_webhook_service(db: Session = Depends(get_db)) -> StripeWebhookService:
    return StripeWebhookService(db)


@router.post("/clerk", response_model=WebhookAckResponse, response_model_exclude_none=True)
async def clerk_webhook(
    request: Request,
    webhook_service: ClerkWebhookService = Depends(get_clerk_webhook_service),
) -> WebhookAckResponse:
    """
    Handle Clerk user lifecycle events (svix-signed).

    ``user.created`` provisions the Stripe customer and free subscription;
    ``user.deleted`` cancels the subscription.
    """
    body = await request.body()
    event = webhook_service.verify(body, request.headers)
    result = await asyncio.to_thread(webhook_service.handle_event, event)
    return WebhookAckResponse(**result)


@router.post("/stripe", response_model=WebhookAckResponse, response_model_exclude_none=True)
async def stripe_webhook(
    request: Request,
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service),
) -> WebhookAckResponse:
    """Handle Stripe checkout, invoice and subscription events."""
    body = await request.body()
    event = webhook_service.construct_event(body, request.headers.get("stripe-signature"))
    logger.info(f"Received Stripe event {event['type']}")
    result = await asyncio.to_thread(webhook_service.handle_event, event)
    return WebhookAckResponse(**result)
