# lively_icons/routes/stripe.py
"""
Billing routes, mounted under /api/stripe.

Each route returns a Stripe-hosted URL the frontend redirects to; state
changes arrive later through the Stripe webhook.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..database import get_db
from ..schemas.billing import CheckoutRequest, RedirectUrlResponse, TopUpRequest
from ..services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    return BillingService(db)


@router.post("/checkout", response_model=RedirectUrlResponse)
def create_checkout(
    payload: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    billing_service: BillingService = Depends(get_billing_service),
) -> RedirectUrlResponse:
    """Start a subscription checkout for a Pro or Team price."""
    return RedirectUrlResponse(url=billing_service.create_checkout_session(user_id, payload.price_id))


@router.post("/portal", response_model=RedirectUrlResponse)
def create_portal(
    user_id: str = Depends(get_current_user_id),
    billing_service: BillingService = Depends(get_billing_service),
) -> RedirectUrlResponse:
    return RedirectUrlResponse(url=billing_service.create_portal_session(user_id))


@router.post("/topup", response_model=RedirectUrlResponse)
def create_topup(
    payload: TopUpRequest,
    user_id: str = Depends(get_current_user_id),
    billing_service: BillingService = Depends(get_billing_service),
) -> RedirectUrlResponse:
    """One-time purchase of a token pack; paid plans only."""
    return RedirectUrlResponse(url=billing_service.create_topup_session(user_id, payload.pack_index))
