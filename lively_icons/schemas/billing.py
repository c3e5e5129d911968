"""Stripe checkout, portal and top-up schemas."""

from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel, CamelRequestModel


class CheckoutRequest(CamelRequestModel):
    price_id: str = Field(..., pattern=r"^price_")
    billing_interval: Optional[Literal["monthly", "annual"]] = None


class TopUpRequest(CamelRequestModel):
    pack_index: int = Field(..., ge=0)


class RedirectUrlResponse(CamelModel):
    url: str
