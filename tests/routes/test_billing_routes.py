"""Stripe redirect endpoints and webhook signature checks."""

from types import SimpleNamespace
from unittest.mock import MagicMock

from pydantic import SecretStr
import pytest

from lively_icons.core.config import settings
from tests.conftest import TEST_USER_ID, make_subscription


@pytest.fixture
def stripe_sessions(monkeypatch):
    monkeypatch.setattr("lively_icons.services.billing_service.configure_stripe", lambda: True)
    create = MagicMock(return_value=SimpleNamespace(url="https://checkout.stripe.test/session"))
    monkeypatch.setattr("lively_icons.services.billing_service.stripe.checkout.Session.create", create)
    return create


class TestCheckout:
    def test_price_id_must_look_like_a_price(self, client):
        response = client.post("/api/stripe/checkout", json={"priceId": "prod_123"})
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_unknown_price(self, client, db, stripe_sessions):
        make_subscription(db, plan_type="free")
        response = client.post("/api/stripe/checkout", json={"priceId": "price_unknown"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_price"
        stripe_sessions.assert_not_called()

    def test_checkout_session(self, client, db, stripe_sessions, monkeypatch):
        monkeypatch.setattr(settings, "stripe_pro_monthly_price_id", "price_pro_monthly")
        make_subscription(db, plan_type="free")

        response = client.post("/api/stripe/checkout", json={"priceId": "price_pro_monthly"})

        assert response.json() == {"url": "https://checkout.stripe.test/session"}
        kwargs = stripe_sessions.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["customer"] == f"cus_{TEST_USER_ID}"
        assert kwargs["line_items"] == [{"price": "price_pro_monthly", "quantity": 1}]
        assert kwargs["metadata"] == {"clerkUserId": TEST_USER_ID}


class TestTopUp:
    def test_free_plan_cannot_top_up(self, client, db, stripe_sessions):
        make_subscription(db, plan_type="free")
        response = client.post("/api/stripe/topup", json={"packIndex": 0})
        assert response.status_code == 403
        assert response.json()["code"] == "plan_required"

    def test_unknown_pack(self, client, db, stripe_sessions):
        make_subscription(db, plan_type="pro")
        response = client.post("/api/stripe/topup", json={"packIndex": 7})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_pack"

    def test_top_up_session_metadata(self, client, db, stripe_sessions):
        make_subscription(db, plan_type="pro")

        response = client.post("/api/stripe/topup", json={"packIndex": 1})

        assert response.status_code == 200
        kwargs = stripe_sessions.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["metadata"] == {"clerkUserId": TEST_USER_ID, "tokens": "200", "type": "topup"}
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 1500


class TestWebhookSignatures:
    def test_stripe_without_signature(self, anonymous_client):
        response = anonymous_client.post("/api/webhooks/stripe", content=b"{}")
        assert response.status_code == 401
        assert response.json()["code"] == "missing_signature"

    def test_clerk_without_svix_headers(self, anonymous_client, monkeypatch):
        monkeypatch.setattr(settings, "clerk_webhook_secret", SecretStr("whsec_dGVzdHNlY3JldA=="))
        response = anonymous_client.post("/api/webhooks/clerk", content=b"{}")
        assert response.status_code == 401
        assert response.json()["code"] == "missing_signature"


def test_billing_requires_authentication(anonymous_client):
    assert anonymous_client.post("/api/stripe/portal").status_code == 401
