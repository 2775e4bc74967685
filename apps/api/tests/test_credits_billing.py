"""
Credits endpoints, credit-pack checkout and the Stripe webhook.

Stripe itself is never called: checkout creation and signature verification
are monkeypatched, the same way the webhook is exercised in production by
Stripe's retries (repeated deliveries, multiple confirming event types).
"""
from uuid import uuid4

import pytest

from core.config import settings
from models import CreditPurchase, StripeEvent
from services import credit_ledger
from services import stripe_service as ss
from tests.helpers import make_user


class _DummyStripeConfig:
    def __init__(self):
        self.secret_key = "sk_test_dummy"
        self.webhook_secret = "whsec_dummy"
        self.checkout_success_url = "http://localhost:3000/credits?checkout=success"
        self.checkout_cancel_url = "http://localhost:3000/credits?checkout=cancel"


def _checkout_event(event_id: str, *, user_id, session_id="cs_test_1", pack="pack_50",
                    event_type="checkout.session.completed", payment_status="paid"):
    return {
        "id": event_id,
        "type": event_type,
        "created": 1767225600,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": payment_status,
                "client_reference_id": str(user_id),
                "amount_total": ss.CREDIT_PACKS[pack].price_cents if pack in ss.CREDIT_PACKS else None,
                "metadata": {"user_id": str(user_id), "pack": pack},
            }
        },
    }


@pytest.fixture
def deliver(client, monkeypatch):
    """Deliver a (pre-verified) Stripe event to the webhook endpoint."""
    monkeypatch.setattr(ss, "_get_stripe_config", lambda: _DummyStripeConfig())

    def _deliver(event):
        monkeypatch.setattr(ss.StripeService, "construct_event", lambda self, payload, sig_header: event)
        resp = client.post("/v1/billing/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})
        assert resp.status_code == 200
        return resp.json()["result"]

    return _deliver


def test_balance_and_price(client, user, headers):
    resp = client.get("/v1/credits", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"credits": 50, "insight_price": settings.INSIGHT_PRICE_CREDITS}


def test_packs_are_fixed(client):
    resp = client.get("/v1/credits/packs")
    assert resp.status_code == 200
    assert [(p["id"], p["credits"], p["price_cents"]) for p in resp.json()] == [
        ("pack_50", 50, 499),
        ("pack_150", 150, 1199),
        ("pack_500", 500, 2999),
    ]


class TestCheckout:
    def test_checkout_returns_hosted_url_without_crediting(self, client, db_session, user, headers, monkeypatch):
        captured = {}

        class _Session:
            url = "https://checkout.stripe.test/c/pay/cs_test_1"

        def _create(**params):
            captured.update(params)
            return _Session()

        monkeypatch.setattr(ss, "_get_stripe_config", lambda: _DummyStripeConfig())
        monkeypatch.setattr(ss.stripe.checkout.Session, "create", _create)

        resp = client.post("/v1/credits/checkout", json={"pack": "pack_150"}, headers=headers)

        assert resp.status_code == 200
        assert resp.json() == {"url": _Session.url}
        assert captured["mode"] == "payment"
        assert captured["client_reference_id"] == str(user.id)
        assert captured["metadata"] == {"user_id": str(user.id), "pack": "pack_150", "credits": "150"}
        assert captured["line_items"][0]["price_data"]["unit_amount"] == 1199
        assert credit_ledger.get_balance(db_session, user.id) == 50

    def test_configured_price_id_is_used(self, client, headers, monkeypatch):
        captured = {}

        class _Session:
            url = "https://checkout.stripe.test/c/pay/cs_test_2"

        def _create(**params):
            captured.update(params)
            return _Session()

        monkeypatch.setattr(settings, "STRIPE_PRICE_PACK_50", "price_pack_50")
        monkeypatch.setattr(ss, "_get_stripe_config", lambda: _DummyStripeConfig())
        monkeypatch.setattr(ss.stripe.checkout.Session, "create", _create)

        resp = client.post("/v1/credits/checkout", json={"pack": "pack_50"}, headers=headers)

        assert resp.status_code == 200
        assert captured["line_items"] == [{"price": "price_pack_50", "quantity": 1}]

    def test_unknown_pack(self, client, headers):
        resp = client.post("/v1/credits/checkout", json={"pack": "pack_9000"}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["error"] == "Validation error"

    def test_billing_not_configured(self, client, headers, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)

        resp = client.post("/v1/credits/checkout", json={"pack": "pack_50"}, headers=headers)

        assert resp.status_code == 503
        assert resp.json()["error"] == "Billing is not configured on this server"


class TestWebhook:
    def test_requires_signature_header(self, client):
        resp = client.post("/v1/billing/webhooks/stripe", content=b"{}")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing Stripe-Signature header"}

    def test_invalid_signature(self, client, monkeypatch):
        monkeypatch.setattr(ss, "_get_stripe_config", lambda: _DummyStripeConfig())

        def _reject(self, payload, sig_header):
            raise ValueError("bad signature")

        monkeypatch.setattr(ss.StripeService, "construct_event", _reject)
        resp = client.post("/v1/billing/webhooks/stripe", content=b"{}", headers={"stripe-signature": "bad"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid webhook signature"}

    def test_paid_checkout_credits_pack(self, db_session, deliver):
        user = make_user(db_session, credits=3)

        result = deliver(_checkout_event("evt_1", user_id=user.id))

        assert result["processed"] is True
        assert result["credited"] is True
        assert result["balance"] == 53
        assert credit_ledger.get_balance(db_session, user.id) == 53
        purchase = db_session.query(CreditPurchase).one()
        assert (purchase.pack, purchase.credits, purchase.amount_cents) == ("pack_50", 50, 499)

    def test_redelivered_event_is_idempotent(self, db_session, deliver):
        user = make_user(db_session, credits=0)
        event = _checkout_event("evt_dup", user_id=user.id)

        deliver(event)
        again = deliver(event)

        assert again == {"processed": False, "idempotent": True, "event_id": "evt_dup"}
        assert credit_ledger.get_balance(db_session, user.id) == 50

    def test_second_event_for_same_session_is_not_credited(self, db_session, deliver):
        user = make_user(db_session, credits=0)

        deliver(_checkout_event("evt_a", user_id=user.id, session_id="cs_same"))
        second = deliver(
            _checkout_event(
                "evt_b", user_id=user.id, session_id="cs_same",
                event_type="checkout.session.async_payment_succeeded",
            )
        )

        assert second["credited"] is False
        assert credit_ledger.get_balance(db_session, user.id) == 50
        assert {e.event_id for e in db_session.query(StripeEvent).all()} == {"evt_a", "evt_b"}

    def test_unpaid_session_waits_for_async_confirmation(self, db_session, deliver):
        user = make_user(db_session, credits=0)

        pending = deliver(_checkout_event("evt_p1", user_id=user.id, session_id="cs_async", payment_status="unpaid"))
        assert pending["awaiting_payment"] is True
        assert credit_ledger.get_balance(db_session, user.id) == 0

        paid = deliver(
            _checkout_event(
                "evt_p2", user_id=user.id, session_id="cs_async",
                event_type="checkout.session.async_payment_succeeded",
            )
        )
        assert paid["credited"] is True
        assert credit_ledger.get_balance(db_session, user.id) == 50

    def test_unmatched_user_is_recorded_without_credit(self, db_session, deliver):
        result = deliver(_checkout_event("evt_orphan", user_id=uuid4()))

        assert result["matched_user"] is False
        assert db_session.query(CreditPurchase).count() == 0
        assert db_session.query(StripeEvent).filter_by(event_id="evt_orphan").count() == 1

    def test_unrelated_event_types_are_ignored(self, db_session, deliver):
        result = deliver({"id": "evt_other", "type": "customer.created", "created": 1, "data": {"object": {}}})

        assert result["ignored"] is True
        assert db_session.query(StripeEvent).count() == 1


def test_purchase_history_newest_first(client, db_session, user, headers):
    credit_ledger.apply_purchase(db_session, user_id=user.id, pack="pack_50", credits=50, stripe_session_id="cs_a")
    other = make_user(db_session)
    credit_ledger.apply_purchase(db_session, user_id=other.id, pack="pack_500", credits=500, stripe_session_id="cs_b")

    resp = client.get("/v1/credits/purchases", headers=headers)

    assert resp.status_code == 200
    assert [p["pack"] for p in resp.json()] == ["pack_50"]
