from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional
from uuid import UUID

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from models import StripeEvent, UserProfile
from services import credit_ledger

logger = logging.getLogger(__name__)

# Events that confirm a one-off Checkout payment.
PAYMENT_CONFIRMED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


@dataclass(frozen=True)
class CreditPack:
    id: str
    credits: int
    price_cents: int
    currency: str = "usd"

    @property
    def price_id(self) -> Optional[str]:
        """Dashboard price for this pack, if one is configured."""
        return getattr(settings, f"STRIPE_PRICE_{self.id.upper()}", None)


CREDIT_PACKS: Dict[str, CreditPack] = {
    pack.id: pack
    for pack in (
        CreditPack(id="pack_50", credits=50, price_cents=499),
        CreditPack(id="pack_150", credits=150, price_cents=1199),
        CreditPack(id="pack_500", credits=500, price_cents=2999),
    )
}


def get_pack(pack_id: str) -> Optional[CreditPack]:
    return CREDIT_PACKS.get(pack_id)


@dataclass(frozen=True)
class StripeConfig:
    secret_key: str
    webhook_secret: Optional[str]
    checkout_success_url: str
    checkout_cancel_url: str


def _get_stripe_config() -> StripeConfig:
    """
    Load Stripe config from Settings.

    Fail closed: if the secret key is missing, billing endpoints should not proceed.
    """
    secret_key = settings.STRIPE_SECRET_KEY
    if not secret_key:
        raise RuntimeError("Stripe not configured (missing: STRIPE_SECRET_KEY)")

    # Redirect URLs default to WEB_APP_BASE_URL so local dev can proceed without extra env config.
    base = settings.WEB_APP_BASE_URL.rstrip("/")
    success_url = settings.STRIPE_CHECKOUT_SUCCESS_URL or f"{base}/credits?checkout=success"
    cancel_url = settings.STRIPE_CHECKOUT_CANCEL_URL or f"{base}/credits?checkout=cancel"

    return StripeConfig(
        secret_key=str(secret_key),
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET or None,
        checkout_success_url=success_url,
        checkout_cancel_url=cancel_url,
    )


class StripeService:
    def __init__(self) -> None:
        cfg = _get_stripe_config()
        stripe.api_key = cfg.secret_key
        self.cfg = cfg

    def create_checkout_session(self, *, user: UserProfile, pack: CreditPack) -> str:
        """
        Create a one-off Stripe Checkout session for a credit pack.

        Credits are never granted here; only the confirmed webhook credits the account.
        """
        if pack.price_id:
            line_item: Dict[str, Any] = {"price": pack.price_id, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": pack.currency,
                    "unit_amount": pack.price_cents,
                    "product_data": {"name": f"{pack.credits} credits"},
                },
                "quantity": 1,
            }

        params: Dict[str, Any] = {
            "mode": "payment",
            "success_url": self.cfg.checkout_success_url,
            "cancel_url": self.cfg.checkout_cancel_url,
            "line_items": [line_item],
            "client_reference_id": str(user.id),
            "metadata": {"user_id": str(user.id), "pack": pack.id, "credits": str(pack.credits)},
        }
        if user.email:
            params["customer_email"] = user.email

        session = stripe.checkout.Session.create(**params)
        logger.info(
            "Checkout session created",
            extra={"extra_fields": {"user_id": str(user.id), "pack": pack.id}},
        )
        return str(session.url)

    def construct_event(self, *, payload: bytes, sig_header: str):
        if not self.cfg.webhook_secret:
            raise RuntimeError("Stripe webhook secret not configured")
        return stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=self.cfg.webhook_secret,
        )


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _event_object(event: Any) -> Any:
    data = _field(event, "data")
    return _field(data, "object")


def _record_event(db: Session, *, event_id: str, event_type: str, stripe_created: Any) -> None:
    db.add(
        StripeEvent(
            event_id=event_id,
            event_type=event_type or "unknown",
            stripe_created=int(stripe_created) if stripe_created else None,
        )
    )


def _parse_user_id(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def process_stripe_event(db: Session, *, event: Any) -> Dict[str, Any]:
    """
    Idempotently process a Stripe webhook event.

    Two layers of idempotency: the event id (stripe_events) and the checkout
    session id (credit_purchases), since Stripe may confirm the same session
    through more than one event type.
    """
    event_id = str(_field(event, "id") or "")
    event_type = str(_field(event, "type") or "")
    stripe_created = _field(event, "created")

    if not event_id:
        return {"processed": False, "reason": "missing_event_id"}

    # Idempotency: if event already processed, do nothing.
    _record_event(db, event_id=event_id, event_type=event_type, stripe_created=stripe_created)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return {"processed": False, "idempotent": True, "event_id": event_id}

    if event_type not in PAYMENT_CONFIRMED_EVENTS:
        db.commit()
        return {"processed": True, "event_id": event_id, "event_type": event_type, "ignored": True}

    obj = _event_object(event)
    session_id = str(_field(obj, "id") or "")
    payment_status = str(_field(obj, "payment_status") or "")
    metadata = _field(obj, "metadata") or {}

    if payment_status != "paid":
        # Delayed payment methods complete later via async_payment_succeeded.
        db.commit()
        return {"processed": True, "event_id": event_id, "event_type": event_type, "awaiting_payment": True}

    pack = get_pack(str(_field(metadata, "pack") or ""))
    user_id = _parse_user_id(_field(obj, "client_reference_id")) or _parse_user_id(_field(metadata, "user_id"))
    user = db.query(UserProfile).filter(UserProfile.id == user_id).first() if user_id else None

    if not pack or not session_id or not user:
        logger.error(
            "Paid checkout session could not be matched",
            extra={"extra_fields": {"event_id": event_id, "session_id": session_id, "pack": _field(metadata, "pack")}},
        )
        db.commit()
        return {"processed": True, "event_id": event_id, "event_type": event_type, "matched_user": False}

    try:
        result = credit_ledger.apply_purchase(
            db,
            user_id=user.id,
            pack=pack.id,
            credits=pack.credits,
            stripe_session_id=session_id,
            amount_cents=_field(obj, "amount_total"),
        )
    except credit_ledger.ProfileNotFound:
        # The rollback discarded the event row; keep it so retries stay idempotent.
        _record_event(db, event_id=event_id, event_type=event_type, stripe_created=stripe_created)
        db.commit()
        return {"processed": True, "event_id": event_id, "event_type": event_type, "matched_user": False}

    if result.duplicate:
        _record_event(db, event_id=event_id, event_type=event_type, stripe_created=stripe_created)
        db.commit()

    return {
        "processed": True,
        "event_id": event_id,
        "event_type": event_type,
        "user_id": str(user.id),
        "credited": result.credited,
        "balance": result.new_balance,
    }
