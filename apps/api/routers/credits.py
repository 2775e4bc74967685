"""
Credits API endpoints.

Balance, price list and credit-pack checkout. Credits are only ever added by
the confirmed Stripe webhook (routers/billing.py), never by the checkout call.
"""
from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import ValidationError
from core.features import BILLING, require_feature
from models import CreditPurchase, UserProfile
from schemas import CheckoutRequest, CreditBalanceResponse, CreditPackResponse, CreditPurchaseResponse
from services import credit_ledger
from services.stripe_service import CREDIT_PACKS, StripeService, get_pack

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/credits", tags=["credits"])


@router.get("", response_model=CreditBalanceResponse)
def get_credits(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CreditBalanceResponse(
        credits=credit_ledger.get_balance(db, current_user.id),
        insight_price=settings.INSIGHT_PRICE_CREDITS,
    )


@router.get("/packs", response_model=List[CreditPackResponse])
def list_packs():
    return [
        CreditPackResponse(id=pack.id, credits=pack.credits, price_cents=pack.price_cents, currency=pack.currency)
        for pack in CREDIT_PACKS.values()
    ]


@router.post("/checkout", dependencies=[Depends(require_feature(BILLING))])
def create_checkout(
    request: CheckoutRequest,
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Create a Stripe Checkout Session (one-off payment for a credit pack).
    Returns a hosted URL.
    """
    pack = get_pack(request.pack)
    if not pack:
        raise ValidationError(f"Unknown credit pack: {request.pack}", field="pack")

    try:
        url = StripeService().create_checkout_session(user=current_user, pack=pack)
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception:
        logger.exception("Checkout session creation failed", extra={"extra_fields": {"pack": pack.id}})
        raise HTTPException(status_code=500, detail="Failed to create checkout session")
    return {"url": url}


@router.get("/purchases", response_model=List[CreditPurchaseResponse])
def list_purchases(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(CreditPurchase)
        .filter(CreditPurchase.user_id == current_user.id)
        .order_by(CreditPurchase.created_at.desc())
        .all()
    )
