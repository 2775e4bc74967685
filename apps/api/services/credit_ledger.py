"""
Credit Ledger

One non-negative integer balance per user (profiles.credits).

Every mutation is a single conditional UPDATE evaluated by the database, so
concurrent sign-ins, debits, refunds and purchases compose as plain integer
deltas without a read-modify-write window:

- debit:        credits = credits - n   WHERE credits >= n
- credit:       credits = credits + n
- daily bonus:  credits = credits + b, last_bonus_granted_on = today
                WHERE last_bonus_granted_on IS NULL OR last_bonus_granted_on < today

Insufficient balance is an expected outcome and is returned as a typed result,
not raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from models import CreditPurchase, UserProfile

logger = logging.getLogger(__name__)


class ProfileNotFound(LookupError):
    """The user has no profile row to credit."""


@dataclass(frozen=True)
class InsufficientCredits:
    balance: int
    required: int


@dataclass(frozen=True)
class DebitResult:
    success: bool
    new_balance: Optional[int] = None
    error: Optional[InsufficientCredits] = None


@dataclass(frozen=True)
class BonusGrant:
    granted: bool
    new_balance: int


@dataclass(frozen=True)
class PurchaseResult:
    credited: bool
    duplicate: bool
    new_balance: int


def server_today() -> date:
    """Calendar day on the server clock, in SERVER_TIMEZONE."""
    return datetime.now(ZoneInfo(settings.SERVER_TIMEZONE)).date()


def _require_positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"amount must be a positive integer, got {amount!r}")
    return amount


def get_balance(db: Session, user_id: UUID) -> int:
    """Current balance; 0 when the user has no profile row yet."""
    value = db.execute(select(UserProfile.credits).where(UserProfile.id == user_id)).scalar_one_or_none()
    return int(value or 0)


def _increment(db: Session, user_id: UUID, amount: int) -> bool:
    result = db.execute(
        update(UserProfile)
        .where(UserProfile.id == user_id)
        .values(credits=UserProfile.credits + amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def grant_daily_bonus(db: Session, user_id: UUID, today: Optional[date] = None) -> BonusGrant:
    """
    Grant the daily bonus at most once per server calendar day.

    The "already granted today?" check and the increment are the same UPDATE
    statement, so two simultaneous sign-ins can't both be granted.
    """
    today = today or server_today()
    amount = settings.DAILY_BONUS_CREDITS

    result = db.execute(
        update(UserProfile)
        .where(UserProfile.id == user_id)
        .where(
            or_(
                UserProfile.last_bonus_granted_on.is_(None),
                UserProfile.last_bonus_granted_on < today,
            )
        )
        .values(credits=UserProfile.credits + amount, last_bonus_granted_on=today)
        .execution_options(synchronize_session=False)
    )
    granted = result.rowcount == 1
    db.commit()

    balance = get_balance(db, user_id)
    if granted:
        logger.info(
            "Daily bonus granted",
            extra={"extra_fields": {"user_id": str(user_id), "amount": amount, "day": today.isoformat(), "balance": balance}},
        )
    return BonusGrant(granted=granted, new_balance=balance)


def debit(db: Session, user_id: UUID, amount: int) -> DebitResult:
    """Atomically take `amount` credits, or report InsufficientCredits."""
    amount = _require_positive(amount)

    result = db.execute(
        update(UserProfile)
        .where(UserProfile.id == user_id)
        .where(UserProfile.credits >= amount)
        .values(credits=UserProfile.credits - amount)
        .execution_options(synchronize_session=False)
    )
    debited = result.rowcount == 1
    db.commit()

    balance = get_balance(db, user_id)
    if not debited:
        logger.info(
            "Debit refused: insufficient credits",
            extra={"extra_fields": {"user_id": str(user_id), "required": amount, "balance": balance}},
        )
        return DebitResult(success=False, error=InsufficientCredits(balance=balance, required=amount))

    logger.info(
        "Credits debited",
        extra={"extra_fields": {"user_id": str(user_id), "amount": amount, "balance": balance}},
    )
    return DebitResult(success=True, new_balance=balance)


def credit(db: Session, user_id: UUID, amount: int) -> int:
    """Add `amount` credits and return the new balance. Never decrements."""
    amount = _require_positive(amount)

    if not _increment(db, user_id, amount):
        db.rollback()
        raise ProfileNotFound(str(user_id))
    db.commit()

    balance = get_balance(db, user_id)
    logger.info(
        "Credits added",
        extra={"extra_fields": {"user_id": str(user_id), "amount": amount, "balance": balance}},
    )
    return balance


def refund(db: Session, user_id: UUID, amount: int) -> int:
    """Give back credits taken for an action that then failed."""
    balance = credit(db, user_id, amount)
    logger.warning(
        "Credits refunded",
        extra={"extra_fields": {"user_id": str(user_id), "amount": amount, "balance": balance}},
    )
    return balance


def apply_purchase(
    db: Session,
    *,
    user_id: UUID,
    pack: str,
    credits: int,
    stripe_session_id: str,
    amount_cents: Optional[int] = None,
) -> PurchaseResult:
    """
    Credit a confirmed purchase exactly once per checkout session.

    The purchase row and the increment commit together; a second delivery for
    the same session hits the unique constraint and changes nothing.
    """
    credits = _require_positive(credits)
    if not stripe_session_id:
        raise ValueError("stripe_session_id is required")

    db.add(
        CreditPurchase(
            user_id=user_id,
            stripe_session_id=stripe_session_id,
            pack=pack,
            credits=credits,
            amount_cents=amount_cents,
        )
    )
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        already = db.execute(
            select(CreditPurchase.id).where(CreditPurchase.stripe_session_id == stripe_session_id)
        ).scalar_one_or_none()
        if already is None:
            # Not a duplicate: the foreign key to profiles failed.
            raise ProfileNotFound(str(user_id))
        logger.info(
            "Duplicate purchase confirmation ignored",
            extra={"extra_fields": {"user_id": str(user_id), "stripe_session_id": stripe_session_id}},
        )
        return PurchaseResult(credited=False, duplicate=True, new_balance=get_balance(db, user_id))

    if not _increment(db, user_id, credits):
        db.rollback()
        raise ProfileNotFound(str(user_id))
    db.commit()

    balance = get_balance(db, user_id)
    logger.info(
        "Purchase credited",
        extra={"extra_fields": {"user_id": str(user_id), "pack": pack, "credits": credits, "balance": balance}},
    )
    return PurchaseResult(credited=True, duplicate=False, new_balance=balance)
