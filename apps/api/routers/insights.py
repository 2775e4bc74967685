"""
Insights API Router

Paid, on-demand analyses of the user's own records.

Endpoints:
- POST /v1/insights        - Generate an analysis (charges INSIGHT_PRICE_CREDITS)
- GET  /v1/insights/price  - Current price in credits
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import InsufficientCreditsError, ProviderFailure, ValidationError
from core.features import INSIGHTS, require_feature
from models import MirrorReflection, Relationship, UserProfile, WishlistItem
from schemas import (
    InsightRequest,
    InsightResponse,
    MirrorRecord,
    PreviousAnalysis,
    RelationshipRecord,
    WishlistRecord,
)
from services import insight_archive
from services.insight_pipeline import InsightPipeline
from services.insight_prompt import get_locale
from services.insight_provider import InsightProvider, get_insight_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/insights", tags=["Insights"])


def _load_stored_inputs(db: Session, user: UserProfile, request: InsightRequest) -> InsightRequest:
    """
    Fill the fields the client left out from the user's stored records.

    A field the client sent (even as [] or null) is kept as sent.
    """
    sent = request.model_fields_set
    updates: Dict[str, Any] = {}

    if "relationships" not in sent:
        rows = (
            db.query(Relationship)
            .filter(Relationship.user_id == user.id)
            .order_by(Relationship.created_at.asc())
            .all()
        )
        updates["relationships"] = [
            RelationshipRecord(
                type=r.type, rating=r.rating, duration=r.duration, location=r.location, feelings=r.feelings
            )
            for r in rows
        ]

    if "wishlist_items" not in sent:
        rows = (
            db.query(WishlistItem)
            .filter(WishlistItem.user_id == user.id)
            .order_by(WishlistItem.created_at.asc())
            .all()
        )
        updates["wishlist_items"] = [
            WishlistRecord(title=w.title, category=w.category, priority=w.priority, is_completed=w.is_completed)
            for w in rows
        ]

    if "mirror_data" not in sent:
        mirror = db.query(MirrorReflection).filter(MirrorReflection.user_id == user.id).first()
        updates["mirror_data"] = (
            MirrorRecord(
                self_items=mirror.self_items or [],
                others=mirror.others_items or [],
                growth=mirror.growth_items or [],
                confidence_level=mirror.confidence_level,
            )
            if mirror
            else None
        )

    if "user_age" not in sent:
        updates["user_age"] = user.age

    if "previous_analyses" not in sent:
        updates["previous_analyses"] = [
            PreviousAnalysis(**entry)
            for entry in insight_archive.context_window(db, user.id, limit=settings.INSIGHTS_CONTEXT_LIMIT)
        ]

    return request.model_copy(update=updates) if updates else request


@router.post(
    "",
    response_model=InsightResponse,
    dependencies=[Depends(require_feature(INSIGHTS))],
)
def generate_insight(
    request: InsightRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: InsightProvider = Depends(get_insight_provider),
):
    """
    Generate one analysis.

    Credits are taken before the provider is called and given back if it
    fails, so only delivered analyses are paid for.
    """
    request = _load_stored_inputs(db, current_user, request)
    pipeline = InsightPipeline(
        db,
        provider,
        price=settings.INSIGHT_PRICE_CREDITS,
        locale=get_locale(settings.INSIGHTS_LOCALE),
    )
    outcome = pipeline.run(current_user.id, request)

    if outcome.validation_error:
        raise ValidationError(outcome.validation_error.message, field=outcome.validation_error.field)
    if outcome.insufficient_credits:
        raise InsufficientCreditsError(
            balance=outcome.insufficient_credits.balance,
            required=outcome.insufficient_credits.required,
        )
    if outcome.provider_error:
        raise ProviderFailure(outcome.provider_error.summary, upstream_status=outcome.provider_error.status_code)

    return InsightResponse(
        success=True,
        analysis=outcome.analysis,
        generated_at=outcome.generated_at,
        credits_remaining=outcome.balance,
    )


@router.get("/price")
def get_price():
    return {"insight_price": settings.INSIGHT_PRICE_CREDITS}
