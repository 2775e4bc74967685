"""
Mirror (self-reflection) API endpoints.

One reflection per user: accepted flaws, what others think, growth areas and a
1-10 confidence level. PUT replaces it wholesale.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from models import MirrorReflection, UserProfile
from schemas import MirrorResponse, MirrorUpdate

router = APIRouter(prefix="/v1/mirror", tags=["mirror"])


def _clean(items):
    return [item.strip() for item in items if item and item.strip()]


@router.get("", response_model=MirrorResponse)
def get_mirror(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    mirror = db.query(MirrorReflection).filter(MirrorReflection.user_id == current_user.id).first()
    if not mirror:
        return MirrorResponse()
    return mirror


@router.put("", response_model=MirrorResponse)
def put_mirror(
    body: MirrorUpdate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    mirror = db.query(MirrorReflection).filter(MirrorReflection.user_id == current_user.id).first()
    if not mirror:
        mirror = MirrorReflection(user_id=current_user.id)
        db.add(mirror)

    mirror.self_items = _clean(body.self_items)
    mirror.others_items = _clean(body.others_items)
    mirror.growth_items = _clean(body.growth_items)
    mirror.confidence_level = body.confidence_level
    db.commit()
    db.refresh(mirror)
    return mirror
