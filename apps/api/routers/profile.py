"""
Profile API endpoints.

The profile holds the fields the insight prompt uses (age) and the credit
balance, which is read-only here.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from models import UserProfile
from schemas import ProfileResponse, ProfileUpdate

router = APIRouter(prefix="/v1/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
def get_profile(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db.refresh(current_user)
    return current_user


@router.patch("", response_model=ProfileResponse)
def update_profile(
    update: ProfileUpdate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial update; `age: null` clears the age."""
    fields = update.model_dump(exclude_unset=True)
    if "display_name" in fields:
        current_user.display_name = (fields["display_name"] or "").strip() or None
    if "age" in fields:
        current_user.age = fields["age"]

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user
