from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import NotFoundError
from models import UserProfile, WishlistItem
from schemas import WishlistItemCreate, WishlistItemResponse

router = APIRouter(prefix="/v1/wishlist", tags=["wishlist"])


def _get_owned(db: Session, item_id: UUID, user: UserProfile) -> WishlistItem:
    item = (
        db.query(WishlistItem)
        .filter(WishlistItem.id == item_id, WishlistItem.user_id == user.id)
        .first()
    )
    if not item:
        raise NotFoundError("Wishlist item")
    return item


@router.post("", response_model=WishlistItemResponse, status_code=status.HTTP_201_CREATED)
def create_item(
    body: WishlistItemCreate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = WishlistItem(user_id=current_user.id, **body.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("", response_model=List[WishlistItemResponse])
def list_items(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(WishlistItem)
        .filter(WishlistItem.user_id == current_user.id)
        .order_by(WishlistItem.created_at.desc())
        .all()
    )


@router.put("/{item_id}", response_model=WishlistItemResponse)
def update_item(
    item_id: UUID,
    body: WishlistItemCreate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = _get_owned(db, item_id, current_user)
    for key, value in body.model_dump().items():
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    item = _get_owned(db, item_id, current_user)
    db.delete(item)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
