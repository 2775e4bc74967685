"""
Relationships API endpoints.

The user's relationship records; these feed the relationships section of an
insight request when the client does not send its own.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import NotFoundError
from models import Relationship, UserProfile
from schemas import RelationshipCreate, RelationshipResponse

router = APIRouter(prefix="/v1/relationships", tags=["relationships"])


def _get_owned(db: Session, relationship_id: UUID, user: UserProfile) -> Relationship:
    relationship = (
        db.query(Relationship)
        .filter(Relationship.id == relationship_id, Relationship.user_id == user.id)
        .first()
    )
    if not relationship:
        raise NotFoundError("Relationship")
    return relationship


@router.post("", response_model=RelationshipResponse, status_code=status.HTTP_201_CREATED)
def create_relationship(
    body: RelationshipCreate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    relationship = Relationship(user_id=current_user.id, **body.model_dump())
    db.add(relationship)
    db.commit()
    db.refresh(relationship)
    return relationship


@router.get("", response_model=List[RelationshipResponse])
def list_relationships(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(Relationship)
        .filter(Relationship.user_id == current_user.id)
        .order_by(Relationship.created_at.desc())
        .all()
    )


@router.get("/{relationship_id}", response_model=RelationshipResponse)
def get_relationship(
    relationship_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_owned(db, relationship_id, current_user)


@router.put("/{relationship_id}", response_model=RelationshipResponse)
def update_relationship(
    relationship_id: UUID,
    body: RelationshipCreate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    relationship = _get_owned(db, relationship_id, current_user)
    for key, value in body.model_dump().items():
        setattr(relationship, key, value)
    db.commit()
    db.refresh(relationship)
    return relationship


@router.delete("/{relationship_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_relationship(
    relationship_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    relationship = _get_owned(db, relationship_id, current_user)
    db.delete(relationship)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
