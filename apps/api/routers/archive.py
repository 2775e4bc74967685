"""
Insight Archive API Router

Saved analyses, their folders and the context window reused by new requests.
Every lookup is scoped to the authenticated user; another user's id answers 404.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import NotFoundError
from models import UserProfile
from schemas import ArchiveCreate, ArchivedInsightResponse, ArchiveUpdate, ContextEntryResponse
from services import insight_archive

router = APIRouter(prefix="/v1/insights/archive", tags=["Insight Archive"])


@router.post("", response_model=ArchivedInsightResponse, status_code=status.HTTP_201_CREATED)
def archive_insight(
    body: ArchiveCreate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return insight_archive.archive(
        db,
        current_user.id,
        title=body.title,
        analysis=body.analysis,
        data_snapshot=body.data_snapshot,
        generated_at=body.generated_at,
        tags=body.tags,
        folder_name=body.folder_name,
    )


@router.get("", response_model=List[ArchivedInsightResponse])
def list_archive(
    q: Optional[str] = Query(default=None, max_length=200),
    folder: Optional[str] = Query(default=None, max_length=100),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest first. `q` searches title/analysis/tags; `folder` filters by folder."""
    if q:
        return insight_archive.search(db, current_user.id, q, folder_name=folder)
    if folder:
        return insight_archive.by_folder(db, current_user.id, folder)
    return insight_archive.list_insights(db, current_user.id)


@router.get("/folders", response_model=List[str])
def list_folders(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return sorted(insight_archive.folders(db, current_user.id))


@router.get("/context", response_model=List[ContextEntryResponse])
def get_context(
    limit: int = Query(default=insight_archive.DEFAULT_CONTEXT_LIMIT, ge=1, le=insight_archive.DEFAULT_CONTEXT_LIMIT),
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return insight_archive.context_window(db, current_user.id, limit=limit)


@router.get("/{insight_id}", response_model=ArchivedInsightResponse)
def get_archived_insight(
    insight_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    insight = insight_archive.get_insight(db, insight_id, current_user.id)
    if not insight:
        raise NotFoundError("Archived insight")
    return insight


@router.patch("/{insight_id}", response_model=ArchivedInsightResponse)
def update_archived_insight(
    insight_id: UUID,
    body: ArchiveUpdate,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    insight = insight_archive.update_insight(
        db,
        insight_id,
        current_user.id,
        title=body.title,
        tags=body.tags,
        folder_name=body.folder_name,
    )
    if not insight:
        raise NotFoundError("Archived insight")
    return insight


@router.delete("/{insight_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_archived_insight(
    insight_id: UUID,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not insight_archive.delete_insight(db, insight_id, current_user.id):
        raise NotFoundError("Archived insight")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
