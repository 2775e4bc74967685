"""
Archived insights and the context window fed back into new analyses.

Every function takes the authenticated user's id and filters on it in SQL; a
record owned by someone else behaves exactly like a missing one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.orm import Session

from models import DEFAULT_FOLDER, ArchivedInsight

logger = logging.getLogger(__name__)

CONTEXT_ANALYSIS_MAX_CHARS = 1000
DEFAULT_CONTEXT_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    cleaned: List[str] = []
    for tag in tags or []:
        tag = (tag or "").strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _owned(db: Session, user_id: UUID):
    return db.query(ArchivedInsight).filter(ArchivedInsight.user_id == user_id)


def archive(
    db: Session,
    user_id: UUID,
    *,
    title: str,
    analysis: str,
    data_snapshot: Optional[Dict[str, Any]],
    generated_at: datetime,
    tags: Optional[Iterable[str]] = None,
    folder_name: Optional[str] = None,
) -> ArchivedInsight:
    archived_at = _utcnow()
    generated_at = _as_utc(generated_at)
    if generated_at > archived_at:
        # Client clock ahead of ours; keep archived_at >= generated_at.
        generated_at = archived_at

    insight = ArchivedInsight(
        user_id=user_id,
        title=title.strip(),
        analysis=analysis,
        data_snapshot=data_snapshot,
        tags=_clean_tags(tags),
        folder_name=(folder_name or "").strip() or DEFAULT_FOLDER,
        generated_at=generated_at,
        archived_at=archived_at,
    )
    db.add(insight)
    db.commit()
    db.refresh(insight)
    logger.info(
        "Insight archived",
        extra={"extra_fields": {"user_id": str(user_id), "insight_id": str(insight.id), "folder": insight.folder_name}},
    )
    return insight


def list_insights(db: Session, user_id: UUID) -> List[ArchivedInsight]:
    """Newest archive first."""
    return (
        _owned(db, user_id)
        .order_by(ArchivedInsight.archived_at.desc(), ArchivedInsight.id.desc())
        .all()
    )


def get_insight(db: Session, insight_id: UUID, user_id: UUID) -> Optional[ArchivedInsight]:
    return _owned(db, user_id).filter(ArchivedInsight.id == insight_id).first()


def update_insight(
    db: Session,
    insight_id: UUID,
    user_id: UUID,
    *,
    title: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    folder_name: Optional[str] = None,
) -> Optional[ArchivedInsight]:
    """Edit title/tags/folder. Returns None (and changes nothing) if not owned."""
    insight = get_insight(db, insight_id, user_id)
    if insight is None:
        return None

    if title is not None:
        insight.title = title.strip()
    if tags is not None:
        insight.tags = _clean_tags(tags)
    if folder_name is not None:
        insight.folder_name = folder_name.strip() or DEFAULT_FOLDER

    db.commit()
    db.refresh(insight)
    return insight


def delete_insight(db: Session, insight_id: UUID, user_id: UUID) -> bool:
    deleted = (
        _owned(db, user_id)
        .filter(ArchivedInsight.id == insight_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info(
            "Archived insight deleted",
            extra={"extra_fields": {"user_id": str(user_id), "insight_id": str(insight_id)}},
        )
    return bool(deleted)


def search(db: Session, user_id: UUID, query: str, folder_name: Optional[str] = None) -> List[ArchivedInsight]:
    """Case-insensitive substring match over title, analysis text and tags, optionally within one folder."""
    needle = (query or "").strip().lower()
    insights = by_folder(db, user_id, folder_name) if folder_name else list_insights(db, user_id)
    if not needle:
        return insights
    return [
        insight for insight in insights
        if needle in insight.title.lower()
        or needle in insight.analysis.lower()
        or any(needle in tag.lower() for tag in (insight.tags or []))
    ]


def by_folder(db: Session, user_id: UUID, folder_name: str) -> List[ArchivedInsight]:
    """Newest archive first, restricted to one folder."""
    return (
        _owned(db, user_id)
        .filter(ArchivedInsight.folder_name == folder_name)
        .order_by(ArchivedInsight.archived_at.desc(), ArchivedInsight.id.desc())
        .all()
    )


def folders(db: Session, user_id: UUID) -> Set[str]:
    rows = (
        db.query(ArchivedInsight.folder_name)
        .filter(ArchivedInsight.user_id == user_id)
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def context_window(db: Session, user_id: UUID, limit: int = DEFAULT_CONTEXT_LIMIT) -> List[Dict[str, Any]]:
    """
    The most recent archived analyses, shaped for InsightRequest.previous_analyses.

    Analysis text is capped at 1000 characters here; the prompt builder applies
    its own, shorter cut when rendering.
    """
    if limit <= 0:
        return []
    insights = (
        _owned(db, user_id)
        .order_by(ArchivedInsight.archived_at.desc(), ArchivedInsight.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "title": insight.title,
            "date": insight.generated_at,
            "analysis": insight.analysis[:CONTEXT_ANALYSIS_MAX_CHARS],
            "tags": list(insight.tags or []),
        }
        for insight in insights
    ]
