from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime, date
from uuid import UUID
from typing import Any, Dict, Literal, Optional, List

RelationshipType = Literal["romantic", "sexual", "friend", "friendzone", "other"]
Priority = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Insight request records
#
# These are the explicit shapes the prompt builder works from. Every optional
# field maps to a conditional fragment of the prompt, so absence is modelled
# as None rather than as a missing dict key.
# ---------------------------------------------------------------------------

class RelationshipRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)

    type: str
    rating: Optional[int] = Field(default=None, ge=1, le=10)
    duration: Optional[str] = None
    location: Optional[str] = None
    feelings: Optional[str] = None


class WishlistRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True, populate_by_name=True)

    title: str
    category: Optional[str] = None
    priority: str = "medium"
    is_completed: bool = Field(default=False, alias="isCompleted")


class MirrorRecord(BaseModel):
    """Self-reflection: accepted flaws, what others think, growth areas."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    self_items: List[str] = Field(default_factory=list, alias="self")
    others: List[str] = Field(default_factory=list)
    growth: List[str] = Field(default_factory=list)
    confidence_level: Optional[int] = Field(default=None, ge=1, le=10, alias="confidenceLevel")

    @field_validator("self_items", "others", "growth")
    @classmethod
    def _drop_blank(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]

    def is_empty(self) -> bool:
        return not (self.self_items or self.others or self.growth or self.confidence_level is not None)


class PreviousAnalysis(BaseModel):
    """One context-window entry (see services.insight_archive.context_window)."""
    title: str
    date: datetime
    analysis: str
    tags: List[str] = Field(default_factory=list)


class InsightRequest(BaseModel):
    """
    Body of POST /v1/insights.

    A field omitted from the body is filled from the user's stored records;
    a field sent explicitly is used as sent, even when empty.
    """
    model_config = ConfigDict(populate_by_name=True)

    relationships: List[RelationshipRecord] = Field(default_factory=list)
    wishlist_items: List[WishlistRecord] = Field(default_factory=list, alias="wishlistItems")
    mirror_data: Optional[MirrorRecord] = Field(default=None, alias="mirrorData")
    user_age: Optional[int] = Field(default=None, ge=18, le=99, alias="userAge")
    previous_analyses: List[PreviousAnalysis] = Field(default_factory=list, alias="previousAnalyses")


class InsightResponse(BaseModel):
    success: bool = True
    analysis: str
    generated_at: datetime
    credits_remaining: int


# ---------------------------------------------------------------------------
# Profile / credits
# ---------------------------------------------------------------------------

class ProfileResponse(BaseModel):
    id: UUID
    email: str
    display_name: Optional[str] = None
    age: Optional[int] = None
    credits: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=100)
    age: Optional[int] = Field(default=None, ge=18, le=99)


class DailyBonusResponse(BaseModel):
    granted: bool
    new_balance: int


class CreditBalanceResponse(BaseModel):
    credits: int
    insight_price: int


class CreditPackResponse(BaseModel):
    id: str
    credits: int
    price_cents: int
    currency: str = "usd"


class CheckoutRequest(BaseModel):
    pack: str


class CreditPurchaseResponse(BaseModel):
    id: UUID
    pack: str
    credits: int
    amount_cents: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

class ArchiveCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1, max_length=200)
    analysis: str = Field(min_length=1)
    data_snapshot: Optional[Dict[str, Any]] = Field(default=None, alias="dataSnapshot")
    generated_at: datetime = Field(alias="generatedAt")
    tags: List[str] = Field(default_factory=list, max_length=10)
    folder_name: Optional[str] = Field(default=None, max_length=100, alias="folderName")


class ArchiveUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    tags: Optional[List[str]] = Field(default=None, max_length=10)
    folder_name: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="folderName")


class ArchivedInsightResponse(BaseModel):
    id: UUID
    title: str
    analysis: str
    data_snapshot: Optional[Dict[str, Any]] = None
    tags: List[str]
    folder_name: str
    generated_at: datetime
    archived_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContextEntryResponse(BaseModel):
    title: str
    date: datetime
    analysis: str
    tags: List[str]


# ---------------------------------------------------------------------------
# Relationships / wishlist / mirror
# ---------------------------------------------------------------------------

class RelationshipCreate(BaseModel):
    type: RelationshipType
    name: str = Field(min_length=1, max_length=100)
    start_date: Optional[date] = None
    location: Optional[str] = Field(default=None, max_length=200)
    duration: Optional[str] = Field(default=None, max_length=100)
    feelings: Optional[str] = Field(default=None, max_length=1000)
    rating: Optional[int] = Field(default=None, ge=1, le=10)
    private_note: Optional[str] = Field(default=None, max_length=2000)


class RelationshipResponse(RelationshipCreate):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WishlistItemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    priority: Priority = "medium"
    is_completed: bool = False


class WishlistItemResponse(WishlistItemCreate):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MirrorUpdate(BaseModel):
    self_items: List[str] = Field(default_factory=list, max_length=50)
    others_items: List[str] = Field(default_factory=list, max_length=50)
    growth_items: List[str] = Field(default_factory=list, max_length=50)
    confidence_level: Optional[int] = Field(default=None, ge=1, le=10)


class MirrorResponse(MirrorUpdate):
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
