from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, ForeignKey, JSON, Text, String, Index, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

DEFAULT_FOLDER = "Uncategorized"


class UserProfile(Base):
    """
    One row per user. `id` is the identity id carried in the access token and
    is the owner key for every other table.

    `credits` is only ever changed through services.credit_ledger, which applies
    atomic deltas in SQL; never assign to it from request code.
    """

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=True)
    display_name = Column(Text, nullable=True)

    # Set by the user, only used to tailor insight prompts.
    age = Column(Integer, nullable=True)

    credits = Column(Integer, nullable=False, default=0, server_default="0")
    # Server-local calendar day of the last daily bonus (at most one grant per day).
    last_bonus_granted_on = Column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        CheckConstraint("age IS NULL OR (age >= 18 AND age <= 99)", name="ck_profiles_age_range"),
    )


class CreditPurchase(Base):
    """
    Confirmed credit-pack purchases.

    The unique checkout session id is the purchase-level idempotency key: a
    payment can only ever credit the ledger once, however many webhook
    deliveries reference it.
    """

    __tablename__ = "credit_purchases"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    stripe_session_id = Column(Text, nullable=False, unique=True)
    pack = Column(Text, nullable=False)
    credits = Column(Integer, nullable=False)
    amount_cents = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class StripeEvent(Base):
    """
    Processed Stripe events (idempotency guard).

    Stripe retries webhook deliveries; storing event ids makes webhook handling safe.
    """

    __tablename__ = "stripe_events"

    event_id = Column(Text, primary_key=True)  # Stripe event id (e.g., evt_*)
    event_type = Column(Text, nullable=False)
    stripe_created = Column(Integer, nullable=True)

    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_stripe_events_event_type", "event_type"),
    )


class Relationship(Base):
    """A relationship/encounter entered by the user. Read-only input for insights."""

    __tablename__ = "relationships"

    TYPES = ("romantic", "sexual", "friend", "friendzone", "other")

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    name = Column(Text, nullable=False)
    start_date = Column(Date, nullable=True)
    location = Column(Text, nullable=True)
    duration = Column(Text, nullable=True)
    feelings = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)  # 1-10
    private_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 10)", name="ck_relationships_rating_range"),
    )


class WishlistItem(Base):
    __tablename__ = "wishlist_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="medium")  # low|medium|high
    is_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class MirrorReflection(Base):
    """Self-reflection lists ("mirror"), one row per user."""

    __tablename__ = "mirror_reflections"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    self_items = Column(JSONType, nullable=False, default=list)  # accepted flaws
    others_items = Column(JSONType, nullable=False, default=list)  # what others think
    growth_items = Column(JSONType, nullable=False, default=list)  # growth areas
    confidence_level = Column(Integer, nullable=True)  # 1-10
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ArchivedInsight(Base):
    """
    A generated analysis the user chose to keep.

    Invariant: archived_at >= generated_at. Only title, tags and folder_name
    are editable after creation.
    """

    __tablename__ = "archived_insights"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    analysis = Column(Text, nullable=False)
    data_snapshot = Column(JSONType, nullable=True)
    tags = Column(JSONType, nullable=False, default=list)
    folder_name = Column(Text, nullable=False, default=DEFAULT_FOLDER)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("UserProfile", lazy="select")

    __table_args__ = (
        Index("ix_archived_insights_user_archived", "user_id", "archived_at"),
    )
