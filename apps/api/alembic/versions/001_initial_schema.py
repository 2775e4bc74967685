"""initial schema: profiles, credit ledger, journal records and insight archive

Revision ID: 001
Revises:
Create Date: 2026-01-12 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('credits', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_bonus_granted_on', sa.Date(), nullable=True),
        sa.CheckConstraint('credits >= 0', name='ck_profiles_credits_non_negative'),
        sa.CheckConstraint('age IS NULL OR (age >= 18 AND age <= 99)', name='ck_profiles_age_range'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'credit_purchases',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('stripe_session_id', sa.Text(), nullable=False),
        sa.Column('pack', sa.Text(), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('stripe_session_id'),
    )
    op.create_index('ix_credit_purchases_user_id', 'credit_purchases', ['user_id'])

    op.create_table(
        'stripe_events',
        sa.Column('event_id', sa.Text(), primary_key=True),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('stripe_created', sa.Integer(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stripe_events_event_type', 'stripe_events', ['event_type'])

    op.create_table(
        'relationships',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('duration', sa.Text(), nullable=True),
        sa.Column('feelings', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('private_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.CheckConstraint('rating IS NULL OR (rating >= 1 AND rating <= 10)', name='ck_relationships_rating_range'),
    )
    op.create_index('ix_relationships_user_id', 'relationships', ['user_id'])

    op.create_table(
        'wishlist_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_wishlist_items_user_id', 'wishlist_items', ['user_id'])

    op.create_table(
        'mirror_reflections',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('self_items', JSON_TYPE, nullable=False),
        sa.Column('others_items', JSON_TYPE, nullable=False),
        sa.Column('growth_items', JSON_TYPE, nullable=False),
        sa.Column('confidence_level', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'archived_insights',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('analysis', sa.Text(), nullable=False),
        sa.Column('data_snapshot', JSON_TYPE, nullable=True),
        sa.Column('tags', JSON_TYPE, nullable=False),
        sa.Column('folder_name', sa.Text(), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_archived_insights_user_archived', 'archived_insights', ['user_id', 'archived_at'])


def downgrade() -> None:
    op.drop_index('ix_archived_insights_user_archived', table_name='archived_insights')
    op.drop_table('archived_insights')
    op.drop_table('mirror_reflections')
    op.drop_index('ix_wishlist_items_user_id', table_name='wishlist_items')
    op.drop_table('wishlist_items')
    op.drop_index('ix_relationships_user_id', table_name='relationships')
    op.drop_table('relationships')
    op.drop_index('ix_stripe_events_event_type', table_name='stripe_events')
    op.drop_table('stripe_events')
    op.drop_index('ix_credit_purchases_user_id', table_name='credit_purchases')
    op.drop_table('credit_purchases')
    op.drop_table('profiles')
