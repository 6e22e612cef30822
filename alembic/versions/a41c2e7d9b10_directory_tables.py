"""directory tables

Revision ID: a41c2e7d9b10
Revises:
Create Date: 2026-10-18 09:12:40.118204

Creates features, bookstores and events. Databases that already have
these tables (imported from the hosted schema) should be stamped with:

    alembic stamp head
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = 'a41c2e7d9b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'features',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('slug', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('keywords', sa.JSON(), nullable=True),
    )
    op.create_index('ix_features_slug', 'features', ['slug'])

    op.create_table(
        'bookstores',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('street', sa.String(length=300), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=50), nullable=False),
        sa.Column('county', sa.String(length=100), nullable=True),
        sa.Column('zip', sa.String(length=10), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('website', sa.String(length=500), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('hours', sa.JSON(), nullable=True),
        sa.Column('latitude', sa.String(length=32), nullable=True),
        sa.Column('longitude', sa.String(length=32), nullable=True),
        sa.Column('feature_ids', sa.JSON(), nullable=True),
        sa.Column('live', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('google_place_id', sa.String(length=255), nullable=True),
        sa.Column('google_rating', sa.String(length=10), nullable=True),
        sa.Column('google_review_count', sa.Integer(), nullable=True),
        sa.Column('google_description', sa.Text(), nullable=True),
        sa.Column('google_photos', sa.JSON(), nullable=True),
        sa.Column('google_reviews', sa.JSON(), nullable=True),
        sa.Column('google_price_level', sa.Integer(), nullable=True),
        sa.Column('google_data_updated_at', sa.DateTime(), nullable=True),
        sa.Column('formatted_phone', sa.String(length=50), nullable=True),
        sa.Column('website_verified', sa.String(length=500), nullable=True),
        sa.Column('opening_hours_json', sa.JSON(), nullable=True),
        sa.Column('google_maps_url', sa.Text(), nullable=True),
        sa.Column('google_types', sa.JSON(), nullable=True),
        sa.Column('formatted_address_google', sa.Text(), nullable=True),
        sa.Column('business_status', sa.String(length=50), nullable=True),
        sa.Column('contact_data_fetched_at', sa.DateTime(), nullable=True),
        sa.Column('ai_generated_description', sa.Text(), nullable=True),
        sa.Column('description_generated_at', sa.DateTime(), nullable=True),
        sa.Column('description_validated', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_bookstores_slug', 'bookstores', ['slug'])
    op.create_index('ix_bookstores_state', 'bookstores', ['state'])
    op.create_index('ix_bookstores_live', 'bookstores', ['live'])
    op.create_index('idx_bookstores_live_state', 'bookstores', ['live', 'state'])

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('bookshop_id', sa.Integer(), sa.ForeignKey('bookstores.id'), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('time', sa.String(length=50), nullable=False),
    )
    op.create_index('ix_events_bookshop_id', 'events', ['bookshop_id'])


def downgrade() -> None:
    op.drop_index('ix_events_bookshop_id', table_name='events')
    op.drop_table('events')
    op.drop_index('idx_bookstores_live_state', table_name='bookstores')
    op.drop_index('ix_bookstores_live', table_name='bookstores')
    op.drop_index('ix_bookstores_state', table_name='bookstores')
    op.drop_index('ix_bookstores_slug', table_name='bookstores')
    op.drop_table('bookstores')
    op.drop_index('ix_features_slug', table_name='features')
    op.drop_table('features')
