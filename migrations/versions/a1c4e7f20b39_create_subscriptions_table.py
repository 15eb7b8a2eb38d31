"""create subscriptions table

Revision ID: a1c4e7f20b39
Revises:
Create Date: 2025-09-01
"""
from alembic import op
import sqlalchemy as sa


revision = 'a1c4e7f20b39'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('service_name', sa.String(255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_subscriptions_owner_id', 'subscriptions', ['owner_id'])
    op.create_index('ix_subscriptions_service_name', 'subscriptions', ['service_name'])


def downgrade():
    op.drop_index('ix_subscriptions_service_name', table_name='subscriptions')
    op.drop_index('ix_subscriptions_owner_id', table_name='subscriptions')
    op.drop_table('subscriptions')
