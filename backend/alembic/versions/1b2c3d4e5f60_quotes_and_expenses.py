"""quotes and expenses

Revision ID: 1b2c3d4e5f60
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-20 10:00:00.000000

Tables for the Bake Diary quotes and expenses importers.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '1b2c3d4e5f60'
down_revision: Union[str, None] = '0a1b2c3d4e5f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _owned() -> list[sa.Column]:
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'quotes',
        *_owned(),
        sa.Column('quote_number', sa.String(50), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('delivery_type', sa.String(20), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('theme', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'quote_number', name='uq_quotes_owner_number'),
    )
    op.create_index('ix_quotes_owner_id', 'quotes', ['owner_id'])
    op.create_index('ix_quotes_contact_id', 'quotes', ['contact_id'])

    op.create_table(
        'expenses',
        *_owned(),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('payment_source', sa.String(100), nullable=True),
        sa.Column('vat', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_inc_tax', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_deductible', sa.Boolean(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_expenses_owner_id', 'expenses', ['owner_id'])
    op.create_index('ix_expenses_date', 'expenses', ['date'])


def downgrade() -> None:
    op.drop_table('expenses')
    op.drop_table('quotes')
