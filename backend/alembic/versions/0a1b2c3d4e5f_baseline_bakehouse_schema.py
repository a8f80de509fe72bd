"""baseline bakehouse schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-16 09:00:00.000000

Contacts, recipes, ingredients, orders with their line items, and the
append-only audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'contacts',
        _id(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('contact_type', sa.String(50), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_owner_id', 'contacts', ['owner_id'])
    op.create_index('ix_contacts_email', 'contacts', ['email'])

    op.create_table(
        'recipes',
        _id(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('servings', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipes_owner_id', 'recipes', ['owner_id'])
    op.create_index('ix_recipes_name', 'recipes', ['name'])

    op.create_table(
        'ingredients',
        _id(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('unit', sa.String(20), nullable=False),
        sa.Column('pack_size', sa.Numeric(12, 3), nullable=False),
        sa.Column('pack_cost', sa.Numeric(12, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ingredients_owner_id', 'ingredients', ['owner_id'])
    op.create_index('ix_ingredients_name', 'ingredients', ['name'])

    op.create_table(
        'orders',
        _id(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('contact_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('delivery_type', sa.String(20), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('deposit_paid', sa.Boolean(), nullable=False),
        sa.Column('theme', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'order_number', name='uq_orders_owner_number'),
    )
    op.create_index('ix_orders_owner_id', 'orders', ['owner_id'])
    op.create_index('ix_orders_contact_id', 'orders', ['contact_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        _id(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('after_state', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    # Append-only at the database level.
    op.execute("REVOKE UPDATE, DELETE ON audit_logs FROM PUBLIC;")


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('ingredients')
    op.drop_table('recipes')
    op.drop_table('contacts')
