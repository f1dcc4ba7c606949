"""initial milk pool ledger schema

Revision ID: 0001_milk_pool_ledger
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_milk_pool_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create suppliers, collections, pools, pool logs, inventory and books"""
    op.create_table(
        'supplier',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'milk_pool',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('total_milk_liters', sa.Float(), nullable=False),
        sa.Column('total_fat_units', sa.Float(), nullable=False),
        sa.Column('total_snf_units', sa.Float(), nullable=False),
        sa.Column('original_avg_fat', sa.Float(), nullable=False),
        sa.Column('original_avg_snf', sa.Float(), nullable=False),
        sa.Column('remaining_milk_liters', sa.Float(), nullable=False),
        sa.Column('remaining_fat_units', sa.Float(), nullable=False),
        sa.Column('remaining_snf_units', sa.Float(), nullable=False),
        sa.Column('current_avg_fat', sa.Float(), nullable=False),
        sa.Column('current_avg_snf', sa.Float(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("status IN ('active', 'archived')", name='check_milk_pool_status'),
        sa.CheckConstraint('remaining_milk_liters >= 0', name='check_pool_remaining_liters_non_negative'),
        sa.CheckConstraint('remaining_fat_units >= 0', name='check_pool_remaining_fat_non_negative'),
        sa.CheckConstraint('remaining_snf_units >= 0', name='check_pool_remaining_snf_non_negative'),
        sa.CheckConstraint('remaining_milk_liters <= total_milk_liters', name='check_pool_remaining_not_exceeds_total'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_milk_pool_single_active',
        'milk_pool',
        ['status'],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'milk_collection',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('qty_liters', sa.Float(), nullable=False),
        sa.Column('fat', sa.Float(), nullable=False),
        sa.Column('snf', sa.Float(), nullable=True),
        sa.Column('qc_status', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('milk_pool_id', sa.Integer(), nullable=True),
        sa.Column('pooled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('qty_liters > 0', name='check_collection_qty_positive'),
        sa.CheckConstraint('fat >= 0', name='check_collection_fat_non_negative'),
        sa.ForeignKeyConstraint(['milk_pool_id'], ['milk_pool.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['supplier.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('milk_collection', schema=None) as batch_op:
        batch_op.create_index('ix_milk_collection_availability', ['qc_status', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_milk_collection_milk_pool_id'), ['milk_pool_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_milk_collection_supplier_id'), ['supplier_id'], unique=False)

    op.create_table(
        'pool_collection',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('milk_pool_id', sa.Integer(), nullable=False),
        sa.Column('collection_id', sa.Integer(), nullable=False),
        sa.Column('liters', sa.Float(), nullable=False),
        sa.Column('fat_percent', sa.Float(), nullable=False),
        sa.Column('snf_percent', sa.Float(), nullable=False),
        sa.Column('fat_units', sa.Float(), nullable=False),
        sa.Column('snf_units', sa.Float(), nullable=False),
        sa.Column('pool_avg_fat_after', sa.Float(), nullable=False),
        sa.Column('pool_avg_snf_after', sa.Float(), nullable=False),
        sa.Column('added_by', sa.Integer(), nullable=True),
        sa.Column('added_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['collection_id'], ['milk_collection.id']),
        sa.ForeignKeyConstraint(['milk_pool_id'], ['milk_pool.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection_id'),
    )
    with op.batch_alter_table('pool_collection', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pool_collection_milk_pool_id'), ['milk_pool_id'], unique=False)

    op.create_table(
        'milk_usage_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('milk_pool_id', sa.Integer(), nullable=False),
        sa.Column('used_liters', sa.Float(), nullable=False),
        sa.Column('manual_fat_percent', sa.Float(), nullable=False),
        sa.Column('manual_snf_percent', sa.Float(), nullable=False),
        sa.Column('used_fat_units', sa.Float(), nullable=False),
        sa.Column('used_snf_units', sa.Float(), nullable=False),
        sa.Column('remaining_liters_after', sa.Float(), nullable=False),
        sa.Column('remaining_fat_units_after', sa.Float(), nullable=False),
        sa.Column('remaining_snf_units_after', sa.Float(), nullable=False),
        sa.Column('remaining_avg_fat_after', sa.Float(), nullable=False),
        sa.Column('remaining_avg_snf_after', sa.Float(), nullable=False),
        sa.Column('purpose', sa.String(length=255), nullable=True),
        sa.Column('used_by', sa.Integer(), nullable=True),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('used_liters > 0', name='check_usage_liters_positive'),
        sa.ForeignKeyConstraint(['milk_pool_id'], ['milk_pool.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('milk_usage_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_milk_usage_log_milk_pool_id'), ['milk_pool_id'], unique=False)

    op.create_table(
        'inventory_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('fat_percent', sa.Float(), nullable=True),
        sa.Column('milk_usage_log_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['milk_usage_log_id'], ['milk_usage_log.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('inventory_item', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_item_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_item_milk_usage_log_id'), ['milk_usage_log_id'], unique=False)

    op.create_table(
        'pool_book',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book_number', sa.Integer(), nullable=False),
        sa.Column('pool_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('opening_total_liters', sa.Float(), nullable=False),
        sa.Column('opening_fat_units', sa.Float(), nullable=False),
        sa.Column('opening_snf_units', sa.Float(), nullable=False),
        sa.Column('opening_avg_fat', sa.Float(), nullable=False),
        sa.Column('opening_avg_snf', sa.Float(), nullable=False),
        sa.Column('closing_total_liters', sa.Float(), nullable=False),
        sa.Column('closing_fat_units', sa.Float(), nullable=False),
        sa.Column('closing_snf_units', sa.Float(), nullable=False),
        sa.Column('closing_avg_fat', sa.Float(), nullable=False),
        sa.Column('closing_avg_snf', sa.Float(), nullable=False),
        sa.Column('total_milk_used', sa.Float(), nullable=False),
        sa.Column('total_fat_used', sa.Float(), nullable=False),
        sa.Column('total_snf_used', sa.Float(), nullable=False),
        sa.Column('collections_count', sa.Integer(), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('inventory_items_count', sa.Integer(), nullable=False),
        sa.Column('opened_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=False),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['pool_id'], ['milk_pool.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_number'),
        sa.UniqueConstraint('pool_id'),
    )
    with op.batch_alter_table('pool_book', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pool_book_closed_at'), ['closed_at'], unique=False)


def downgrade():
    """Drop the ledger tables in dependency order"""
    with op.batch_alter_table('pool_book', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_pool_book_closed_at'))
    op.drop_table('pool_book')

    with op.batch_alter_table('inventory_item', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_inventory_item_milk_usage_log_id'))
        batch_op.drop_index(batch_op.f('ix_inventory_item_product_id'))
    op.drop_table('inventory_item')

    with op.batch_alter_table('milk_usage_log', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_milk_usage_log_milk_pool_id'))
    op.drop_table('milk_usage_log')

    with op.batch_alter_table('pool_collection', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_pool_collection_milk_pool_id'))
    op.drop_table('pool_collection')

    with op.batch_alter_table('milk_collection', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_milk_collection_supplier_id'))
        batch_op.drop_index(batch_op.f('ix_milk_collection_milk_pool_id'))
        batch_op.drop_index('ix_milk_collection_availability')
    op.drop_table('milk_collection')

    op.drop_index('uq_milk_pool_single_active', table_name='milk_pool')
    op.drop_table('milk_pool')

    op.drop_table('supplier')
