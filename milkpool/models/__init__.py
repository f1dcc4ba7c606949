"""Models package - imports all models for the application"""
from ..extensions import db
from .mixins import AppendOnlyMixin, ImmutableRecordError, TimestampMixin

# Import in dependency order for PostgreSQL table creation
from .collection import (
    COLLECTION_NEW,
    COLLECTION_POOLED,
    QC_APPROVED,
    QC_PENDING,
    QC_REJECTED,
    MilkCollection,
    Supplier,
)
from .milk_pool import POOL_ACTIVE, POOL_ARCHIVED, MilkPool, PoolBook
from .pool_logs import CollectionAddition, UsageWithdrawal
from .inventory import InventoryItem

__all__ = [
    'db',
    'AppendOnlyMixin',
    'ImmutableRecordError',
    'TimestampMixin',
    'Supplier',
    'MilkCollection',
    'MilkPool',
    'PoolBook',
    'CollectionAddition',
    'UsageWithdrawal',
    'InventoryItem',
    'POOL_ACTIVE',
    'POOL_ARCHIVED',
    'QC_PENDING',
    'QC_APPROVED',
    'QC_REJECTED',
    'COLLECTION_NEW',
    'COLLECTION_POOLED',
]
