"""
Milk Pool Service - Canonical Entry Point

All changes to the pool ledger go through add_collections, use_milk and
archive_and_reset. Each runs as a single transaction and returns an
OperationResult; a rejected operation leaves the ledger untouched.
"""

from ._additive_ops import add_collections
from ._archive import archive_and_reset
from ._audit import audit_pool
from ._composition import max_feasible_percent, units_of, weighted_average
from ._deductive_ops import draw_for_production, preview_usage, use_milk
from ._reporting import (
    get_active_pool,
    get_book_details,
    get_pool,
    get_pool_history,
    list_available_collections,
    list_pool_books,
    list_recent_usage,
)
from ._store import ensure_active_pool
from .dto import (
    AddCollectionsOutcome,
    ArchiveOutcome,
    InventoryDraw,
    OperationResult,
    UseMilkOutcome,
    WithdrawalPlan,
)
from .errors import PoolConflictError, PoolError, PoolNotFoundError, PoolValidationError

__all__ = [
    'add_collections',
    'use_milk',
    'draw_for_production',
    'preview_usage',
    'archive_and_reset',
    'audit_pool',
    'ensure_active_pool',
    'get_active_pool',
    'get_pool',
    'get_pool_history',
    'get_book_details',
    'list_available_collections',
    'list_pool_books',
    'list_recent_usage',
    'weighted_average',
    'units_of',
    'max_feasible_percent',
    'OperationResult',
    'InventoryDraw',
    'WithdrawalPlan',
    'AddCollectionsOutcome',
    'UseMilkOutcome',
    'ArchiveOutcome',
    'PoolError',
    'PoolValidationError',
    'PoolNotFoundError',
    'PoolConflictError',
]
