import logging

from ...extensions import db
from ...models import POOL_ARCHIVED, CollectionAddition, InventoryItem, PoolBook, UsageWithdrawal
from ...utils.timezone_utils import TimezoneUtils
from ._store import lock_pool, new_empty_pool, next_book_number, run_atomic
from .dto import ArchiveOutcome

logger = logging.getLogger(__name__)


def archive_and_reset(pool_id, closed_by=None, notes=None):
    """
    Close the active pool into a PoolBook and open a fresh empty pool.

    The archived pool keeps its terminal figures and its full addition and
    withdrawal history; it is never changed again. Archiving a pool that is
    missing or already archived fails instead of opening a second pool.
    """
    logger.info("ARCHIVE AND RESET: pool_id=%s, closed_by=%s", pool_id, closed_by)

    def _work():
        pool = lock_pool(pool_id)

        collections_count = CollectionAddition.query.filter_by(milk_pool_id=pool.id).count()
        usage_count = UsageWithdrawal.query.filter_by(milk_pool_id=pool.id).count()
        inventory_count = (
            InventoryItem.query.join(InventoryItem.usage)
            .filter(UsageWithdrawal.milk_pool_id == pool.id)
            .count()
        )

        closed_at = TimezoneUtils.utc_now()
        book = PoolBook(
            book_number=next_book_number(),
            pool=pool,
            name=pool.name,
            opening_total_liters=pool.total_milk_liters,
            opening_fat_units=pool.total_fat_units,
            opening_snf_units=pool.total_snf_units,
            opening_avg_fat=pool.original_avg_fat,
            opening_avg_snf=pool.original_avg_snf,
            closing_total_liters=pool.remaining_milk_liters,
            closing_fat_units=pool.remaining_fat_units,
            closing_snf_units=pool.remaining_snf_units,
            closing_avg_fat=pool.current_avg_fat,
            closing_avg_snf=pool.current_avg_snf,
            total_milk_used=pool.total_milk_liters - pool.remaining_milk_liters,
            total_fat_used=pool.total_fat_units - pool.remaining_fat_units,
            total_snf_used=pool.total_snf_units - pool.remaining_snf_units,
            collections_count=collections_count,
            usage_count=usage_count,
            inventory_items_count=inventory_count,
            opened_at=pool.created_at,
            closed_at=closed_at,
            closed_by=closed_by,
            notes=notes or None,
        )
        db.session.add(book)

        pool.status = POOL_ARCHIVED
        pool.archived_at = closed_at
        # The old row must leave the single-active index before its replacement arrives
        db.session.flush()

        replacement = new_empty_pool(created_by=closed_by)
        db.session.flush()

        return ArchiveOutcome(
            book=book,
            archived_pool_id=pool.id,
            new_pool_id=replacement.id,
            milk_used=book.total_milk_used,
            collections_count=collections_count,
            usage_count=usage_count,
            inventory_count=inventory_count,
        )

    return run_atomic("archive_and_reset", _work)
