"""Read paths for the dashboard: live pool, pickable collections, books and their history."""

import logging

from ...extensions import cache, db
from ...models import (
    COLLECTION_NEW,
    QC_APPROVED,
    CollectionAddition,
    InventoryItem,
    MilkCollection,
    MilkPool,
    PoolBook,
    UsageWithdrawal,
)
from ...utils.timezone_utils import TimezoneUtils
from ._store import ensure_active_pool, find_active_pool, ledger_setting

logger = logging.getLogger(__name__)


def get_active_pool(create=True):
    """The active pool; an empty one is opened on first use unless ``create`` is False."""
    if create:
        return ensure_active_pool()
    return find_active_pool()


def get_pool(pool_id):
    return db.session.get(MilkPool, pool_id)


def list_available_collections():
    """Approved collections that have not been blended into any pool, newest first."""
    return (
        MilkCollection.query.filter_by(qc_status=QC_APPROVED, status=COLLECTION_NEW)
        .order_by(MilkCollection.created_at.desc(), MilkCollection.id.desc())
        .all()
    )


def list_recent_usage(pool_id, limit=None):
    limit = limit or ledger_setting('MILK_POOL_RECENT_USAGE_LIMIT', 20)
    return (
        UsageWithdrawal.query.filter_by(milk_pool_id=pool_id)
        .order_by(UsageWithdrawal.used_at.desc(), UsageWithdrawal.id.desc())
        .limit(limit)
        .all()
    )


def list_pool_books(start_date=None, end_date=None, min_milk=None, max_milk=None, search=None, limit=None):
    """Archived books, most recently closed first.

    ``start_date``/``end_date`` bound the close date (inclusive days);
    ``min_milk``/``max_milk`` bound liters used; ``search`` matches the book
    name or its number.
    """
    query = PoolBook.query
    if start_date:
        query = query.filter(PoolBook.closed_at >= TimezoneUtils.start_of_day(start_date))
    if end_date:
        query = query.filter(PoolBook.closed_at < TimezoneUtils.end_of_day_exclusive(end_date))
    if min_milk is not None:
        query = query.filter(PoolBook.total_milk_used >= min_milk)
    if max_milk is not None:
        query = query.filter(PoolBook.total_milk_used <= max_milk)

    search = (search or '').strip()
    if search:
        condition = PoolBook.name.ilike(f"%{search}%")
        if search.isdigit():
            condition = db.or_(condition, PoolBook.book_number == int(search))
        query = query.filter(condition)

    limit = limit or ledger_setting('MILK_POOL_BOOK_LIST_LIMIT', 50)
    return (
        query.order_by(PoolBook.closed_at.desc(), PoolBook.id.desc())
        .limit(limit)
        .all()
    )


def get_pool_history(pool_id):
    """Ordered (additions, withdrawals, inventory items) for one pool."""
    additions = (
        CollectionAddition.query.filter_by(milk_pool_id=pool_id)
        .order_by(CollectionAddition.added_at.asc(), CollectionAddition.id.asc())
        .all()
    )
    withdrawals = (
        UsageWithdrawal.query.filter_by(milk_pool_id=pool_id)
        .order_by(UsageWithdrawal.used_at.asc(), UsageWithdrawal.id.asc())
        .all()
    )
    inventory_items = (
        InventoryItem.query.join(InventoryItem.usage)
        .filter(UsageWithdrawal.milk_pool_id == pool_id)
        .order_by(InventoryItem.id.asc())
        .all()
    )
    return additions, withdrawals, inventory_items


def _book_cache_key(book_id):
    return f"milk_pool:book:{book_id}"


def get_book_details(book_id):
    """Full audit view of a book. Books never change once written, so the view is cached."""
    cache_key = _book_cache_key(book_id)
    try:
        cached = cache.get(cache_key)
    except Exception as e:
        logger.warning("Book cache read failed for %s: %s", book_id, e)
        cached = None
    if cached is not None:
        return cached

    book = db.session.get(PoolBook, book_id)
    if book is None:
        return None

    additions, withdrawals, inventory_items = get_pool_history(book.pool_id)
    details = book.to_dict()
    details.update({
        'duration_days': _duration_days(book.opened_at, book.closed_at),
        'usage_history': [usage.to_dict() for usage in withdrawals],
        'collections_history': [addition.to_dict() for addition in additions],
        'inventory_history': [item.to_dict() for item in inventory_items],
    })
    logger.debug(
        "Loaded book %s: %s additions, %s withdrawals",
        book.book_number, len(additions), len(withdrawals),
    )
    try:
        cache.set(cache_key, details)
    except Exception as e:
        logger.warning("Book cache write failed for %s: %s", book_id, e)
    return details


def _duration_days(opened_at, closed_at):
    if opened_at is None or closed_at is None:
        return 0
    if (opened_at.tzinfo is None) != (closed_at.tzinfo is None):
        opened_at = opened_at.replace(tzinfo=None)
        closed_at = closed_at.replace(tzinfo=None)
    seconds = (closed_at - opened_at).total_seconds()
    return max(int(-(-seconds // 86400)), 0)
