import logging

from ...extensions import db
from ...models import COLLECTION_POOLED, CollectionAddition, MilkCollection
from ...utils.timezone_utils import TimezoneUtils
from ._composition import units_of, weighted_average
from ._store import lock_pool, run_atomic
from ._validation import normalize_collection_ids, validate_collections
from .dto import AddCollectionsOutcome

logger = logging.getLogger(__name__)


def add_collections(pool_id, collection_ids, added_by=None):
    """
    Blend approved, unpooled collections into the active pool.

    Additions grow both the cumulative totals and the withdrawable remainders.
    The batch is all-or-nothing: one unavailable or missing collection rejects
    the whole selection.
    """
    logger.info("ADD COLLECTIONS: pool_id=%s, collection_ids=%s", pool_id, collection_ids)

    def _work():
        ids = normalize_collection_ids(collection_ids)
        pool = lock_pool(pool_id)

        collections = (
            MilkCollection.query.filter(MilkCollection.id.in_(ids))
            .with_for_update()
            .populate_existing()
            .all()
        )
        validate_collections(collections, ids)
        by_id = {collection.id: collection for collection in collections}

        now = TimezoneUtils.utc_now()
        added_liters = 0.0
        for cid in ids:
            collection = by_id[cid]
            liters = collection.qty_liters
            fat_units = units_of(liters, collection.fat)
            snf_percent = collection.snf or 0.0
            snf_units = units_of(liters, snf_percent)

            pool.total_milk_liters += liters
            pool.total_fat_units += fat_units
            pool.total_snf_units += snf_units
            pool.remaining_milk_liters += liters
            pool.remaining_fat_units += fat_units
            pool.remaining_snf_units += snf_units
            _recompute_averages(pool)

            db.session.add(CollectionAddition(
                pool=pool,
                collection=collection,
                liters=liters,
                fat_percent=collection.fat,
                snf_percent=snf_percent,
                fat_units=fat_units,
                snf_units=snf_units,
                pool_avg_fat_after=pool.current_avg_fat,
                pool_avg_snf_after=pool.current_avg_snf,
                added_by=added_by,
                added_at=now,
            ))

            collection.status = COLLECTION_POOLED
            collection.milk_pool_id = pool.id
            collection.pooled_at = now
            added_liters += liters

        return AddCollectionsOutcome(
            pool_id=pool.id,
            added_liters=added_liters,
            collections_count=len(ids),
            new_avg_fat=pool.current_avg_fat,
            new_avg_snf=pool.current_avg_snf,
        )

    return run_atomic("add_collections", _work)


def _recompute_averages(pool):
    pool.current_avg_fat = weighted_average(pool.remaining_fat_units, pool.remaining_milk_liters)
    pool.current_avg_snf = weighted_average(pool.remaining_snf_units, pool.remaining_milk_liters)
    # "original" is the cumulative average of everything added this cycle
    pool.original_avg_fat = weighted_average(pool.total_fat_units, pool.total_milk_liters)
    pool.original_avg_snf = weighted_average(pool.total_snf_units, pool.total_milk_liters)
