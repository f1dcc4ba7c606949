"""
AddCollections: blending approved collections into the active pool.
"""
import pytest

from milkpool.extensions import db
from milkpool.models import (
    COLLECTION_POOLED,
    QC_PENDING,
    QC_REJECTED,
    CollectionAddition,
    MilkCollection,
    MilkPool,
)
from milkpool.services.milk_pool import add_collections, archive_and_reset


class TestAddCollections:

    def test_single_collection_into_empty_pool(self, active_pool, make_collection):
        collection = make_collection(100, 4.0, 8.5)

        result = add_collections(active_pool.id, [collection.id])

        assert result.success, result.error
        assert result.data.added_liters == pytest.approx(100.0)
        assert result.data.new_avg_fat == pytest.approx(4.0)
        assert result.data.new_avg_snf == pytest.approx(8.5)

        assert active_pool.total_milk_liters == pytest.approx(100.0)
        assert active_pool.remaining_milk_liters == pytest.approx(100.0)
        assert active_pool.total_fat_units == pytest.approx(400.0)
        assert active_pool.remaining_snf_units == pytest.approx(850.0)
        assert active_pool.current_avg_fat == pytest.approx(4.0)
        assert active_pool.current_avg_snf == pytest.approx(8.5)
        assert active_pool.original_avg_fat == pytest.approx(4.0)

    def test_collections_blend_by_volume(self, active_pool, make_collection):
        first = make_collection(100, 4.0, 8.5)
        second = make_collection(50, 5.5, 9.1)

        result = add_collections(active_pool.id, [first.id, second.id])

        assert result.success, result.error
        assert result.data.collections_count == 2
        assert active_pool.total_milk_liters == pytest.approx(150.0)
        assert active_pool.current_avg_fat == pytest.approx((400.0 + 275.0) / 150.0)
        assert active_pool.current_avg_snf == pytest.approx((850.0 + 455.0) / 150.0)

    def test_original_average_is_cumulative(self, fill_pool, make_collection):
        pool = fill_pool((100, 4.0, 8.5))
        assert pool.original_avg_fat == pytest.approx(4.0)

        second = make_collection(100, 6.0, 8.5)
        assert add_collections(pool.id, [second.id]).success

        assert pool.original_avg_fat == pytest.approx(5.0)

    def test_collections_marked_pooled(self, active_pool, make_collection):
        collection = make_collection(40, 3.8, 8.4)

        add_collections(active_pool.id, [collection.id])

        refreshed = db.session.get(MilkCollection, collection.id)
        assert refreshed.status == COLLECTION_POOLED
        assert refreshed.milk_pool_id == active_pool.id
        assert refreshed.pooled_at is not None
        assert not refreshed.is_available_for_pooling

    def test_addition_log_records_running_averages(self, active_pool, make_collection):
        first = make_collection(100, 4.0, 8.0)
        second = make_collection(100, 6.0, 9.0)

        add_collections(active_pool.id, [first.id, second.id])

        additions = (
            CollectionAddition.query.filter_by(milk_pool_id=active_pool.id)
            .order_by(CollectionAddition.id)
            .all()
        )
        assert [a.collection_id for a in additions] == [first.id, second.id]
        assert additions[0].fat_units == pytest.approx(400.0)
        assert additions[0].pool_avg_fat_after == pytest.approx(4.0)
        assert additions[1].pool_avg_fat_after == pytest.approx(5.0)
        assert additions[1].pool_avg_snf_after == pytest.approx(8.5)

    def test_missing_snf_counts_as_zero(self, active_pool, make_collection):
        collection = make_collection(60, 4.1, None)

        result = add_collections(active_pool.id, [collection.id])

        assert result.success, result.error
        assert active_pool.total_snf_units == 0.0
        assert active_pool.current_avg_snf == 0.0

    def test_duplicate_ids_are_blended_once(self, active_pool, make_collection):
        collection = make_collection(25, 4.0, 8.0)

        result = add_collections(active_pool.id, [collection.id, collection.id, str(collection.id)])

        assert result.success, result.error
        assert result.data.collections_count == 1
        assert active_pool.total_milk_liters == pytest.approx(25.0)


class TestAddCollectionsRejections:

    def test_empty_selection_rejected(self, active_pool, pool_snapshot):
        before = pool_snapshot(active_pool)

        result = add_collections(active_pool.id, [])

        assert not result.success
        assert result.error_kind == 'validation'
        assert 'at least one collection' in result.error
        assert pool_snapshot(active_pool) == before

    @pytest.mark.parametrize("qc_status", [QC_PENDING, QC_REJECTED])
    def test_unapproved_collection_rejects_whole_batch(self, active_pool, make_collection, pool_snapshot, qc_status):
        good = make_collection(100, 4.0, 8.5)
        bad = make_collection(50, 4.0, 8.5, qc_status=qc_status)
        before = pool_snapshot(active_pool)

        result = add_collections(active_pool.id, [good.id, bad.id])

        assert not result.success
        assert result.error_kind == 'validation'
        assert 'not available for pooling' in result.error
        assert pool_snapshot(active_pool) == before
        assert db.session.get(MilkCollection, good.id).status == 'new'
        assert CollectionAddition.query.count() == 0

    def test_already_pooled_collection_cannot_be_added_twice(self, fill_pool, make_collection, pool_snapshot):
        pool = fill_pool((100, 4.0, 8.5))
        pooled = MilkCollection.query.filter_by(milk_pool_id=pool.id).one()
        before = pool_snapshot(pool)

        result = add_collections(pool.id, [pooled.id])

        assert not result.success
        assert result.error_kind == 'validation'
        assert pool_snapshot(pool) == before

    def test_unknown_collection_is_not_found(self, active_pool, pool_snapshot):
        before = pool_snapshot(active_pool)

        result = add_collections(active_pool.id, [987654])

        assert not result.success
        assert result.error_kind == 'not_found'
        assert '987654' in result.error
        assert pool_snapshot(active_pool) == before

    def test_unknown_pool_is_not_found(self, db_session, make_collection):
        collection = make_collection(10, 4.0, 8.0)

        result = add_collections(424242, [collection.id])

        assert not result.success
        assert result.error_kind == 'not_found'
        assert db.session.get(MilkCollection, collection.id).status == 'new'

    def test_archived_pool_rejects_additions(self, fill_pool, make_collection):
        pool = fill_pool((100, 4.0, 8.5))
        archived_id = pool.id
        assert archive_and_reset(archived_id).success
        collection = make_collection(10, 4.0, 8.0)

        result = add_collections(archived_id, [collection.id])

        assert not result.success
        assert result.error_kind == 'validation'
        assert db.session.get(MilkPool, archived_id).total_milk_liters == pytest.approx(100.0)

    def test_non_integer_ids_rejected(self, active_pool):
        result = add_collections(active_pool.id, ['abc'])

        assert not result.success
        assert result.error_kind == 'validation'
