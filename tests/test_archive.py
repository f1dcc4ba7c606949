"""
ArchiveAndReset: closing the active pool into a book and opening a fresh one.
"""
import pytest

from milkpool.extensions import db
from milkpool.models import (
    POOL_ACTIVE,
    POOL_ARCHIVED,
    CollectionAddition,
    ImmutableRecordError,
    MilkPool,
    PoolBook,
    UsageWithdrawal,
)
from milkpool.services.milk_pool import archive_and_reset, use_milk


@pytest.fixture
def used_pool(fill_pool):
    """Scenario pool: 100 L @ 4.0 / 8.5, then 30 L drawn @ 5.0 / 8.0."""
    pool = fill_pool((100, 4.0, 8.5))
    result = use_milk(
        pool.id, 30, 5.0, 8.0,
        inventory_draws=[{'product_id': 1, 'quantity': 6, 'unit': 'kg'}],
    )
    assert result.success, result.error
    return pool


class TestArchiveAndReset:

    def test_book_snapshot_scenario(self, used_pool):
        pool_id = used_pool.id

        result = archive_and_reset(pool_id, closed_by=5, notes='End of week')

        assert result.success, result.error
        book = result.data.book
        assert book.pool_id == pool_id
        assert book.book_number == 1
        assert book.closing_total_liters == pytest.approx(70.0)
        assert book.closing_fat_units == pytest.approx(250.0)
        assert book.closing_avg_fat == pytest.approx(250.0 / 70.0)
        assert book.opening_total_liters == pytest.approx(100.0)
        assert book.opening_avg_fat == pytest.approx(4.0)
        assert book.opening_avg_snf == pytest.approx(8.5)
        assert book.total_milk_used == pytest.approx(30.0)
        assert book.total_fat_used == pytest.approx(150.0)
        assert book.total_snf_used == pytest.approx(240.0)
        assert book.closed_by == 5
        assert book.notes == 'End of week'

    def test_closing_fields_equal_pre_archive_remainders(self, used_pool, pool_snapshot):
        before = pool_snapshot(used_pool)

        book = archive_and_reset(used_pool.id).data.book

        assert book.closing_total_liters == before['remaining_milk_liters']
        assert book.closing_fat_units == before['remaining_fat_units']
        assert book.closing_snf_units == before['remaining_snf_units']
        assert book.closing_avg_fat == before['current_avg_fat']
        assert book.closing_avg_snf == before['current_avg_snf']

    def test_new_active_pool_is_all_zero(self, used_pool):
        result = archive_and_reset(used_pool.id)

        new_pool = db.session.get(MilkPool, result.data.new_pool_id)
        assert new_pool.status == POOL_ACTIVE
        assert new_pool.id != used_pool.id
        for field in (
            'total_milk_liters', 'total_fat_units', 'total_snf_units',
            'original_avg_fat', 'original_avg_snf',
            'remaining_milk_liters', 'remaining_fat_units', 'remaining_snf_units',
            'current_avg_fat', 'current_avg_snf',
        ):
            assert getattr(new_pool, field) == 0.0, field

    def test_exactly_one_active_pool_after_reset(self, used_pool):
        archive_and_reset(used_pool.id)

        assert MilkPool.query.filter_by(status=POOL_ACTIVE).count() == 1
        archived = db.session.get(MilkPool, used_pool.id)
        assert archived.status == POOL_ARCHIVED
        assert archived.archived_at is not None

    def test_archived_pool_keeps_figures_and_history(self, used_pool):
        archive_and_reset(used_pool.id)

        archived = db.session.get(MilkPool, used_pool.id)
        assert archived.remaining_milk_liters == pytest.approx(70.0)
        assert archived.total_milk_liters == pytest.approx(100.0)
        assert CollectionAddition.query.filter_by(milk_pool_id=archived.id).count() == 1
        assert UsageWithdrawal.query.filter_by(milk_pool_id=archived.id).count() == 1

    def test_summary_counts(self, used_pool):
        result = archive_and_reset(used_pool.id)

        assert result.data.summary() == {
            'milk_used': pytest.approx(30.0),
            'collections_count': 1,
            'usage_count': 1,
            'inventory_count': 1,
        }
        book = result.data.book
        assert book.collections_count == 1
        assert book.usage_count == 1
        assert book.inventory_items_count == 1

    def test_book_numbers_increase(self, used_pool):
        first = archive_and_reset(used_pool.id)
        second = archive_and_reset(first.data.new_pool_id)

        assert first.data.book.book_number == 1
        assert second.data.book.book_number == 2
        # An empty pool archives into an all-zero book
        assert second.data.book.opening_total_liters == 0.0
        assert second.data.book.closing_avg_fat == 0.0

    def test_book_to_dict_shape(self, used_pool):
        book = archive_and_reset(used_pool.id).data.book

        payload = book.to_dict()
        assert payload['book_number'] == 1
        assert payload['book_name'] == 'Main Pool'
        assert payload['total_collections_count'] == 1
        assert payload['closing_total_liters'] == pytest.approx(70.0)
        assert payload['created_at'] is not None
        assert payload['closed_at'] is not None


class TestArchiveRejections:

    def test_second_archive_of_same_pool_fails(self, used_pool):
        pool_id = used_pool.id
        assert archive_and_reset(pool_id).success

        result = archive_and_reset(pool_id)

        assert not result.success
        assert result.error_kind == 'validation'
        assert PoolBook.query.count() == 1
        assert MilkPool.query.filter_by(status=POOL_ACTIVE).count() == 1

    def test_unknown_pool_is_not_found(self, db_session):
        result = archive_and_reset(31337)

        assert not result.success
        assert result.error_kind == 'not_found'
        assert PoolBook.query.count() == 0


class TestImmutability:

    def test_archived_pool_cannot_be_written(self, used_pool):
        pool_id = used_pool.id
        archive_and_reset(pool_id)

        archived = db.session.get(MilkPool, pool_id)
        archived.remaining_milk_liters = 0.0
        with pytest.raises(ImmutableRecordError):
            db.session.flush()
        db.session.rollback()

        assert db.session.get(MilkPool, pool_id).remaining_milk_liters == pytest.approx(70.0)

    def test_book_rows_are_append_only(self, used_pool):
        book = archive_and_reset(used_pool.id).data.book

        book.closing_total_liters = 1.0
        with pytest.raises(ImmutableRecordError):
            db.session.flush()
        db.session.rollback()

    def test_usage_rows_are_append_only(self, used_pool):
        usage = UsageWithdrawal.query.filter_by(milk_pool_id=used_pool.id).one()

        usage.used_liters = 1.0
        with pytest.raises(ImmutableRecordError):
            db.session.flush()
        db.session.rollback()
