"""
Pytest configuration and shared fixtures for the milk pool ledger tests.
"""
import os
import tempfile

import pytest

from milkpool import create_app
from milkpool.extensions import db
from milkpool.models import COLLECTION_NEW, QC_APPROVED, MilkCollection, Supplier
from milkpool.services.milk_pool import add_collections, ensure_active_pool


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    # File-backed SQLite so a second connection can race the session
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'RATELIMIT_ENABLED': False,
        'CACHE_TYPE': 'SimpleCache',
        'CACHE_REDIS_URL': None,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def app_context(app):
    """Provide an application context for tests that need it."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    """The Flask-SQLAlchemy session inside an app context."""
    yield db.session
    db.session.rollback()


@pytest.fixture
def active_pool(db_session):
    return ensure_active_pool()


@pytest.fixture
def make_collection(db_session):
    """Factory for approved, unpooled collections (override any field)."""
    supplier = Supplier(name='Hillside Dairy')
    db_session.add(supplier)
    db_session.commit()

    def _make(qty_liters, fat, snf=None, qc_status=QC_APPROVED, status=COLLECTION_NEW):
        collection = MilkCollection(
            supplier_id=supplier.id,
            qty_liters=qty_liters,
            fat=fat,
            snf=snf,
            qc_status=qc_status,
            status=status,
        )
        db_session.add(collection)
        db_session.commit()
        return collection

    return _make


@pytest.fixture
def fill_pool(active_pool, make_collection):
    """Blend fresh collections of ``(liters, fat, snf)`` into the active pool."""

    def _fill(*lots):
        ids = [make_collection(liters, fat, snf).id for liters, fat, snf in lots]
        result = add_collections(active_pool.id, ids)
        assert result.success, result.error
        return active_pool

    return _fill


@pytest.fixture
def pool_snapshot(db_session):
    """Ledger columns of a pool as a plain dict, for no-mutation assertions."""

    def _snapshot(pool):
        db_session.refresh(pool)
        return {column: getattr(pool, column) for column in _LEDGER_COLUMNS}

    return _snapshot


_LEDGER_COLUMNS = (
    'status',
    'total_milk_liters',
    'total_fat_units',
    'total_snf_units',
    'original_avg_fat',
    'original_avg_snf',
    'remaining_milk_liters',
    'remaining_fat_units',
    'remaining_snf_units',
    'current_avg_fat',
    'current_avg_snf',
    'version_id',
)
