"""
Ledger store adapter.

Every mutating ledger operation runs through ``run_atomic``: the pool row is
re-read (``FOR UPDATE`` where the dialect supports it, always refreshed from
the database), validated, written, and committed in one transaction. The
``version_id`` column on ``MilkPool`` turns a concurrent write between our
read and our commit into ``StaleDataError``; that attempt is rolled back and
retried against a fresh read, so a stale remainder can never be written back.
"""

import logging

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ...extensions import db
from ...models import POOL_ACTIVE, MilkPool, PoolBook
from .dto import OperationResult
from .errors import PoolConflictError, PoolError, PoolNotFoundError, PoolValidationError

logger = logging.getLogger(__name__)

_CONFLICT_MESSAGE = "The milk pool was changed by another operation. Reload and try again."
_CONSTRAINT_MESSAGE = "The update would break a milk pool ledger constraint and was not saved."
ACTIVE_POOL_INDEX = "uq_milk_pool_single_active"


def ledger_setting(key, default):
    return current_app.config.get(key, default)


def float_tolerance() -> float:
    return float(ledger_setting('MILK_POOL_FLOAT_TOLERANCE', 1e-9))


def lock_pool(pool_id, require_active=True) -> MilkPool:
    """Load the pool row for writing, refreshed from the database."""
    pool = (
        MilkPool.query.filter_by(id=pool_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if pool is None:
        raise PoolNotFoundError(f"Milk pool {pool_id} not found")
    if require_active and pool.status != POOL_ACTIVE:
        raise PoolValidationError(
            f"Milk pool {pool_id} is {pool.status}; only the active pool can be changed"
        )
    return pool


def find_active_pool():
    return MilkPool.query.filter_by(status=POOL_ACTIVE).first()


def new_empty_pool(created_by=None) -> MilkPool:
    pool = MilkPool(
        name=ledger_setting('MILK_POOL_DEFAULT_NAME', 'Main Pool'),
        status=POOL_ACTIVE,
        total_milk_liters=0.0,
        total_fat_units=0.0,
        total_snf_units=0.0,
        original_avg_fat=0.0,
        original_avg_snf=0.0,
        remaining_milk_liters=0.0,
        remaining_fat_units=0.0,
        remaining_snf_units=0.0,
        current_avg_fat=0.0,
        current_avg_snf=0.0,
        created_by=created_by,
    )
    db.session.add(pool)
    return pool


def ensure_active_pool(created_by=None) -> MilkPool:
    """Return the active pool, creating an empty one when none exists."""
    pool = find_active_pool()
    if pool is not None:
        return pool

    try:
        pool = new_empty_pool(created_by)
        db.session.commit()
    except IntegrityError:
        # Another writer created the active pool first
        db.session.rollback()
        pool = find_active_pool()
        if pool is None:
            raise
        return pool

    logger.info("Created empty active milk pool %s", pool.id)
    return pool


def is_active_pool_race(exc: IntegrityError) -> bool:
    """True when ``exc`` comes from two writers opening an active pool at once."""
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if constraint:
        return constraint == ACTIVE_POOL_INDEX
    # SQLite names the indexed column, not the index
    message = str(exc.orig)
    return ACTIVE_POOL_INDEX in message or "milk_pool.status" in message


def next_book_number() -> int:
    current = db.session.query(func.max(PoolBook.book_number)).scalar()
    return (current or 0) + 1


def run_atomic(operation: str, work) -> OperationResult:
    """Run ``work`` in one transaction and translate the outcome into a result.

    Ledger rejections roll back and come back as failures. Version conflicts
    and active-pool index races are retried with a fresh read up to
    ``MILK_POOL_CONFLICT_RETRIES`` times. Any other constraint failure is a
    validation failure and is not retried. Anything else rolls back and
    propagates.
    """
    retries = max(int(ledger_setting('MILK_POOL_CONFLICT_RETRIES', 1)), 0)
    attempt = 0

    while True:
        try:
            data = work()
            db.session.commit()
        except PoolError as exc:
            db.session.rollback()
            logger.warning("%s rejected (%s): %s", operation, exc.kind, exc.message)
            return OperationResult.failure(exc.message, exc.kind)
        except (StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError) and not is_active_pool_race(exc):
                logger.error("%s violated a ledger constraint: %s", operation, exc.orig)
                return OperationResult.failure(_CONSTRAINT_MESSAGE, 'validation')
            if attempt < retries:
                attempt += 1
                logger.warning(
                    "%s hit a concurrent pool update, retrying with fresh state (%s/%s): %s",
                    operation, attempt, retries, exc,
                )
                continue
            conflict = PoolConflictError(_CONFLICT_MESSAGE)
            logger.warning("%s abandoned after %s conflicting attempts: %s", operation, attempt + 1, exc)
            return OperationResult.failure(conflict.message, conflict.kind)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("%s failed with a database error", operation)
            return OperationResult.failure(f"Database error during {operation}", 'error')
        except Exception:
            db.session.rollback()
            raise

        logger.info("%s committed", operation)
        return OperationResult.ok(data)
