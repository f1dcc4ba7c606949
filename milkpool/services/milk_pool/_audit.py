import logging

from ...extensions import db
from ...models import CollectionAddition, UsageWithdrawal
from ._composition import weighted_average
from ._store import float_tolerance

logger = logging.getLogger(__name__)


def audit_pool(pool):
    """Check a pool's figures against its own history.

    Returns a list of human readable violations; an empty list means the
    ledger is consistent.
    """
    tolerance = float_tolerance()
    violations = []

    added = db.session.query(
        db.func.coalesce(db.func.sum(CollectionAddition.liters), 0.0),
        db.func.coalesce(db.func.sum(CollectionAddition.fat_units), 0.0),
        db.func.coalesce(db.func.sum(CollectionAddition.snf_units), 0.0),
    ).filter(CollectionAddition.milk_pool_id == pool.id).one()
    used = db.session.query(
        db.func.coalesce(db.func.sum(UsageWithdrawal.used_liters), 0.0),
        db.func.coalesce(db.func.sum(UsageWithdrawal.used_fat_units), 0.0),
        db.func.coalesce(db.func.sum(UsageWithdrawal.used_snf_units), 0.0),
    ).filter(UsageWithdrawal.milk_pool_id == pool.id).one()

    def _close(a, b):
        return abs(a - b) <= tolerance * max(1.0, abs(a), abs(b))

    checks = (
        ('liters added', pool.total_milk_liters, added[0]),
        ('fat units added', pool.total_fat_units, added[1]),
        ('snf units added', pool.total_snf_units, added[2]),
        ('liters used', pool.total_milk_liters - pool.remaining_milk_liters, used[0]),
        ('fat units used', pool.total_fat_units - pool.remaining_fat_units, used[1]),
        ('snf units used', pool.total_snf_units - pool.remaining_snf_units, used[2]),
    )
    for label, ledger_value, history_value in checks:
        if not _close(ledger_value, history_value):
            violations.append(f"{label}: pool shows {ledger_value} but history sums to {history_value}")

    for label, value in (
        ('remaining_milk_liters', pool.remaining_milk_liters),
        ('remaining_fat_units', pool.remaining_fat_units),
        ('remaining_snf_units', pool.remaining_snf_units),
    ):
        if value < 0:
            violations.append(f"{label} is negative ({value})")

    if pool.remaining_milk_liters > pool.total_milk_liters + tolerance:
        violations.append("remaining_milk_liters exceeds total_milk_liters")
    if pool.remaining_fat_units > pool.total_fat_units + tolerance:
        violations.append("remaining_fat_units exceeds total_fat_units")
    if pool.remaining_snf_units > pool.total_snf_units + tolerance:
        violations.append("remaining_snf_units exceeds total_snf_units")

    expected_fat = weighted_average(pool.remaining_fat_units, pool.remaining_milk_liters)
    expected_snf = weighted_average(pool.remaining_snf_units, pool.remaining_milk_liters)
    if not _close(pool.current_avg_fat, expected_fat):
        violations.append(f"current_avg_fat {pool.current_avg_fat} != {expected_fat}")
    if not _close(pool.current_avg_snf, expected_snf):
        violations.append(f"current_avg_snf {pool.current_avg_snf} != {expected_snf}")

    if violations:
        logger.warning("Pool %s failed audit: %s", pool.id, "; ".join(violations))
    return violations
