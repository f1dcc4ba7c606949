import math

from ._composition import max_feasible_percent
from .errors import PoolNotFoundError, PoolValidationError


def _require_number(value, label):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PoolValidationError(f"{label} must be a number")
    if not math.isfinite(number):
        raise PoolValidationError(f"{label} must be a finite number")
    return number


def validate_usage(pool, liters, fat_percent, snf_percent):
    """Check a draw against the pool's current remainders.

    Checks run in order and the first failure wins: quantity, then fat
    ceiling, then SNF ceiling. Returns the coerced numbers.
    """
    liters = _require_number(liters, "Liters")
    if liters <= 0:
        raise PoolValidationError("Invalid quantity: liters must be greater than zero")
    if liters > pool.remaining_milk_liters:
        raise PoolValidationError(
            f"Invalid quantity: requested {liters:g}L but only "
            f"{pool.remaining_milk_liters:.2f}L remain in the pool"
        )

    fat_percent = _require_number(fat_percent, "Fat %")
    if fat_percent < 0:
        raise PoolValidationError("Fat % cannot be negative")
    max_fat = max_feasible_percent(pool.remaining_fat_units, liters)
    if fat_percent > max_fat:
        raise PoolValidationError(f"Fat % cannot exceed {max_fat:.2f}% for {liters:g}L")

    snf_percent = _require_number(snf_percent, "SNF %")
    if snf_percent < 0:
        raise PoolValidationError("SNF % cannot be negative")
    max_snf = max_feasible_percent(pool.remaining_snf_units, liters)
    if snf_percent > max_snf:
        raise PoolValidationError(f"SNF % cannot exceed {max_snf:.2f}% for {liters:g}L")

    return liters, fat_percent, snf_percent


def normalize_collection_ids(collection_ids):
    if not collection_ids:
        raise PoolValidationError("Select at least one collection to add to the pool")
    try:
        ids = [int(cid) for cid in collection_ids]
    except (TypeError, ValueError):
        raise PoolValidationError("Collection ids must be integers")
    # Preserve selection order, drop duplicates
    return list(dict.fromkeys(ids))


def validate_collections(collections, requested_ids):
    """All requested collections must exist and be approved and unpooled."""
    found = {collection.id for collection in collections}
    missing = [cid for cid in requested_ids if cid not in found]
    if missing:
        raise PoolNotFoundError(
            "Collection(s) not found: " + ", ".join(str(cid) for cid in missing)
        )

    unavailable = [c for c in collections if not c.is_available_for_pooling]
    if unavailable:
        details = ", ".join(
            f"{c.id} (qc={c.qc_status}, status={c.status})" for c in unavailable
        )
        raise PoolValidationError(
            f"Collection(s) not available for pooling: {details}"
        )
