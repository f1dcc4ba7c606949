import logging

from ...extensions import db
from ...models import InventoryItem, UsageWithdrawal
from ...utils.timezone_utils import TimezoneUtils
from ._composition import plan_withdrawal
from ._store import float_tolerance, lock_pool, run_atomic
from ._validation import validate_usage
from .dto import InventoryDraw, OperationResult, UseMilkOutcome
from .errors import PoolValidationError

logger = logging.getLogger(__name__)

PRODUCTION_MAX_FAT_PERCENT = 10.0
PRODUCTION_MAX_SNF_PERCENT = 15.0


def use_milk(pool_id, liters, fat_percent, snf_percent, purpose=None, inventory_draws=None, used_by=None):
    """
    Withdraw milk from the active pool at an operator-chosen composition.

    The manual fat/SNF percents need not match the pool average. The
    remaining average is re-derived from the new remainders, so it drifts up
    after a lean draw and down after a rich one. A draw may not carry out more
    fat or SNF per liter than physically remains.
    """
    logger.info(
        "USE MILK: pool_id=%s, liters=%s, fat=%s, snf=%s, purpose=%s",
        pool_id, liters, fat_percent, snf_percent, purpose,
    )

    def _work():
        draws = _coerce_draws(inventory_draws)
        pool = lock_pool(pool_id)
        use_liters, fat, snf = validate_usage(pool, liters, fat_percent, snf_percent)

        plan = plan_withdrawal(
            pool.remaining_milk_liters,
            pool.remaining_fat_units,
            pool.remaining_snf_units,
            use_liters,
            fat,
            snf,
            tolerance=float_tolerance(),
        )

        usage = UsageWithdrawal(
            pool=pool,
            used_liters=plan.liters,
            manual_fat_percent=plan.fat_percent,
            manual_snf_percent=plan.snf_percent,
            used_fat_units=plan.used_fat_units,
            used_snf_units=plan.used_snf_units,
            remaining_liters_after=plan.remaining_liters,
            remaining_fat_units_after=plan.remaining_fat_units,
            remaining_snf_units_after=plan.remaining_snf_units,
            remaining_avg_fat_after=plan.avg_fat,
            remaining_avg_snf_after=plan.avg_snf,
            purpose=purpose or None,
            used_by=used_by,
            used_at=TimezoneUtils.utc_now(),
        )
        db.session.add(usage)

        pool.remaining_milk_liters = plan.remaining_liters
        pool.remaining_fat_units = plan.remaining_fat_units
        pool.remaining_snf_units = plan.remaining_snf_units
        pool.current_avg_fat = plan.avg_fat
        pool.current_avg_snf = plan.avg_snf

        items = [
            InventoryItem(
                product_id=str(draw.product_id),
                quantity=draw.quantity,
                unit=draw.unit,
                fat_percent=plan.fat_percent,
                usage=usage,
                created_by=used_by,
            )
            for draw in draws
            if draw.is_complete
        ]
        db.session.add_all(items)
        db.session.flush()

        return UseMilkOutcome(
            pool_id=pool.id,
            usage_id=usage.id,
            used_fat_units=plan.used_fat_units,
            used_snf_units=plan.used_snf_units,
            new_remaining_liters=plan.remaining_liters,
            new_avg_fat=plan.avg_fat,
            new_avg_snf=plan.avg_snf,
            inventory_item_ids=tuple(item.id for item in items),
        )

    return run_atomic("use_milk", _work)


def draw_for_production(pool_id, product_type, liters, fat_percent, snf_percent, used_by=None):
    """Milk draw for a production batch, logged as ``Production - <product_type>``."""
    product_type = (product_type or '').strip()
    if not product_type:
        return _rejected("Please enter product type")

    try:
        fat = float(fat_percent)
        snf = float(snf_percent)
    except (TypeError, ValueError):
        return _rejected("Fat % and SNF % must be numbers")

    if not 0 < fat <= PRODUCTION_MAX_FAT_PERCENT:
        return _rejected(f"Fat % must be between 0 and {PRODUCTION_MAX_FAT_PERCENT:g}")
    if not 0 < snf <= PRODUCTION_MAX_SNF_PERCENT:
        return _rejected(f"SNF % must be between 0 and {PRODUCTION_MAX_SNF_PERCENT:g}")

    return use_milk(
        pool_id,
        liters,
        fat,
        snf,
        purpose=f"Production - {product_type}",
        used_by=used_by,
    )


def preview_usage(pool, liters, fat_percent, snf_percent):
    """Projected ceilings and averages for a draw; nothing is validated or written."""
    return plan_withdrawal(
        pool.remaining_milk_liters,
        pool.remaining_fat_units,
        pool.remaining_snf_units,
        float(liters),
        float(fat_percent),
        float(snf_percent),
    )


def _coerce_draws(inventory_draws):
    draws = []
    for draw in inventory_draws or []:
        if isinstance(draw, InventoryDraw):
            draws.append(draw)
            continue
        try:
            draws.append(InventoryDraw.from_payload(draw))
        except (AttributeError, TypeError, ValueError):
            raise PoolValidationError(f"Invalid inventory item: {draw!r}")
    return draws


def _rejected(message):
    logger.warning("draw_for_production rejected (validation): %s", message)
    return OperationResult.failure(message, 'validation')
