"""
Composition math for the blended pool.

Percentages cannot be averaged across different volumes, so every quantity is
carried as "units" (liters x percent, e.g. 100 L at 4.2 % fat is 420 fat units)
and averages are re-derived as units / liters. Percent values are plain numbers
(4.2 means 4.2 %); the implicit 1/100 cancels because only ratios are read back.

All functions are pure. Nothing is rounded here; rounding is a display concern.
"""

from .dto import WithdrawalPlan


def weighted_average(units: float, liters: float) -> float:
    """Average percent for ``units`` spread over ``liters``; 0 for an empty pool."""
    if liters > 0:
        return units / liters
    return 0.0


def units_of(liters: float, percent: float) -> float:
    return liters * percent


def max_feasible_percent(remaining_units: float, liters: float) -> float:
    """Highest percent a draw of ``liters`` can carry out of ``remaining_units``."""
    if liters > 0:
        return remaining_units / liters
    return 0.0


def clamp_float_dust(value: float, tolerance: float, magnitude: float = 1.0) -> float:
    """Snap tiny negative results of float subtraction to zero.

    The tolerance is relative to ``magnitude`` (the larger operand of the
    subtraction), since rounding error grows with the size of the numbers.
    """
    if -tolerance * max(1.0, abs(magnitude)) < value < 0:
        return 0.0
    return value


def plan_withdrawal(
    remaining_liters: float,
    remaining_fat_units: float,
    remaining_snf_units: float,
    liters: float,
    fat_percent: float,
    snf_percent: float,
    tolerance: float = 0.0,
) -> WithdrawalPlan:
    """Compute a draw against the given remainders without validating it.

    The remaining average is recomputed from the new remainders, so a draw
    richer than the blend leaves the pool leaner and vice versa.
    """
    used_fat_units = units_of(liters, fat_percent)
    used_snf_units = units_of(liters, snf_percent)

    new_liters = clamp_float_dust(remaining_liters - liters, tolerance, remaining_liters)
    new_fat_units = clamp_float_dust(remaining_fat_units - used_fat_units, tolerance, remaining_fat_units)
    new_snf_units = clamp_float_dust(remaining_snf_units - used_snf_units, tolerance, remaining_snf_units)

    return WithdrawalPlan(
        liters=liters,
        fat_percent=fat_percent,
        snf_percent=snf_percent,
        max_fat_percent=max_feasible_percent(remaining_fat_units, liters),
        max_snf_percent=max_feasible_percent(remaining_snf_units, liters),
        used_fat_units=used_fat_units,
        used_snf_units=used_snf_units,
        remaining_liters=new_liters,
        remaining_fat_units=new_fat_units,
        remaining_snf_units=new_snf_units,
        avg_fat=weighted_average(new_fat_units, new_liters),
        avg_snf=weighted_average(new_snf_units, new_liters),
    )
