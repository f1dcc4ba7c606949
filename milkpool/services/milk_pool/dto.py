from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class OperationResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_kind: str = 'error') -> "OperationResult":
        return cls(success=False, error=error, error_kind=error_kind)


@dataclass(frozen=True)
class InventoryDraw:
    """Finished-goods line to create from a withdrawal."""
    product_id: Optional[str]
    quantity: Optional[float]
    unit: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.product_id) and bool(self.quantity)

    @classmethod
    def from_payload(cls, payload: dict) -> "InventoryDraw":
        product_id = str(payload.get('product_id') or '').strip()
        quantity = payload.get('quantity')
        return cls(
            product_id=product_id or None,
            quantity=float(quantity) if quantity not in (None, '') else None,
            unit=payload.get('unit') or None,
        )


@dataclass(frozen=True)
class WithdrawalPlan:
    """Projected effect of drawing ``liters`` at the given manual percents."""
    liters: float
    fat_percent: float
    snf_percent: float
    max_fat_percent: float
    max_snf_percent: float
    used_fat_units: float
    used_snf_units: float
    remaining_liters: float
    remaining_fat_units: float
    remaining_snf_units: float
    avg_fat: float
    avg_snf: float


@dataclass(frozen=True)
class AddCollectionsOutcome:
    pool_id: int
    added_liters: float
    collections_count: int
    new_avg_fat: float
    new_avg_snf: float


@dataclass(frozen=True)
class UseMilkOutcome:
    pool_id: int
    usage_id: int
    used_fat_units: float
    used_snf_units: float
    new_remaining_liters: float
    new_avg_fat: float
    new_avg_snf: float
    inventory_item_ids: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class ArchiveOutcome:
    book: Any
    archived_pool_id: int
    new_pool_id: int
    milk_used: float
    collections_count: int
    usage_count: int
    inventory_count: int

    def summary(self) -> dict:
        return {
            'milk_used': self.milk_used,
            'collections_count': self.collections_count,
            'usage_count': self.usage_count,
            'inventory_count': self.inventory_count,
        }
