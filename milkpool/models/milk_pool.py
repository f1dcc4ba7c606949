from sqlalchemy import event, inspect

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import AppendOnlyMixin, ImmutableRecordError, TimestampMixin

POOL_ACTIVE = 'active'
POOL_ARCHIVED = 'archived'


class MilkPool(TimestampMixin, db.Model):
    """
    Blended milk ledger. Tracks cumulative and withdrawable mass as liters plus
    fat/SNF "units" (liters x percent); averages are always re-derived from
    units rather than averaged directly.

    Exactly one row may be active. Archived rows are frozen.
    """
    __tablename__ = 'milk_pool'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, default='Main Pool')
    status = db.Column(db.String(16), nullable=False, default=POOL_ACTIVE)

    # Everything ever added during this cycle
    total_milk_liters = db.Column(db.Float, nullable=False, default=0.0)
    total_fat_units = db.Column(db.Float, nullable=False, default=0.0)
    total_snf_units = db.Column(db.Float, nullable=False, default=0.0)
    original_avg_fat = db.Column(db.Float, nullable=False, default=0.0)
    original_avg_snf = db.Column(db.Float, nullable=False, default=0.0)

    # Withdrawable mass
    remaining_milk_liters = db.Column(db.Float, nullable=False, default=0.0)
    remaining_fat_units = db.Column(db.Float, nullable=False, default=0.0)
    remaining_snf_units = db.Column(db.Float, nullable=False, default=0.0)
    current_avg_fat = db.Column(db.Float, nullable=False, default=0.0)
    current_avg_snf = db.Column(db.Float, nullable=False, default=0.0)

    created_by = db.Column(db.Integer, nullable=True)
    archived_at = db.Column(db.DateTime, nullable=True)

    # Optimistic concurrency guard; every UPDATE is conditioned on it
    version_id = db.Column(db.Integer, nullable=False)

    additions = db.relationship(
        'CollectionAddition', back_populates='pool', order_by='CollectionAddition.id'
    )
    withdrawals = db.relationship(
        'UsageWithdrawal', back_populates='pool', order_by='UsageWithdrawal.id'
    )
    book = db.relationship('PoolBook', back_populates='pool', uselist=False)

    __mapper_args__ = {'version_id_col': version_id}

    __table_args__ = (
        db.CheckConstraint("status IN ('active', 'archived')", name='check_milk_pool_status'),
        db.CheckConstraint('remaining_milk_liters >= 0', name='check_pool_remaining_liters_non_negative'),
        db.CheckConstraint('remaining_fat_units >= 0', name='check_pool_remaining_fat_non_negative'),
        db.CheckConstraint('remaining_snf_units >= 0', name='check_pool_remaining_snf_non_negative'),
        db.CheckConstraint('remaining_milk_liters <= total_milk_liters', name='check_pool_remaining_not_exceeds_total'),
        db.Index(
            'uq_milk_pool_single_active',
            'status',
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
    )

    @property
    def is_active(self):
        return self.status == POOL_ACTIVE

    @property
    def milk_used_liters(self):
        return (self.total_milk_liters or 0.0) - (self.remaining_milk_liters or 0.0)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'total_milk_liters': self.total_milk_liters,
            'total_fat_units': self.total_fat_units,
            'total_snf_units': self.total_snf_units,
            'original_avg_fat': self.original_avg_fat,
            'original_avg_snf': self.original_avg_snf,
            'remaining_milk_liters': self.remaining_milk_liters,
            'remaining_fat_units': self.remaining_fat_units,
            'remaining_snf_units': self.remaining_snf_units,
            'current_avg_fat': self.current_avg_fat,
            'current_avg_snf': self.current_avg_snf,
            'created_at': TimezoneUtils.isoformat(self.created_at),
            'updated_at': TimezoneUtils.isoformat(self.updated_at),
            'archived_at': TimezoneUtils.isoformat(self.archived_at),
        }

    def __repr__(self):
        return f'<MilkPool {self.id} ({self.status}): {self.remaining_milk_liters}/{self.total_milk_liters}L>'


@event.listens_for(MilkPool, "before_update")
def _freeze_archived_pool(mapper, connection, target):
    history = inspect(target).attrs.status.history
    previous_status = history.deleted[0] if history.deleted else target.status
    if previous_status == POOL_ARCHIVED:
        raise ImmutableRecordError(f"MilkPool {target.id} is archived and cannot be modified")


class PoolBook(AppendOnlyMixin, db.Model):
    """Closing snapshot of an archived pool.

    Opening figures are the pool's cumulative totals and cumulative averages;
    closing figures are what was still in the pool at archive time. The
    addition and withdrawal history stays on the archived pool and is reached
    through ``pool_id``.
    """
    __tablename__ = 'pool_book'

    id = db.Column(db.Integer, primary_key=True)
    book_number = db.Column(db.Integer, nullable=False, unique=True)
    pool_id = db.Column(db.Integer, db.ForeignKey('milk_pool.id'), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)

    opening_total_liters = db.Column(db.Float, nullable=False)
    opening_fat_units = db.Column(db.Float, nullable=False)
    opening_snf_units = db.Column(db.Float, nullable=False)
    opening_avg_fat = db.Column(db.Float, nullable=False)
    opening_avg_snf = db.Column(db.Float, nullable=False)

    closing_total_liters = db.Column(db.Float, nullable=False)
    closing_fat_units = db.Column(db.Float, nullable=False)
    closing_snf_units = db.Column(db.Float, nullable=False)
    closing_avg_fat = db.Column(db.Float, nullable=False)
    closing_avg_snf = db.Column(db.Float, nullable=False)

    total_milk_used = db.Column(db.Float, nullable=False)
    total_fat_used = db.Column(db.Float, nullable=False)
    total_snf_used = db.Column(db.Float, nullable=False)

    collections_count = db.Column(db.Integer, nullable=False, default=0)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    inventory_items_count = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime, nullable=False)
    closed_at = db.Column(db.DateTime, nullable=False, default=TimezoneUtils.utc_now, index=True)
    closed_by = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    pool = db.relationship('MilkPool', back_populates='book')

    def to_dict(self):
        return {
            'book_id': self.id,
            'book_number': self.book_number,
            'book_name': self.name,
            'pool_id': self.pool_id,
            'opening_total_liters': self.opening_total_liters,
            'opening_fat_units': self.opening_fat_units,
            'opening_snf_units': self.opening_snf_units,
            'opening_avg_fat': self.opening_avg_fat,
            'opening_avg_snf': self.opening_avg_snf,
            'closing_total_liters': self.closing_total_liters,
            'closing_fat_units': self.closing_fat_units,
            'closing_snf_units': self.closing_snf_units,
            'closing_avg_fat': self.closing_avg_fat,
            'closing_avg_snf': self.closing_avg_snf,
            'total_milk_used': self.total_milk_used,
            'total_fat_used': self.total_fat_used,
            'total_snf_used': self.total_snf_used,
            'total_collections_count': self.collections_count,
            'total_usage_count': self.usage_count,
            'total_inventory_items_count': self.inventory_items_count,
            'created_at': TimezoneUtils.isoformat(self.opened_at),
            'closed_at': TimezoneUtils.isoformat(self.closed_at),
            'closed_by': self.closed_by,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<PoolBook #{self.book_number} pool={self.pool_id}>'
