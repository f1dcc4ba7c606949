from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import AppendOnlyMixin


class CollectionAddition(AppendOnlyMixin, db.Model):
    """One source collection blended into a pool, with the pool's averages right after it."""
    __tablename__ = 'pool_collection'

    id = db.Column(db.Integer, primary_key=True)
    milk_pool_id = db.Column(db.Integer, db.ForeignKey('milk_pool.id'), nullable=False, index=True)
    collection_id = db.Column(db.Integer, db.ForeignKey('milk_collection.id'), nullable=False, unique=True)

    liters = db.Column(db.Float, nullable=False)
    fat_percent = db.Column(db.Float, nullable=False)
    snf_percent = db.Column(db.Float, nullable=False, default=0.0)
    fat_units = db.Column(db.Float, nullable=False)
    snf_units = db.Column(db.Float, nullable=False)

    pool_avg_fat_after = db.Column(db.Float, nullable=False)
    pool_avg_snf_after = db.Column(db.Float, nullable=False)

    added_by = db.Column(db.Integer, nullable=True)
    added_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    pool = db.relationship('MilkPool', back_populates='additions')
    collection = db.relationship('MilkCollection')

    def to_dict(self):
        collection = self.collection
        supplier = collection.supplier if collection else None
        return {
            'id': self.id,
            'milk_pool_id': self.milk_pool_id,
            'collection_id': self.collection_id,
            'supplier_name': supplier.name if supplier else None,
            'liters': self.liters,
            'fat_percent': self.fat_percent,
            'snf_percent': self.snf_percent,
            'fat_units': self.fat_units,
            'snf_units': self.snf_units,
            'pool_avg_fat_after': self.pool_avg_fat_after,
            'pool_avg_snf_after': self.pool_avg_snf_after,
            'added_by': self.added_by,
            'added_at': TimezoneUtils.isoformat(self.added_at),
        }

    def __repr__(self):
        return f'<CollectionAddition {self.id}: collection {self.collection_id} -> pool {self.milk_pool_id}>'


class UsageWithdrawal(AppendOnlyMixin, db.Model):
    """
    One draw from a pool. The fat/SNF percents are operator supplied and may
    differ from the pool average; the ``*_after`` columns capture the pool
    immediately after this draw.
    """
    __tablename__ = 'milk_usage_log'

    id = db.Column(db.Integer, primary_key=True)
    milk_pool_id = db.Column(db.Integer, db.ForeignKey('milk_pool.id'), nullable=False, index=True)

    used_liters = db.Column(db.Float, nullable=False)
    manual_fat_percent = db.Column(db.Float, nullable=False)
    manual_snf_percent = db.Column(db.Float, nullable=False)
    used_fat_units = db.Column(db.Float, nullable=False)
    used_snf_units = db.Column(db.Float, nullable=False)

    remaining_liters_after = db.Column(db.Float, nullable=False)
    remaining_fat_units_after = db.Column(db.Float, nullable=False)
    remaining_snf_units_after = db.Column(db.Float, nullable=False)
    remaining_avg_fat_after = db.Column(db.Float, nullable=False)
    remaining_avg_snf_after = db.Column(db.Float, nullable=False)

    purpose = db.Column(db.String(255), nullable=True)
    used_by = db.Column(db.Integer, nullable=True)
    used_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    pool = db.relationship('MilkPool', back_populates='withdrawals')
    inventory_items = db.relationship(
        'InventoryItem', back_populates='usage', order_by='InventoryItem.id'
    )

    __table_args__ = (
        db.CheckConstraint('used_liters > 0', name='check_usage_liters_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'milk_pool_id': self.milk_pool_id,
            'used_liters': self.used_liters,
            'manual_fat_percent': self.manual_fat_percent,
            'manual_snf_percent': self.manual_snf_percent,
            'used_fat_units': self.used_fat_units,
            'used_snf_units': self.used_snf_units,
            'remaining_liters_after': self.remaining_liters_after,
            'remaining_fat_units_after': self.remaining_fat_units_after,
            'remaining_snf_units_after': self.remaining_snf_units_after,
            'remaining_avg_fat_after': self.remaining_avg_fat_after,
            'remaining_avg_snf_after': self.remaining_avg_snf_after,
            'purpose': self.purpose,
            'used_by': self.used_by,
            'used_at': TimezoneUtils.isoformat(self.used_at),
            'inventory_item_ids': [item.id for item in self.inventory_items],
        }

    def __repr__(self):
        return f'<UsageWithdrawal {self.id}: {self.used_liters}L @ {self.manual_fat_percent}% fat>'
