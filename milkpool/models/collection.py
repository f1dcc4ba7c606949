from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import TimestampMixin

QC_PENDING = 'pending'
QC_APPROVED = 'approved'
QC_REJECTED = 'rejected'

COLLECTION_NEW = 'new'
COLLECTION_POOLED = 'pooled'


class Supplier(db.Model):
    __tablename__ = 'supplier'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    def __repr__(self):
        return f'<Supplier {self.id}: {self.name}>'


class MilkCollection(TimestampMixin, db.Model):
    """Raw milk received from a supplier.

    Collections pass through QC upstream of the pool. Only rows that are
    ``qc_status='approved'`` and still ``status='new'`` may be added to a
    pool; adding them flips ``status`` to ``pooled`` so they cannot be
    blended twice.
    """
    __tablename__ = 'milk_collection'

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey('supplier.id'), nullable=True, index=True)
    qty_liters = db.Column(db.Float, nullable=False)
    fat = db.Column(db.Float, nullable=False)
    snf = db.Column(db.Float, nullable=True)
    qc_status = db.Column(db.String(16), nullable=False, default=QC_PENDING)
    status = db.Column(db.String(16), nullable=False, default=COLLECTION_NEW)

    milk_pool_id = db.Column(db.Integer, db.ForeignKey('milk_pool.id'), nullable=True, index=True)
    pooled_at = db.Column(db.DateTime, nullable=True)

    supplier = db.relationship('Supplier', backref='collections')

    __table_args__ = (
        db.CheckConstraint('qty_liters > 0', name='check_collection_qty_positive'),
        db.CheckConstraint('fat >= 0', name='check_collection_fat_non_negative'),
        db.Index('ix_milk_collection_availability', 'qc_status', 'status'),
    )

    @property
    def is_available_for_pooling(self):
        return self.qc_status == QC_APPROVED and self.status == COLLECTION_NEW

    def to_dict(self):
        return {
            'id': self.id,
            'qty_liters': self.qty_liters,
            'fat': self.fat,
            'snf': self.snf,
            'qc_status': self.qc_status,
            'status': self.status,
            'supplier_name': self.supplier.name if self.supplier else None,
            'created_at': TimezoneUtils.isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<MilkCollection {self.id}: {self.qty_liters}L @ {self.fat}% fat ({self.status})>'
