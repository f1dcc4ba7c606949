from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class InventoryItem(db.Model):
    """Finished goods produced from a pool withdrawal.

    ``product_id`` is whatever the operator picked; product identity is owned
    by the catalogue and not checked here. ``fat_percent`` is the manual fat
    percent of the draw, kept for traceability back to the milk composition.
    """
    __tablename__ = 'inventory_item'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(64), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    fat_percent = db.Column(db.Float, nullable=True)
    milk_usage_log_id = db.Column(db.Integer, db.ForeignKey('milk_usage_log.id'), nullable=True, index=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    usage = db.relationship('UsageWithdrawal', back_populates='inventory_items')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit': self.unit,
            'fat_percent': self.fat_percent,
            'milk_usage_log_id': self.milk_usage_log_id,
            'created_at': TimezoneUtils.isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<InventoryItem {self.id}: product {self.product_id} x {self.quantity} {self.unit}>'
