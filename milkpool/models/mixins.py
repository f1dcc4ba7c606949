from sqlalchemy import event

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class ImmutableRecordError(RuntimeError):
    """Raised when a flush tries to rewrite an append-only ledger row."""


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models"""
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now, nullable=False)


class AppendOnlyMixin:
    """Ledger rows that may be inserted but never rewritten."""


@event.listens_for(AppendOnlyMixin, "before_update", propagate=True)
def _reject_update(mapper, connection, target):
    raise ImmutableRecordError(
        f"{type(target).__name__} {getattr(target, 'id', None)} is append-only and cannot be modified"
    )
