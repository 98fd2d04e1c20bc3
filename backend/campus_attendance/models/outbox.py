"""Transactional outbox for side effects that run after the request."""
import enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel

class OutboxStatus(enum.Enum):
    PENDING = 'PENDING'
    DONE = 'DONE'
    FAILED = 'FAILED'

class NotificationOutbox(BaseModel):
    """Queued event, written in the same transaction as the change that caused it."""

    __tablename__ = 'notification_outbox'

    event_type = db.Column(db.String(50), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.Enum(OutboxStatus), default=OutboxStatus.PENDING, nullable=False, index=True)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
