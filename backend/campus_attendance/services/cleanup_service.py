"""Periodic removal of QR tokens that can no longer be scanned."""
import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import and_, or_

from campus_attendance import db
from campus_attendance.models.session import QRToken
from campus_attendance.utils.helpers import utcnow

logger = logging.getLogger(__name__)

def cleanup_qr_tokens(now: datetime = None) -> int:
    """Delete expired tokens and tokens used longer ago than the retention window."""
    now = now or utcnow()
    retention = timedelta(hours=current_app.config.get('QR_TOKEN_RETENTION_HOURS', 24))

    deleted = QRToken.query.filter(or_(
        QRToken.expires_at < now,
        and_(QRToken.used_at.isnot(None), QRToken.used_at < now - retention)
    )).delete(synchronize_session=False)
    db.session.commit()

    logger.info("Cleanup job: deleted %s expired/used QR tokens", deleted)
    return deleted
