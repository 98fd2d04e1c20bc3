"""Best-effort audit trail of rejected attempts."""
import logging
from typing import Dict, List, Optional

from campus_attendance import db
from campus_attendance.models.attendance import FailedAttempt

logger = logging.getLogger(__name__)

class FailedAttemptService:
    """Writes never raise: an audit failure must not hide the real rejection."""

    @staticmethod
    def log_attempt(
        error_type: str,
        error_message: str,
        student_id: Optional[int] = None,
        session_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        device_info: Optional[str] = None
    ) -> bool:
        """Append one audit row in its own commit. Returns whether it was stored."""
        try:
            db.session.add(FailedAttempt(
                error_type=error_type,
                error_message=error_message,
                student_id=student_id,
                session_id=session_id,
                ip_address=(ip_address or 'Unknown')[:64],
                device_info=(device_info or 'Unknown')[:512]
            ))
            db.session.commit()
            return True
        except Exception:
            db.session.rollback()
            logger.exception("Failed to log failed attempt %s", error_type)
            return False

    @staticmethod
    def list_attempts(
        error_type: Optional[str] = None,
        student_id: Optional[int] = None,
        session_id: Optional[int] = None,
        limit: int = 100
    ) -> List[Dict]:
        """Most recent attempts first, optionally filtered."""
        query = FailedAttempt.query
        if error_type:
            query = query.filter_by(error_type=error_type)
        if student_id:
            query = query.filter_by(student_id=student_id)
        if session_id:
            query = query.filter_by(session_id=session_id)

        attempts = query.order_by(FailedAttempt.attempted_at.desc(), FailedAttempt.id.desc()) \
            .limit(limit).all()
        return [attempt.to_dict() for attempt in attempts]
