"""Transactional outbox: side effects queued with the change that caused them."""
import logging
from typing import Callable, Dict

from flask import current_app

from campus_attendance import db
from campus_attendance.models.outbox import NotificationOutbox, OutboxStatus
from campus_attendance.utils.helpers import utcnow

logger = logging.getLogger(__name__)

ABSENCE_CHECK = 'ABSENCE_CHECK'
LOGIN_NOTIFICATION = 'LOGIN_NOTIFICATION'

def _absence_check(payload: Dict) -> None:
    from campus_attendance.services.absence_warning_service import AbsenceWarningService
    AbsenceWarningService.check_and_send_warning(payload['student_id'], payload['material_id'])

def _login_notification(payload: Dict) -> None:
    from campus_attendance.models.accounts import Student
    from campus_attendance.services.email_service import EmailService
    student = db.session.get(Student, payload['student_id'])
    if student is None:
        return
    if not EmailService.send_login_notification(
            student.email, student.name, payload.get('login_time'), payload.get('ip_address')):
        raise RuntimeError(f"Login notification to {student.email} was not sent")

# event_type -> handler(payload); handlers must tolerate being run more than once
HANDLERS: Dict[str, Callable[[Dict], None]] = {
    ABSENCE_CHECK: _absence_check,
    LOGIN_NOTIFICATION: _login_notification,
}

class OutboxService:
    """Enqueue events inside a transaction, drain them from a background job."""

    @staticmethod
    def enqueue(event_type: str, payload: Dict) -> NotificationOutbox:
        """Add an event to the current transaction. The caller commits."""
        event = NotificationOutbox(event_type=event_type, payload=payload)
        db.session.add(event)
        return event

    @staticmethod
    def process_pending(limit: int = None) -> Dict[str, int]:
        """
        Dispatch pending events oldest first.
        Failures are recorded on the row and logged, never raised.
        """
        limit = limit or current_app.config.get('OUTBOX_BATCH_SIZE', 50)
        max_attempts = current_app.config.get('OUTBOX_MAX_ATTEMPTS', 5)
        stats = {'processed': 0, 'retrying': 0, 'failed': 0}

        events = NotificationOutbox.query.filter_by(status=OutboxStatus.PENDING) \
            .order_by(NotificationOutbox.created_at.asc(), NotificationOutbox.id.asc()) \
            .limit(limit).all()

        for event in events:
            handler = HANDLERS.get(event.event_type)
            try:
                if handler is None:
                    raise LookupError(f"No handler for event type {event.event_type}")
                handler(event.payload or {})
                event.status = OutboxStatus.DONE
                event.processed_at = utcnow()
                event.last_error = None
                db.session.commit()
                stats['processed'] += 1
            except Exception as e:
                db.session.rollback()
                event.attempts = (event.attempts or 0) + 1
                event.last_error = str(e)[:2000]
                if event.attempts >= max_attempts:
                    event.status = OutboxStatus.FAILED
                    stats['failed'] += 1
                else:
                    stats['retrying'] += 1
                db.session.commit()
                logger.error("Outbox event %s (%s) failed, attempt %s: %s",
                             event.id, event.event_type, event.attempts, e)

        if events:
            logger.info("Outbox drained: %s", stats)
        return stats
