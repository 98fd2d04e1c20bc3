"""Background jobs run by APScheduler inside the web process."""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask

from campus_attendance import db

scheduler = BackgroundScheduler(timezone='UTC')
logger = logging.getLogger(__name__)

def _run_job(app: Flask, label: str, task) -> None:
    """Run a task inside an app context; failures are logged and the job keeps its schedule."""
    with app.app_context():
        try:
            result = task()
            logger.info("Job %s finished: %s", label, result)
        except Exception:
            db.session.rollback()
            logger.exception("Job %s failed", label)
        finally:
            db.session.remove()

def cleanup_tokens_job(app: Flask) -> None:
    from campus_attendance.services.cleanup_service import cleanup_qr_tokens
    _run_job(app, 'cleanup_qr_tokens', cleanup_qr_tokens)

def process_outbox_job(app: Flask) -> None:
    from campus_attendance.services.outbox_service import OutboxService
    _run_job(app, 'process_outbox', OutboxService.process_pending)

def consecutive_absences_job(app: Flask) -> None:
    from campus_attendance.services.absence_warning_service import AbsenceWarningService
    _run_job(app, 'consecutive_absences',
             lambda: len(AbsenceWarningService.check_consecutive_absences()))

def start_scheduler(app: Flask) -> BackgroundScheduler:
    """Register the periodic jobs and start the scheduler once per process."""
    poll_seconds = app.config.get('OUTBOX_POLL_SECONDS', 30)

    scheduler.add_job(cleanup_tokens_job, 'cron', minute=0, args=[app],
                      id='cleanup_qr_tokens', replace_existing=True)
    scheduler.add_job(process_outbox_job, 'interval', seconds=poll_seconds, args=[app],
                      id='process_outbox', replace_existing=True, max_instances=1)
    scheduler.add_job(consecutive_absences_job, 'cron', hour=1, minute=0, args=[app],
                      id='consecutive_absences', replace_existing=True)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")
    return scheduler

def stop_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
