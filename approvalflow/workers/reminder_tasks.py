"""Celery tasks for deadline reminders.

Provides periodic processing for:
- Reminder scans over pending assignments (beat schedule)
"""

from datetime import datetime
from typing import Optional, Dict, Any
import logging

from celery import Celery, shared_task

from approvalflow.core.config import get_settings
from approvalflow.core.logger import configure_from_settings
from approvalflow.db.session import SessionLocal
from approvalflow.services.reminders import ReminderScanner

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'approvalflow',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_routes={
        'approvalflow.workers.reminder_tasks.scan_reminders': {'queue': 'reminders'},
    },
    task_default_queue='default',
    beat_schedule={
        'scan-approval-reminders': {
            'task': 'approvalflow.workers.reminder_tasks.scan_reminders',
            'schedule': float(settings.reminder_interval_seconds),
        },
    },
)


@celery_app.on_after_configure.connect
def _setup_worker_logging(sender, **kwargs):
    configure_from_settings(settings)


@shared_task(bind=True, max_retries=3, default_retry_delay=60, name='approvalflow.workers.reminder_tasks.scan_reminders')
def scan_reminders(self, now: Optional[str] = None) -> Dict[str, Any]:
    """
    Emit reminders for assignments due within the reminder window.

    Args:
        now: Optional ISO-8601 timestamp to scan at; naive values are UTC

    Returns:
        Result dictionary with the number of reminders sent
    """
    db = SessionLocal()
    try:
        scan_time = datetime.fromisoformat(now) if now else None
        sent = ReminderScanner(db).scan(now=scan_time)
        return {"status": "completed", "reminders_sent": sent}
    except Exception as e:
        logger.exception("Reminder scan failed")
        db.rollback()
        raise self.retry(exc=e)
    finally:
        db.close()
