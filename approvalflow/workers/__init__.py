"""Celery workers for the approval engine."""

from approvalflow.workers.reminder_tasks import celery_app, scan_reminders

__all__ = [
    "celery_app",
    "scan_reminders",
]
