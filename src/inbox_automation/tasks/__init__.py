"""Celery tasks module for background processing.

This module provides:
- Celery app configuration with the automation beat schedule
- The automation tick task
- Offline queue processing tasks
"""

from inbox_automation.tasks.automation_tasks import (
    process_user_queue,
    retry_failed_operations,
    run_automation_tick,
)
from inbox_automation.tasks.celery_app import celery_app

__all__ = [
    "celery_app",
    "process_user_queue",
    "retry_failed_operations",
    "run_automation_tick",
]
