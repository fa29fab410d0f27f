"""Celery application configuration.

This module configures Celery for the periodic automation tick and for
on-demand offline queue processing. Uses Redis as the broker and result
backend.
"""

from __future__ import annotations

from typing import Any

import structlog
from celery import Celery  # type: ignore[import-untyped]
from celery.signals import worker_process_init  # type: ignore[import-untyped]
from celery.utils.imports import symbol_by_name  # type: ignore[import-untyped]

from inbox_automation.core.config import get_settings
from inbox_automation.core.logging import configure_logging
from inbox_automation.pipeline import configure_pipeline

logger = structlog.get_logger(__name__)

settings = get_settings()

celery_app = Celery(
    "inbox_automation",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["inbox_automation.tasks.automation_tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Result expiration (24 hours)
    result_expires=86400,
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_concurrency=4,
    worker_prefetch_multiplier=1,
    # Periodic automation tick
    beat_schedule={
        "automation-tick": {
            "task": "automation.tick",
            "schedule": float(settings.cron_interval_seconds),
            "options": {"expires": float(settings.cron_interval_seconds)},
        },
    },
)


@worker_process_init.connect  # type: ignore[untyped-decorator]
def load_pipeline(**_: Any) -> None:
    """Configure logging, then build and register the pipeline in each worker process."""
    worker_settings = get_settings()
    configure_logging(log_level=worker_settings.log_level, json_format=worker_settings.log_json)

    factory_path = worker_settings.pipeline_factory
    if not factory_path:
        logger.warning("pipeline_factory_not_set")
        return
    factory = symbol_by_name(factory_path)
    configure_pipeline(factory())
    logger.info("pipeline_loaded", factory=factory_path)
