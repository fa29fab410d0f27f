"""Background tasks for the automation pipeline.

This module defines Celery tasks for:
- The periodic automation tick (analysis, automation, queue draining)
- On-demand processing and operator retry of a user's offline queue
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from celery import Task  # type: ignore[import-untyped]

from inbox_automation.pipeline import get_pipeline
from inbox_automation.tasks.celery_app import celery_app

logger = structlog.get_logger(__name__)

# One loop per worker process; pipeline components bind to it.
_loop: asyncio.AbstractEventLoop | None = None


class AutomationTask(Task):  # type: ignore[misc]
    """Base class for automation tasks with failure logging.

    Tasks are not auto-retried: the next tick or queue drain picks up
    whatever was left.
    """

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        logger.error("automation_task_failed", task=self.name, task_id=task_id, error=str(exc))


def _run_async(coro: Any) -> Any:
    """Run an async coroutine on this process's event loop."""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


@celery_app.task(bind=True, base=AutomationTask, name="automation.tick")  # type: ignore[untyped-decorator]
def run_automation_tick(self: Task) -> dict[str, Any]:
    """Run one automation tick over all users.

    Returns:
        Dict with run statistics.
    """
    result: dict[str, Any] = _run_async(_run_tick_async(self.request.id))
    return result


async def _run_tick_async(task_id: str | None) -> dict[str, Any]:
    """Async implementation of the automation tick.

    The loop only runs while a task executes, so batch timers may fire late.
    Batches whose window has elapsed are swept after the run; younger ones
    stay open for a later tick.
    """
    pipeline = get_pipeline()
    await logger.ainfo("automation_tick_task_started", task_id=task_id)

    if pipeline.event_sink is not None:
        await pipeline.event_sink.start()
    try:
        stats = await pipeline.scheduler.tick()
        await pipeline.batcher.flush_expired()
    finally:
        if pipeline.event_sink is not None:
            await pipeline.event_sink.stop(drain=True)

    return stats.to_dict()


@celery_app.task(bind=True, base=AutomationTask, name="offline.process_user_queue")  # type: ignore[untyped-decorator]
def process_user_queue(self: Task, user_id: str) -> dict[str, Any]:
    """Drain one user's offline operation queue now.

    Args:
        user_id: Owner of the queue.

    Returns:
        Dict with processed, succeeded, and failed counts.
    """
    result: dict[str, Any] = _run_async(_process_user_queue_async(user_id, retry_failed=False))
    return result


@celery_app.task(bind=True, base=AutomationTask, name="offline.retry_failed")  # type: ignore[untyped-decorator]
def retry_failed_operations(self: Task, user_id: str) -> dict[str, Any]:
    """Reopen a user's failed operations and drain the queue.

    Args:
        user_id: Owner of the queue.

    Returns:
        Dict with the reset count and the drain counts.
    """
    result: dict[str, Any] = _run_async(_process_user_queue_async(user_id, retry_failed=True))
    return result


async def _process_user_queue_async(user_id: str, retry_failed: bool) -> dict[str, Any]:
    """Async implementation of queue draining."""
    queue = get_pipeline().queue

    reset = 0
    if retry_failed:
        reset = await queue.retry_failed(user_id)

    run = await queue.process_user_queue(user_id)
    data: dict[str, Any] = run.model_dump()
    if retry_failed:
        data["reset"] = reset
    return data
