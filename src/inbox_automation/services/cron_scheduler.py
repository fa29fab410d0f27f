"""Periodic driver for analysis, automation, and queue draining.

Each tick walks every user: analyze unanalyzed messages, apply the user's
automation policy, hand surviving messages to the notification batcher, and
drain the user's offline operation queue. Ticks never overlap and never raise.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from inbox_automation.core.config import AutomationSettings

if TYPE_CHECKING:
    from inbox_automation.protocols import MessageStore, PolicyStore, UserDirectory
    from inbox_automation.services.analysis_orchestrator import AnalysisOrchestrator
    from inbox_automation.services.automation_executor import AutomationExecutor
    from inbox_automation.services.notification_batcher import NotificationBatcher
    from inbox_automation.services.offline_queue import OfflineOperationQueue

logger = structlog.get_logger(__name__)

ALREADY_PROCESSING = "Processing already in progress"


@dataclass
class RunStats:
    """Aggregate counters for one tick."""

    users_processed: int = 0
    analyzed: int = 0
    spam_detected: int = 0
    spam_deleted: int = 0
    replies_sent: int = 0
    notifications_submitted: int = 0
    operations_processed: int = 0
    operations_failed: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["duration_seconds"] = self.duration_seconds
        return data


class CronScheduler:
    """Runs the automation pipeline for all users on a fixed interval.

    Overlapping ticks are dropped, not queued: the processing flag is checked
    and set with no await in between, so it is atomic on the event loop. The
    flag is process-local; running several scheduler processes needs an
    external lease.

    Example:
        scheduler = CronScheduler(users, policies, messages, orchestrator,
                                  executor, batcher, queue)
        stats = await scheduler.tick()
        await scheduler.start()  # periodic
    """

    def __init__(
        self,
        user_directory: UserDirectory,
        policy_store: PolicyStore,
        message_store: MessageStore,
        orchestrator: AnalysisOrchestrator,
        executor: AutomationExecutor,
        batcher: NotificationBatcher,
        queue: OfflineOperationQueue,
        settings: AutomationSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            user_directory: Users to process each tick.
            policy_store: Per-user automation policies.
            message_store: Source of unanalyzed messages.
            orchestrator: Message analysis.
            executor: Auto-delete and auto-reply execution.
            batcher: Notification routing for surviving messages.
            queue: Offline operation queue drained per user.
            settings: Interval and fan-out limits (defaults from environment).
            clock: Returns the current aware datetime.
        """
        self.user_directory = user_directory
        self.policy_store = policy_store
        self.message_store = message_store
        self.orchestrator = orchestrator
        self.executor = executor
        self.batcher = batcher
        self.queue = queue
        self.settings = settings or AutomationSettings()
        self._clock = clock or (lambda: datetime.now(UTC))

        self._is_processing = False
        self._run_count = 0
        self._last_run: RunStats | None = None
        self._task: asyncio.Task[None] | None = None
        self._interval_seconds = float(self.settings.cron_interval_seconds)

    @property
    def is_processing(self) -> bool:
        """Whether a tick is currently running."""
        return self._is_processing

    @property
    def is_running(self) -> bool:
        """Whether the periodic driver is active."""
        return self._task is not None and not self._task.done()

    async def tick(self) -> RunStats:
        """Run one pass over all users.

        Returns:
            Run statistics. A tick that finds another one in progress returns
            immediately with ``skipped=True`` and does no work.
        """
        if self._is_processing:
            await logger.ainfo("cron_tick_skipped", reason=ALREADY_PROCESSING)
            return RunStats(skipped=True, errors=[ALREADY_PROCESSING])
        self._is_processing = True

        stats = RunStats(started_at=self._clock())
        try:
            user_ids = await self.user_directory.list_user_ids()
            await logger.ainfo("cron_tick_started", users=len(user_ids))

            semaphore = asyncio.Semaphore(self.settings.max_concurrent_users)

            async def run_user(user_id: str) -> None:
                async with semaphore:
                    try:
                        await self._process_user(user_id, stats)
                        stats.users_processed += 1
                    except Exception as e:
                        stats.errors.append(f"User {user_id}: {e}")
                        await logger.aerror("cron_user_failed", user_id=user_id, error=str(e))

            await asyncio.gather(*(run_user(user_id) for user_id in user_ids))
        except Exception as e:
            stats.errors.append(f"Cron run failed: {e}")
            await logger.aerror("cron_tick_failed", error=str(e))
        finally:
            stats.finished_at = self._clock()
            self._run_count += 1
            self._last_run = stats
            self._is_processing = False

        await logger.ainfo(
            "cron_tick_completed",
            users_processed=stats.users_processed,
            analyzed=stats.analyzed,
            spam_detected=stats.spam_detected,
            spam_deleted=stats.spam_deleted,
            replies_sent=stats.replies_sent,
            operations_processed=stats.operations_processed,
            errors=len(stats.errors),
            duration_seconds=stats.duration_seconds,
        )
        return stats

    async def _process_user(self, user_id: str, stats: RunStats) -> None:
        policy = await self.policy_store.get_automation_policy(user_id)
        if policy is None:
            stats.errors.append(f"User {user_id}: no automation policy")
            await logger.awarning("cron_user_without_policy", user_id=user_id)
            return

        messages = await self.message_store.get_unanalyzed(user_id)
        for message in messages:
            try:
                result = await self.orchestrator.analyze_message(message)
            except Exception as e:
                stats.errors.append(f"Analyze {message.id}: {e}")
                await logger.aerror("cron_analysis_failed", message_id=message.id, error=str(e))
                continue

            stats.analyzed += 1
            if result.is_spam:
                stats.spam_detected += 1

            outcome = await self.executor.apply(user_id, policy, message, result, self._clock())
            if outcome.deleted:
                stats.spam_deleted += 1
            if outcome.replied:
                stats.replies_sent += 1
            stats.errors.extend(outcome.errors)

            if not outcome.deleted and not result.is_spam:
                await self.batcher.submit(user_id, message, result.priority_level)
                stats.notifications_submitted += 1

        queue_result = await self.queue.process_user_queue(user_id)
        stats.operations_processed += queue_result.processed
        stats.operations_failed += queue_result.failed

    async def start(self, interval_seconds: float | None = None) -> None:
        """Start ticking every ``interval_seconds`` on the running loop."""
        if self.is_running:
            return
        if interval_seconds is not None:
            self._interval_seconds = interval_seconds
        self._task = asyncio.create_task(self._loop(), name="automation-cron")
        await logger.ainfo("cron_started", interval_seconds=self._interval_seconds)

    async def stop(self) -> None:
        """Stop the periodic driver. A tick in progress is cancelled."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        await logger.ainfo("cron_stopped", run_count=self._run_count)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            await self.tick()

    def get_status(self) -> dict[str, Any]:
        """Report driver state and the last run."""
        return {
            "is_running": self.is_running,
            "is_processing": self._is_processing,
            "interval_seconds": self._interval_seconds,
            "run_count": self._run_count,
            "last_run": self._last_run.to_dict() if self._last_run else None,
        }
