"""Process-wide container wiring the automation components.

Every component is built once from its collaborators and passed by
reference. Background tasks look the container up through ``get_pipeline``
after the host process registers it with ``configure_pipeline``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from inbox_automation.core.config import AutomationSettings, get_settings
from inbox_automation.exceptions import PipelineNotConfiguredError
from inbox_automation.services.analysis_orchestrator import AnalysisOrchestrator
from inbox_automation.services.automation_executor import AutomationExecutor
from inbox_automation.services.automation_gate import AutomationGate
from inbox_automation.services.cron_scheduler import CronScheduler
from inbox_automation.services.event_sink import AutomationEventSink
from inbox_automation.services.notification_batcher import NotificationBatcher
from inbox_automation.services.offline_queue import OfflineOperationQueue, build_default_registry

if TYPE_CHECKING:
    from inbox_automation.protocols import (
        AIInference,
        AnalysisStore,
        EventRecorder,
        MailActions,
        MessageActions,
        MessageStore,
        NotificationPreferencesStore,
        OperationStore,
        PolicyStore,
        PushGateway,
        ReplyLog,
        UserDirectory,
    )

logger = structlog.get_logger(__name__)

_pipeline: AutomationPipeline | None = None


@dataclass
class AutomationPipeline:
    """The wired set of automation components."""

    settings: AutomationSettings
    orchestrator: AnalysisOrchestrator
    gate: AutomationGate
    executor: AutomationExecutor
    queue: OfflineOperationQueue
    batcher: NotificationBatcher
    scheduler: CronScheduler
    event_sink: AutomationEventSink | None = None

    @classmethod
    def build(
        cls,
        *,
        message_store: MessageStore,
        analysis_store: AnalysisStore,
        policy_store: PolicyStore,
        preferences_store: NotificationPreferencesStore,
        user_directory: UserDirectory,
        ai: AIInference,
        mail: MailActions,
        message_actions: MessageActions,
        push: PushGateway,
        reply_log: ReplyLog,
        operation_store: OperationStore,
        event_recorder: EventRecorder | None = None,
        settings: AutomationSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> AutomationPipeline:
        """Construct every component from its collaborators."""
        settings = settings or get_settings()

        event_sink = None
        if event_recorder is not None:
            event_sink = AutomationEventSink(event_recorder, max_buffer=settings.event_buffer_size)

        orchestrator = AnalysisOrchestrator(
            message_store, analysis_store, ai, settings=settings, event_sink=event_sink
        )
        executor = AutomationExecutor(
            mail, reply_log, orchestrator=orchestrator, event_sink=event_sink
        )
        queue = OfflineOperationQueue(
            operation_store,
            build_default_registry(message_actions, mail),
            stale_after_seconds=settings.stale_processing_seconds,
        )
        batcher = NotificationBatcher(
            push,
            preferences_store,
            window_seconds=settings.batch_window_seconds,
            min_batch_size=settings.min_batch_size,
            max_body_length=settings.max_body_length,
            clock=clock,
        )
        scheduler = CronScheduler(
            user_directory,
            policy_store,
            message_store,
            orchestrator,
            executor,
            batcher,
            queue,
            settings=settings,
            clock=clock,
        )
        return cls(
            settings=settings,
            orchestrator=orchestrator,
            gate=AutomationGate(),
            executor=executor,
            queue=queue,
            batcher=batcher,
            scheduler=scheduler,
            event_sink=event_sink,
        )

    async def start(self, run_scheduler: bool = False) -> None:
        """Start background workers on the running loop."""
        if self.event_sink is not None:
            await self.event_sink.start()
        if run_scheduler:
            await self.scheduler.start()
        await logger.ainfo("automation_pipeline_started", scheduler=run_scheduler)

    async def shutdown(self) -> None:
        """Stop the scheduler, flush pending batches, and drain events."""
        await self.scheduler.stop()
        await self.batcher.flush_all()
        if self.event_sink is not None:
            await self.event_sink.stop(drain=True)
        await logger.ainfo("automation_pipeline_stopped")


def configure_pipeline(pipeline: AutomationPipeline) -> AutomationPipeline:
    """Register the process-wide pipeline."""
    global _pipeline
    _pipeline = pipeline
    return pipeline


def get_pipeline() -> AutomationPipeline:
    """Return the registered pipeline.

    Raises:
        PipelineNotConfiguredError: If ``configure_pipeline`` was never called.
    """
    if _pipeline is None:
        raise PipelineNotConfiguredError(
            "Automation pipeline is not configured; call configure_pipeline() at startup"
        )
    return _pipeline


def reset_pipeline() -> None:
    """Forget the registered pipeline (tests and shutdown)."""
    global _pipeline
    _pipeline = None
