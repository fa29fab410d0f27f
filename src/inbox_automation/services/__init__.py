"""Service layer for the automation pipeline."""

from inbox_automation.services.analysis_orchestrator import (
    AnalysisOrchestrator,
    calculate_priority_level,
)
from inbox_automation.services.automation_executor import AutomationExecutor, ExecutionOutcome
from inbox_automation.services.automation_gate import (
    AutomationDecision,
    AutomationGate,
    evaluate_auto_delete,
    evaluate_auto_reply,
)
from inbox_automation.services.cron_scheduler import CronScheduler, RunStats
from inbox_automation.services.event_sink import AutomationEvent, AutomationEventSink
from inbox_automation.services.notification_batcher import (
    BatchKey,
    DeliveryDecision,
    NotificationBatch,
    NotificationBatcher,
)
from inbox_automation.services.offline_queue import (
    OfflineOperationQueue,
    OperationHandlerRegistry,
    build_default_registry,
)

__all__ = [
    "AnalysisOrchestrator",
    "AutomationDecision",
    "AutomationEvent",
    "AutomationEventSink",
    "AutomationExecutor",
    "AutomationGate",
    "BatchKey",
    "CronScheduler",
    "DeliveryDecision",
    "ExecutionOutcome",
    "NotificationBatch",
    "NotificationBatcher",
    "OfflineOperationQueue",
    "OperationHandlerRegistry",
    "RunStats",
    "build_default_registry",
    "calculate_priority_level",
    "evaluate_auto_delete",
    "evaluate_auto_reply",
]
