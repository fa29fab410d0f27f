"""Pydantic schemas for the automation pipeline."""

from inbox_automation.schemas.analysis import (
    AnalysisResult,
    AnalysisSource,
    PriorityLevel,
    ReplyDraft,
    ResponseVerdict,
    Sentiment,
    SentimentVerdict,
    SpamVerdict,
)
from inbox_automation.schemas.message import Message
from inbox_automation.schemas.notification import NotificationPayload, PushResult
from inbox_automation.schemas.operation import (
    ArchivePayload,
    CategorizePayload,
    DeletePayload,
    MarkReadPayload,
    MarkUnreadPayload,
    OperationCreate,
    OperationPayload,
    OperationStatus,
    OperationType,
    QueuedOperation,
    QueueRunResult,
    QueueStats,
    SendReplyPayload,
    UnarchivePayload,
)
from inbox_automation.schemas.policy import (
    AutomationPolicy,
    NotificationPreferences,
    QuietHours,
    UrgentKeywordRule,
)

__all__ = [
    "AnalysisResult",
    "AnalysisSource",
    "ArchivePayload",
    "AutomationPolicy",
    "CategorizePayload",
    "DeletePayload",
    "MarkReadPayload",
    "MarkUnreadPayload",
    "Message",
    "NotificationPayload",
    "NotificationPreferences",
    "OperationCreate",
    "OperationPayload",
    "OperationStatus",
    "OperationType",
    "PriorityLevel",
    "PushResult",
    "QueueRunResult",
    "QueueStats",
    "QueuedOperation",
    "QuietHours",
    "ReplyDraft",
    "ResponseVerdict",
    "SendReplyPayload",
    "Sentiment",
    "SentimentVerdict",
    "SpamVerdict",
    "UnarchivePayload",
    "UrgentKeywordRule",
]
