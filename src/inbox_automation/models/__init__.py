"""SQLAlchemy models for inbox-automation."""

from inbox_automation.models.base import Base
from inbox_automation.models.message_analysis import MessageAnalysisRecord
from inbox_automation.models.queued_operation import QueuedOperationRecord

__all__ = [
    "Base",
    "MessageAnalysisRecord",
    "QueuedOperationRecord",
]
