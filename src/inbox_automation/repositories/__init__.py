"""Repository layer for database operations."""

from inbox_automation.repositories.message_analysis import AnalysisRepository
from inbox_automation.repositories.queued_operation import OperationRepository

__all__ = [
    "AnalysisRepository",
    "OperationRepository",
]
