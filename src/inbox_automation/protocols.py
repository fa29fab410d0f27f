"""Collaborator interfaces consumed by the pipeline.

Implementations live outside this package (persistence, provider APIs, push
delivery) except where an adapter is shipped alongside, such as the Ollama
client and the SQLAlchemy repositories.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from inbox_automation.schemas.analysis import AnalysisResult
from inbox_automation.schemas.message import Message
from inbox_automation.schemas.notification import NotificationPayload, PushResult
from inbox_automation.schemas.operation import QueuedOperation, QueueStats
from inbox_automation.schemas.policy import AutomationPolicy, NotificationPreferences


class MessageStore(Protocol):
    """Read access to synced messages."""

    async def get_unanalyzed(self, user_id: str) -> Sequence[Message]: ...

    async def get_by_id(self, message_id: str) -> Message | None: ...


class AnalysisStore(Protocol):
    """Storage for analysis results, one per message."""

    async def upsert(self, message_id: str, result: AnalysisResult) -> AnalysisResult: ...

    async def get_by_message_id(self, message_id: str) -> AnalysisResult | None: ...


class PolicyStore(Protocol):
    """Read access to per-user automation policies."""

    async def get_automation_policy(self, user_id: str) -> AutomationPolicy | None: ...


class NotificationPreferencesStore(Protocol):
    """Read access to per-user notification preferences."""

    async def get_notification_preferences(self, user_id: str) -> NotificationPreferences: ...


class UserDirectory(Protocol):
    """Enumerates users the scheduler should process."""

    async def list_user_ids(self) -> Sequence[str]: ...


@runtime_checkable
class AIInference(Protocol):
    """Text completion backend with an availability flag."""

    @property
    def available(self) -> bool: ...

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str: ...


class MailActions(Protocol):
    """Provider-side mailbox mutations."""

    async def trash(self, account_id: str, external_id: str) -> bool: ...

    async def untrash(self, account_id: str, external_id: str) -> bool: ...

    async def send_reply(self, message_id: str, content: str, reply_all: bool = False) -> bool: ...


class MessageActions(Protocol):
    """Message state updates used by offline operation handlers.

    Each method returns False when the target message does not exist.
    """

    async def set_read(self, user_id: str, message_id: str, is_read: bool) -> bool: ...

    async def set_archived(self, user_id: str, message_id: str, archived: bool) -> bool: ...

    async def set_category(
        self, user_id: str, message_id: str, category_id: str | None
    ) -> bool: ...

    async def delete(self, user_id: str, message_id: str) -> bool: ...


class PushGateway(Protocol):
    """Push notification delivery to all of a user's devices."""

    async def send_to_user(self, user_id: str, payload: NotificationPayload) -> PushResult: ...


class ReplyLog(Protocol):
    """Record of automatic replies, used for the daily rate limit."""

    async def count_since(self, user_id: str, since: datetime) -> int: ...

    async def record(self, user_id: str, message_id: str, sent_at: datetime) -> None: ...


class OperationStore(Protocol):
    """Durable storage for queued offline operations."""

    async def add(self, operation: QueuedOperation) -> QueuedOperation: ...

    async def get(self, operation_id: str) -> QueuedOperation | None: ...

    async def claim(self, operation_id: str) -> QueuedOperation | None:
        """Atomically move a pending or failed operation to processing.

        Records the claim time in ``claimed_at``. Returns None when the
        operation is missing or in any other state.
        """
        ...

    async def save(self, operation: QueuedOperation) -> None: ...

    async def list_pending(self, user_id: str) -> Sequence[QueuedOperation]:
        """Pending operations ordered by priority desc, then created_at asc."""
        ...

    async def count_by_status(self, user_id: str) -> QueueStats: ...

    async def reset_failed(self, user_id: str, stale_before: datetime | None = None) -> int:
        """Reopen failed operations with a fresh retry budget.

        When ``stale_before`` is given, operations still processing that were
        claimed before it are reopened too.
        """
        ...

    async def delete_completed(self, user_id: str) -> int: ...


class EventRecorder(Protocol):
    """Destination for automation events (analytics, audit)."""

    async def record(self, event_type: str, user_id: str, data: dict[str, Any]) -> None: ...
