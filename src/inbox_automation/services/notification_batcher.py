"""Push notification batching with quiet hours and urgent bypass.

Near-simultaneous notifications for the same user and sender (or category)
are grouped into one push after a fixed window. High-priority messages and
urgent-keyword matches skip batching and quiet hours. Everything else is
dropped from push while quiet hours are active; the message stays visible
in-app.

Pending batches live only in process memory: a restart loses them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from inbox_automation.core.time_windows import is_local_time_within
from inbox_automation.schemas.analysis import PriorityLevel
from inbox_automation.schemas.notification import NotificationPayload

if TYPE_CHECKING:
    from inbox_automation.protocols import NotificationPreferencesStore, PushGateway
    from inbox_automation.schemas.message import Message
    from inbox_automation.schemas.policy import NotificationPreferences

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 10 * 60
DEFAULT_MIN_BATCH_SIZE = 2
DEFAULT_MAX_BODY_LENGTH = 200
NO_SUBJECT = "(No subject)"


class DeliveryDecision(str, Enum):
    """How a notification candidate is handled."""

    IMMEDIATE = "immediate"
    SUPPRESSED = "suppressed"
    BATCHED = "batched"


class BatchKind(str, Enum):
    """What groups the messages of a batch."""

    SENDER = "sender"
    CATEGORY = "category"


@dataclass(frozen=True)
class BatchKey:
    """Grouping key: one batch per user and category, or user and sender."""

    user_id: str
    kind: BatchKind
    value: str

    @classmethod
    def for_message(cls, user_id: str, message: Message) -> BatchKey:
        if message.category_id:
            return cls(user_id, BatchKind.CATEGORY, message.category_id)
        return cls(user_id, BatchKind.SENDER, message.sender)

    @property
    def batch_id(self) -> str:
        return f"{self.user_id}:{self.kind.value}:{self.value or 'unknown'}"


@dataclass
class PendingNotification:
    """A message waiting in a batch."""

    message: Message
    priority: PriorityLevel
    queued_at: datetime


@dataclass
class NotificationBatch:
    """Messages accumulated under one key during a window."""

    key: BatchKey
    first_seen_at: datetime
    messages: list[PendingNotification] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None


def _truncate_body(body: str, limit: int) -> str:
    if len(body) <= limit:
        return body
    return body[: limit - 3] + "..."


def build_message_payload(message: Message, priority: PriorityLevel) -> NotificationPayload:
    """Payload for a single message notification."""
    return NotificationPayload(
        title=message.sender,
        body=message.subject or NO_SUBJECT,
        data={
            "message_id": message.id,
            "account_id": message.account_id,
            "category_id": message.category_id,
            "priority": priority.value,
            "preview": message.subject or message.content[:100],
            "timestamp": message.timestamp.isoformat(),
        },
    )


def build_batch_payload(
    batch: NotificationBatch, max_body_length: int = DEFAULT_MAX_BODY_LENGTH
) -> NotificationPayload:
    """Summarized payload for a batch of two or more messages."""
    count = len(batch.messages)
    messages = [pending.message for pending in batch.messages]

    if batch.key.kind == BatchKind.SENDER and batch.key.value:
        title = f"{count} new messages from {batch.key.value}"
        body = ", ".join(m.subject or NO_SUBJECT for m in messages)
    elif batch.key.kind == BatchKind.CATEGORY and batch.key.value:
        title = f"{count} new messages in {batch.key.value}"
        body = "\n".join(f"{m.sender}: {m.subject or NO_SUBJECT}" for m in messages)
    else:
        title = f"{count} new messages"
        body = "\n".join(f"{m.sender}: {m.subject or NO_SUBJECT}" for m in messages)

    return NotificationPayload(
        title=title,
        body=_truncate_body(body, max_body_length),
        badge=count,
        data={
            "batch_size": count,
            "message_ids": [m.id for m in messages],
            "category": batch.key.value if batch.key.kind == BatchKind.CATEGORY else None,
            "sender": batch.key.value if batch.key.kind == BatchKind.SENDER else None,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


def matches_urgent_keyword(message: Message, preferences: NotificationPreferences) -> bool:
    """Check the subject and body against the user's urgent keywords."""
    keywords = preferences.urgent_keywords
    if not keywords:
        return False
    text = f"{message.subject} {message.content}".lower()
    return any(keyword in text for keyword in keywords)


def is_quiet_hours(preferences: NotificationPreferences, now: datetime) -> bool:
    """Check whether the user's quiet hours are active at ``now``."""
    quiet = preferences.quiet_hours
    if not quiet.enabled:
        return False
    return is_local_time_within(now, quiet.timezone, quiet.start, quiet.end)


def decide_delivery(
    message: Message,
    priority: PriorityLevel,
    preferences: NotificationPreferences,
    now: datetime,
) -> tuple[DeliveryDecision, str]:
    """Decide between immediate send, suppression, and batching."""
    if priority == PriorityLevel.HIGH:
        return DeliveryDecision.IMMEDIATE, "high priority bypasses batching"
    if matches_urgent_keyword(message, preferences):
        return DeliveryDecision.IMMEDIATE, "urgent keyword bypasses batching"
    if is_quiet_hours(preferences, now):
        return DeliveryDecision.SUPPRESSED, "quiet hours active"
    return DeliveryDecision.BATCHED, "queued for batch window"


class NotificationBatcher:
    """Groups notification candidates into windowed push notifications.

    Each batch is flushed exactly once, by its timer or by ``flush``, after
    which its key is removed and a later message starts a fresh batch.

    Example:
        batcher = NotificationBatcher(push_gateway, preferences_store)
        await batcher.submit(user_id, message, PriorityLevel.MEDIUM)
        ...
        await batcher.flush_all()  # on shutdown
    """

    def __init__(
        self,
        push: PushGateway,
        preferences_store: NotificationPreferencesStore,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        min_batch_size: int = DEFAULT_MIN_BATCH_SIZE,
        max_body_length: int = DEFAULT_MAX_BODY_LENGTH,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the batcher.

        Args:
            push: Push delivery gateway.
            preferences_store: Source of quiet hours and urgent keywords.
            window_seconds: Time a batch accumulates before flushing.
            min_batch_size: Batches smaller than this are sent as a single message.
            max_body_length: Cap on batched notification bodies.
            clock: Returns the current aware datetime (for quiet hours).
        """
        self.push = push
        self.preferences_store = preferences_store
        self.window_seconds = window_seconds
        self.min_batch_size = min_batch_size
        self.max_body_length = max_body_length
        self._clock = clock or (lambda: datetime.now(UTC))
        self._batches: dict[BatchKey, NotificationBatch] = {}
        self._flush_tasks: set[asyncio.Task[bool]] = set()

    async def submit(
        self,
        user_id: str,
        message: Message,
        priority: PriorityLevel = PriorityLevel.MEDIUM,
    ) -> DeliveryDecision | None:
        """Route a notification candidate. Never raises.

        Returns:
            The delivery decision, or None if preferences could not be loaded.
        """
        try:
            preferences = await self.preferences_store.get_notification_preferences(user_id)
        except Exception as e:
            await logger.aerror(
                "notification_preferences_unavailable", user_id=user_id, error=str(e)
            )
            return None

        decision, reason = decide_delivery(message, priority, preferences, self._clock())

        if decision == DeliveryDecision.IMMEDIATE:
            await logger.ainfo(
                "notification_bypass", user_id=user_id, message_id=message.id, reason=reason
            )
            await self._send(user_id, build_message_payload(message, priority), message_count=1)
        elif decision == DeliveryDecision.SUPPRESSED:
            await logger.ainfo(
                "notification_suppressed", user_id=user_id, message_id=message.id, reason=reason
            )
        else:
            self._add_to_batch(user_id, message, priority)
        return decision

    def _add_to_batch(self, user_id: str, message: Message, priority: PriorityLevel) -> None:
        key = BatchKey.for_message(user_id, message)
        now = self._clock()
        batch = self._batches.get(key)

        if batch is None:
            batch = NotificationBatch(key=key, first_seen_at=now)
            loop = asyncio.get_running_loop()
            batch.timer = loop.call_later(self.window_seconds, self._on_timer, key)
            self._batches[key] = batch

        batch.messages.append(
            PendingNotification(message=message, priority=priority, queued_at=now)
        )
        logger.info(
            "notification_batched",
            batch_id=key.batch_id,
            message_id=message.id,
            batch_size=len(batch.messages),
        )

    def _on_timer(self, key: BatchKey) -> None:
        task = asyncio.get_running_loop().create_task(self.flush(key))
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self, key: BatchKey) -> bool:
        """Send and remove a batch now.

        Returns:
            False if no batch exists for the key (already flushed or never created).
        """
        batch = self._batches.pop(key, None)
        if batch is None:
            return False
        if batch.timer is not None:
            batch.timer.cancel()
        if not batch.messages:
            return False

        if len(batch.messages) < self.min_batch_size:
            pending = batch.messages[0]
            payload = build_message_payload(pending.message, pending.priority)
        else:
            payload = build_batch_payload(batch, self.max_body_length)

        await self._send(key.user_id, payload, message_count=len(batch.messages))
        return True

    async def flush_all(self) -> int:
        """Flush every pending batch (e.g. on shutdown).

        Returns:
            Number of batches flushed.
        """
        flushed = 0
        for key in list(self._batches):
            if await self.flush(key):
                flushed += 1
        await logger.ainfo("notification_batches_flushed", count=flushed)
        return flushed

    async def flush_expired(self, now: datetime | None = None) -> int:
        """Flush batches whose window has elapsed.

        Covers drivers whose event loop does not run between ticks, where
        batch timers cannot fire on time. Batches still inside their window
        stay open.

        Args:
            now: Reference time; defaults to the batcher clock.

        Returns:
            Number of batches flushed.
        """
        now = now or self._clock()
        expired = [
            key
            for key, batch in self._batches.items()
            if (now - batch.first_seen_at).total_seconds() >= self.window_seconds
        ]
        flushed = 0
        for key in expired:
            if await self.flush(key):
                flushed += 1
        if flushed:
            await logger.ainfo("notification_batches_expired", count=flushed)
        return flushed

    async def _send(self, user_id: str, payload: NotificationPayload, message_count: int) -> None:
        try:
            result = await self.push.send_to_user(user_id, payload)
        except Exception as e:
            await logger.aerror(
                "notification_send_failed",
                user_id=user_id,
                message_count=message_count,
                error=str(e),
            )
            return
        await logger.ainfo(
            "notification_sent",
            user_id=user_id,
            message_count=message_count,
            sent=result.sent,
            failed=result.failed,
        )

    def get_batch_stats(self) -> dict[str, Any]:
        """Snapshot of pending batches."""
        now = self._clock()
        batches = [
            {
                "batch_id": key.batch_id,
                "message_count": len(batch.messages),
                "age_seconds": (now - batch.first_seen_at).total_seconds(),
            }
            for key, batch in self._batches.items()
        ]
        return {
            "active_batches": len(batches),
            "total_pending_messages": sum(b["message_count"] for b in batches),
            "batches": batches,
        }

    def has_batch(self, key: BatchKey) -> bool:
        """Whether a batch is pending for the key."""
        return key in self._batches
