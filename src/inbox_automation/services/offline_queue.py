"""Durable queue of operations issued by clients while offline.

Operations drain only when explicitly asked (by the scheduler tick or a
"process my queue now" request); nothing is retried by the passage of time.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from inbox_automation.exceptions import (
    OperationNotFoundError,
    PermanentOperationError,
    TransientOperationError,
)
from inbox_automation.schemas.operation import (
    CategorizePayload,
    OperationCreate,
    OperationStatus,
    OperationType,
    QueuedOperation,
    QueueRunResult,
    QueueStats,
    SendReplyPayload,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from inbox_automation.protocols import MailActions, MessageActions, OperationStore

logger = structlog.get_logger(__name__)

# Handlers return normally on success and raise on failure.
OperationHandler = Callable[[QueuedOperation], Awaitable[None]]


class OperationHandlerRegistry:
    """Registry mapping every operation type to its handler.

    The registry is closed over ``OperationType``: ``validate`` fails if any
    kind lacks a handler, so dispatch never meets an unhandled type.
    """

    def __init__(self, handlers: Mapping[OperationType, OperationHandler] | None = None) -> None:
        self._handlers: dict[OperationType, OperationHandler] = dict(handlers or {})

    def register(self, operation_type: OperationType, handler: OperationHandler) -> None:
        """Register or replace the handler for an operation type.

        Args:
            operation_type: The operation kind to handle.
            handler: The handler coroutine function.
        """
        self._handlers[operation_type] = handler

    def get(self, operation_type: OperationType) -> OperationHandler:
        """Get the handler for an operation type."""
        return self._handlers[operation_type]

    def has(self, operation_type: OperationType) -> bool:
        """Check if an operation type has a handler."""
        return operation_type in self._handlers

    @property
    def registered_types(self) -> list[OperationType]:
        """Operation types with a handler."""
        return list(self._handlers.keys())

    def validate(self) -> None:
        """Ensure every operation type has a handler.

        Raises:
            ValueError: If any operation type is unhandled.
        """
        missing = [t.value for t in OperationType if t not in self._handlers]
        if missing:
            raise ValueError(f"Missing operation handlers: {', '.join(sorted(missing))}")


def build_default_registry(
    message_actions: MessageActions,
    mail: MailActions,
) -> OperationHandlerRegistry:
    """Build the standard handler table over the collaborators.

    State updates are idempotent at the business layer (marking an already
    read message as read succeeds). A missing target message is permanent.
    """

    def _require(found: bool, operation: QueuedOperation) -> None:
        if not found:
            raise PermanentOperationError(f"Message not found: {operation.resource_ref}")

    async def mark_read(operation: QueuedOperation) -> None:
        found = await message_actions.set_read(operation.user_id, operation.resource_ref, True)
        _require(found, operation)

    async def mark_unread(operation: QueuedOperation) -> None:
        found = await message_actions.set_read(operation.user_id, operation.resource_ref, False)
        _require(found, operation)

    async def archive(operation: QueuedOperation) -> None:
        found = await message_actions.set_archived(
            operation.user_id, operation.resource_ref, True
        )
        _require(found, operation)

    async def unarchive(operation: QueuedOperation) -> None:
        found = await message_actions.set_archived(
            operation.user_id, operation.resource_ref, False
        )
        _require(found, operation)

    async def categorize(operation: QueuedOperation) -> None:
        payload = operation.payload
        if not isinstance(payload, CategorizePayload):
            raise PermanentOperationError(f"Unexpected payload for {operation.type.value}")
        found = await message_actions.set_category(
            operation.user_id, payload.message_id, payload.category_id
        )
        _require(found, operation)

    async def send_reply(operation: QueuedOperation) -> None:
        payload = operation.payload
        if not isinstance(payload, SendReplyPayload):
            raise PermanentOperationError(f"Unexpected payload for {operation.type.value}")
        sent = await mail.send_reply(payload.message_id, payload.reply_content, payload.reply_all)
        if not sent:
            raise TransientOperationError(f"Reply to {payload.message_id} was not sent")

    async def delete(operation: QueuedOperation) -> None:
        found = await message_actions.delete(operation.user_id, operation.resource_ref)
        _require(found, operation)

    return OperationHandlerRegistry(
        {
            OperationType.MARK_READ: mark_read,
            OperationType.MARK_UNREAD: mark_unread,
            OperationType.ARCHIVE: archive,
            OperationType.UNARCHIVE: unarchive,
            OperationType.CATEGORIZE: categorize,
            OperationType.SEND_REPLY: send_reply,
            OperationType.DELETE: delete,
        }
    )


class OfflineOperationQueue:
    """Priority-ordered queue with bounded retries and terminal states.

    Lifecycle: pending -> processing -> completed, or on failure the retry
    count grows and the operation returns to pending until ``max_retries``
    is reached, at which point it is failed. Only an operator retry
    (``retry_failed``) reopens failed operations, together with operations
    left in processing longer than ``stale_after_seconds`` after their claim.

    Example:
        queue = OfflineOperationQueue(store, registry)
        op = await queue.enqueue(OperationCreate(user_id="u1", payload=MarkReadPayload(...)))
        summary = await queue.process_user_queue("u1")
    """

    def __init__(
        self,
        store: OperationStore,
        registry: OperationHandlerRegistry,
        stale_after_seconds: float | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            store: Durable operation storage.
            registry: Handler table covering every operation type.
            stale_after_seconds: Age of a claim after which operator retry
                treats a processing operation as abandoned. None keeps
                processing operations untouched.

        Raises:
            ValueError: If the registry does not cover every operation type.
        """
        registry.validate()
        self.store = store
        self.registry = registry
        self.stale_after_seconds = stale_after_seconds

    async def enqueue(self, data: OperationCreate) -> QueuedOperation:
        """Persist a new pending operation."""
        operation = await self.store.add(QueuedOperation.from_create(data))
        await logger.ainfo(
            "operation_enqueued",
            operation_id=operation.id,
            user_id=operation.user_id,
            operation_type=operation.type.value,
            priority=operation.priority,
        )
        return operation

    async def get(self, operation_id: str) -> QueuedOperation:
        """Fetch an operation for status inspection.

        Raises:
            OperationNotFoundError: If the operation does not exist.
        """
        operation = await self.store.get(operation_id)
        if operation is None:
            raise OperationNotFoundError(operation_id)
        return operation

    async def get_pending(self, user_id: str) -> Sequence[QueuedOperation]:
        """Pending operations, highest priority first then oldest first."""
        return await self.store.list_pending(user_id)

    async def get_stats(self, user_id: str) -> QueueStats:
        """Per-status counts for a user's operations."""
        return await self.store.count_by_status(user_id)

    async def process_one(self, operation_id: str) -> bool:
        """Execute one operation if it is in a processable state.

        Returns:
            True if the operation completed. False if it failed, was not
            found, or was not pending (duplicate triggers are no-ops).
        """
        operation = await self.store.claim(operation_id)
        if operation is None:
            await logger.ainfo("operation_not_processable", operation_id=operation_id)
            return False

        handler = self.registry.get(operation.type)
        try:
            await handler(operation)
        except PermanentOperationError as e:
            operation.last_error = str(e)
            operation.retry_count = operation.max_retries
            operation.status = OperationStatus.FAILED
            operation.processed_at = datetime.now(UTC)
            await self.store.save(operation)
            await logger.aerror(
                "operation_failed_permanently",
                operation_id=operation.id,
                operation_type=operation.type.value,
                error=str(e),
            )
            return False
        except Exception as e:
            operation.last_error = str(e) or e.__class__.__name__
            operation.retry_count = min(operation.retry_count + 1, operation.max_retries)
            if operation.retry_count >= operation.max_retries:
                operation.status = OperationStatus.FAILED
                operation.processed_at = datetime.now(UTC)
                await logger.aerror(
                    "operation_failed",
                    operation_id=operation.id,
                    operation_type=operation.type.value,
                    retries=operation.retry_count,
                    error=operation.last_error,
                )
            else:
                operation.status = OperationStatus.PENDING
                await logger.awarning(
                    "operation_will_retry",
                    operation_id=operation.id,
                    operation_type=operation.type.value,
                    attempt=operation.retry_count,
                    max_retries=operation.max_retries,
                    error=operation.last_error,
                )
            await self.store.save(operation)
            return False

        operation.status = OperationStatus.COMPLETED
        operation.processed_at = datetime.now(UTC)
        await self.store.save(operation)
        await logger.ainfo(
            "operation_completed",
            operation_id=operation.id,
            operation_type=operation.type.value,
        )
        return True

    async def process_user_queue(self, user_id: str) -> QueueRunResult:
        """Drain a user's pending operations once, in queue order."""
        operations = await self.store.list_pending(user_id)
        result = QueueRunResult(processed=len(operations))

        for operation in operations:
            if await self.process_one(operation.id):
                result.succeeded += 1
            else:
                result.failed += 1

        await logger.ainfo(
            "queue_processing_complete",
            user_id=user_id,
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result

    async def retry_failed(self, user_id: str) -> int:
        """Operator retry: reopen failed and abandoned operations with a fresh retry budget."""
        stale_before: datetime | None = None
        if self.stale_after_seconds is not None:
            stale_before = datetime.now(UTC) - timedelta(seconds=self.stale_after_seconds)
        count = await self.store.reset_failed(user_id, stale_before=stale_before)
        await logger.ainfo(
            "failed_operations_reset", user_id=user_id, count=count, stale_before=stale_before
        )
        return count

    async def clear_completed(self, user_id: str) -> int:
        """Remove completed operations for a user."""
        count = await self.store.delete_completed(user_id)
        await logger.ainfo("completed_operations_cleared", user_id=user_id, count=count)
        return count
