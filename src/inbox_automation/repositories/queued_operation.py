"""Queued operation repository for database operations."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import ColumnElement, and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inbox_automation.models.queued_operation import QueuedOperationRecord
from inbox_automation.schemas.operation import (
    OperationStatus,
    QueuedOperation,
    QueueStats,
    operation_payload_adapter,
)


def to_schema(record: QueuedOperationRecord) -> QueuedOperation:
    """Convert a row to the domain model."""
    return QueuedOperation(
        id=record.id,
        user_id=record.user_id,
        payload=operation_payload_adapter.validate_python(record.payload),
        status=OperationStatus(record.status),
        priority=record.priority,
        retry_count=record.retry_count,
        max_retries=record.max_retries,
        last_error=record.last_error,
        created_at=record.created_at,
        processed_at=record.processed_at,
        claimed_at=record.claimed_at,
        client_id=record.client_id,
        client_timestamp=record.client_timestamp,
    )


def to_record(operation: QueuedOperation) -> QueuedOperationRecord:
    """Convert a domain model to a new row."""
    return QueuedOperationRecord(
        id=operation.id,
        user_id=operation.user_id,
        operation_type=operation.type.value,
        resource_ref=operation.resource_ref,
        payload=operation.payload.model_dump(mode="json"),
        status=operation.status.value,
        priority=operation.priority,
        retry_count=operation.retry_count,
        max_retries=operation.max_retries,
        last_error=operation.last_error,
        created_at=operation.created_at,
        processed_at=operation.processed_at,
        claimed_at=operation.claimed_at,
        client_id=operation.client_id,
        client_timestamp=operation.client_timestamp,
    )


class OperationRepository:
    """Repository for queued offline operations.

    Implements the ``OperationStore`` protocol. Each method opens its own
    session and commits its own unit of work, so concurrent callers never
    share a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory for async SQLAlchemy sessions.
        """
        self.session_factory = session_factory

    async def add(self, operation: QueuedOperation) -> QueuedOperation:
        """Insert a new operation.

        Args:
            operation: Operation to persist.

        Returns:
            The persisted operation.
        """
        async with self.session_factory() as session:
            session.add(to_record(operation))
            await session.commit()
        return operation

    async def get(self, operation_id: str) -> QueuedOperation | None:
        """Get an operation by ID.

        Args:
            operation_id: Operation ID.

        Returns:
            Operation if found, None otherwise.
        """
        async with self.session_factory() as session:
            record = await session.get(QueuedOperationRecord, operation_id)
            return to_schema(record) if record is not None else None

    async def claim(self, operation_id: str) -> QueuedOperation | None:
        """Atomically move a processable operation to ``processing``.

        A single conditional UPDATE guards the transition, so two workers
        racing on the same ID cannot both claim it. The claim time is
        stored in ``claimed_at``.

        Args:
            operation_id: Operation ID.

        Returns:
            The claimed operation, or None if missing or not processable.
        """
        stmt = (
            update(QueuedOperationRecord)
            .where(QueuedOperationRecord.id == operation_id)
            .where(
                or_(
                    QueuedOperationRecord.status == OperationStatus.PENDING.value,
                    and_(
                        QueuedOperationRecord.status == OperationStatus.FAILED.value,
                        QueuedOperationRecord.retry_count < QueuedOperationRecord.max_retries,
                    ),
                )
            )
            .values(status=OperationStatus.PROCESSING.value, claimed_at=func.now())
            .returning(QueuedOperationRecord)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            claimed = to_schema(record) if record is not None else None
            await session.commit()
        return claimed

    async def save(self, operation: QueuedOperation) -> None:
        """Persist the mutable state of an operation.

        Args:
            operation: Operation with updated status, retries, or error.
        """
        async with self.session_factory() as session:
            await session.execute(
                update(QueuedOperationRecord)
                .where(QueuedOperationRecord.id == operation.id)
                .values(
                    status=operation.status.value,
                    retry_count=operation.retry_count,
                    last_error=operation.last_error,
                    processed_at=operation.processed_at,
                )
            )
            await session.commit()

    async def list_pending(self, user_id: str) -> Sequence[QueuedOperation]:
        """List pending operations, highest priority first then oldest first.

        Args:
            user_id: Owner of the operations.

        Returns:
            Pending operations in processing order.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(QueuedOperationRecord)
                .where(QueuedOperationRecord.user_id == user_id)
                .where(QueuedOperationRecord.status == OperationStatus.PENDING.value)
                .order_by(
                    QueuedOperationRecord.priority.desc(),
                    QueuedOperationRecord.created_at.asc(),
                )
            )
            return [to_schema(record) for record in result.scalars().all()]

    async def count_by_status(self, user_id: str) -> QueueStats:
        """Count a user's operations per status.

        Args:
            user_id: Owner of the operations.

        Returns:
            Per-status counts.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(QueuedOperationRecord.status, func.count())
                .where(QueuedOperationRecord.user_id == user_id)
                .group_by(QueuedOperationRecord.status)
            )
            counts = {status: count for status, count in result.all()}
        return QueueStats(
            pending=counts.get(OperationStatus.PENDING.value, 0),
            processing=counts.get(OperationStatus.PROCESSING.value, 0),
            completed=counts.get(OperationStatus.COMPLETED.value, 0),
            failed=counts.get(OperationStatus.FAILED.value, 0),
        )

    async def reset_failed(self, user_id: str, stale_before: datetime | None = None) -> int:
        """Reopen failed operations with a fresh retry budget.

        Args:
            user_id: Owner of the operations.
            stale_before: Also reopen processing operations claimed before this.

        Returns:
            Number of operations reset.
        """
        reopenable: ColumnElement[bool] = (
            QueuedOperationRecord.status == OperationStatus.FAILED.value
        )
        if stale_before is not None:
            reopenable = or_(
                reopenable,
                and_(
                    QueuedOperationRecord.status == OperationStatus.PROCESSING.value,
                    QueuedOperationRecord.claimed_at < stale_before,
                ),
            )
        async with self.session_factory() as session:
            result = await session.execute(
                update(QueuedOperationRecord)
                .where(QueuedOperationRecord.user_id == user_id)
                .where(reopenable)
                .values(
                    status=OperationStatus.PENDING.value,
                    retry_count=0,
                    last_error=None,
                    processed_at=None,
                    claimed_at=None,
                )
            )
            await session.commit()
            return int(result.rowcount or 0)

    async def delete_completed(self, user_id: str) -> int:
        """Delete completed operations.

        Args:
            user_id: Owner of the operations.

        Returns:
            Number of operations deleted.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                delete(QueuedOperationRecord)
                .where(QueuedOperationRecord.user_id == user_id)
                .where(QueuedOperationRecord.status == OperationStatus.COMPLETED.value)
            )
            await session.commit()
            return int(result.rowcount or 0)
