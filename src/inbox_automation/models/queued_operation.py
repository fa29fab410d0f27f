"""Queued offline operation model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from inbox_automation.models.base import Base


class QueuedOperationRecord(Base):
    """Row for an operation issued by a client while offline.

    The typed payload is stored as JSON with its ``type`` tag, which is also
    copied into ``operation_type`` for filtering.
    """

    __tablename__ = "queued_operations"
    __table_args__ = (
        CheckConstraint("priority BETWEEN 1 AND 10", name="ck_queued_operations_priority"),
        CheckConstraint(
            "retry_count >= 0 AND retry_count <= max_retries",
            name="ck_queued_operations_retry_bound",
        ),
        Index("ix_queued_operations_user_status", "user_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    operation_type: Mapped[str] = mapped_column(String(32), nullable=False)
    resource_ref: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        default="pending",
        server_default="pending",
    )
    priority: Mapped[int] = mapped_column(Integer, default=5, server_default="5")
    retry_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    max_retries: Mapped[int] = mapped_column(Integer, default=3, server_default="3")
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    client_id: Mapped[str | None] = mapped_column(String, nullable=True)
    client_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
