"""Offline operation schema definitions.

Each operation kind carries its own typed payload; the payload union is
discriminated on ``type`` so dispatch never sees an unknown kind.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class OperationType(str, Enum):
    """Client-issued operation kinds."""

    MARK_READ = "mark_read"
    MARK_UNREAD = "mark_unread"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    CATEGORIZE = "categorize"
    SEND_REPLY = "send_reply"
    DELETE = "delete"


class OperationStatus(str, Enum):
    """Lifecycle status of a queued operation."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class _MessagePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., min_length=1, description="Target message")


class MarkReadPayload(_MessagePayload):
    type: Literal["mark_read"] = "mark_read"


class MarkUnreadPayload(_MessagePayload):
    type: Literal["mark_unread"] = "mark_unread"


class ArchivePayload(_MessagePayload):
    type: Literal["archive"] = "archive"


class UnarchivePayload(_MessagePayload):
    type: Literal["unarchive"] = "unarchive"


class CategorizePayload(_MessagePayload):
    type: Literal["categorize"] = "categorize"
    category_id: str | None = Field(default=None, description="None clears the category")


class SendReplyPayload(_MessagePayload):
    type: Literal["send_reply"] = "send_reply"
    reply_content: str = Field(..., min_length=1)
    reply_all: bool = False


class DeletePayload(_MessagePayload):
    type: Literal["delete"] = "delete"


OperationPayload = Annotated[
    MarkReadPayload
    | MarkUnreadPayload
    | ArchivePayload
    | UnarchivePayload
    | CategorizePayload
    | SendReplyPayload
    | DeletePayload,
    Field(discriminator="type"),
]

operation_payload_adapter: TypeAdapter[OperationPayload] = TypeAdapter(OperationPayload)


class OperationCreate(BaseModel):
    """Input for enqueueing an operation."""

    user_id: str
    payload: OperationPayload
    priority: int = Field(default=5, ge=1, le=10, description="Higher runs first")
    max_retries: int = Field(default=3, ge=1, le=10)
    client_id: str | None = Field(default=None, description="Device that issued the operation")
    client_timestamp: datetime | None = None


class QueuedOperation(BaseModel):
    """A durable, retryable client operation.

    ``retry_count`` never exceeds ``max_retries``.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    payload: OperationPayload
    status: OperationStatus = OperationStatus.PENDING
    priority: int = Field(default=5, ge=1, le=10)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=1, le=10)
    last_error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    claimed_at: datetime | None = None
    client_id: str | None = None
    client_timestamp: datetime | None = None

    @model_validator(mode="after")
    def check_retry_bound(self) -> Self:
        """Enforce ``0 <= retry_count <= max_retries``."""
        if self.retry_count > self.max_retries:
            raise ValueError("retry_count cannot exceed max_retries")
        return self

    @property
    def type(self) -> OperationType:
        """Operation kind, taken from the payload."""
        return OperationType(self.payload.type)

    @property
    def resource_ref(self) -> str:
        """Identifier of the resource the operation targets."""
        return self.payload.message_id

    @classmethod
    def from_create(cls, data: OperationCreate) -> QueuedOperation:
        """Build a pending operation from enqueue input."""
        return cls(
            user_id=data.user_id,
            payload=data.payload,
            priority=data.priority,
            max_retries=data.max_retries,
            client_id=data.client_id,
            client_timestamp=data.client_timestamp,
        )


class QueueStats(BaseModel):
    """Per-status operation counts for a user."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        """Total operations tracked."""
        return self.pending + self.processing + self.completed + self.failed


class QueueRunResult(BaseModel):
    """Outcome of draining a user's queue."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
