"""Message schema consumed by the pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """A synced message as exposed by the message store.

    The pipeline never mutates messages; state changes go through the
    mail and message action collaborators.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Internal message identifier")
    user_id: str = Field(..., description="Owning user")
    account_id: str = Field(..., description="Connected account the message was synced from")
    external_id: str = Field(..., description="Provider-side message identifier")
    subject: str = Field(default="", description="Subject line")
    content: str = Field(default="", description="Plain-text body")
    sender: str = Field(..., description="Sender address or display value")
    is_urgent: bool = Field(default=False, description="Urgent flag set during sync")
    category_id: str | None = Field(default=None, description="Assigned category")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Message timestamp"
    )
