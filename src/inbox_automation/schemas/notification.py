"""Push notification schema definitions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class NotificationPayload(BaseModel):
    """Payload handed to the push gateway."""

    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body")
    badge: int | None = Field(default=None, description="Badge count")
    data: dict[str, Any] = Field(default_factory=dict, description="Deep-link data")


class PushResult(BaseModel):
    """Delivery counts reported by the push gateway."""

    sent: int = 0
    failed: int = 0
