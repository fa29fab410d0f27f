"""Per-user automation policy and notification preference schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from inbox_automation.core.time_windows import parse_clock


class AutomationPolicy(BaseModel):
    """User configuration gating auto-delete and auto-reply.

    Owned by the user; the pipeline only reads it.
    """

    auto_delete_enabled: bool = Field(default=False, description="Trash detected spam")
    spam_threshold: int = Field(default=80, ge=0, le=100, description="Spam cutoff (%)")
    auto_reply_enabled: bool = Field(default=False, description="Send generated replies")
    response_confidence_threshold: int = Field(
        default=85, ge=0, le=100, description="Minimum response confidence (%)"
    )
    sender_whitelist: list[str] = Field(default_factory=list)
    sender_blacklist: list[str] = Field(default_factory=list)
    business_hours_only: bool = Field(default=False)
    max_replies_per_day: int = Field(default=50, ge=1, le=100)
    timezone: str = Field(default="UTC", description="IANA timezone of the user")
    business_hours_start: str = Field(default="09:00")
    business_hours_end: str = Field(default="17:00")

    @field_validator("business_hours_start", "business_hours_end")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        """Ensure business hours use HH:MM."""
        parse_clock(v)
        return v


class QuietHours(BaseModel):
    """Window during which non-urgent push notifications are suppressed."""

    enabled: bool = False
    start: str = Field(default="22:00", description="Start time (HH:MM)")
    end: str = Field(default="07:00", description="End time (HH:MM)")
    timezone: str = Field(default="UTC", description="IANA timezone")

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        """Ensure quiet hours use HH:MM."""
        parse_clock(v)
        return v


class UrgentKeywordRule(BaseModel):
    """Keywords that make a message bypass batching and quiet hours."""

    enabled: bool = True
    keywords: list[str] = Field(default_factory=list)


class NotificationPreferences(BaseModel):
    """Per-user push notification preferences."""

    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    urgent_keyword_rules: list[UrgentKeywordRule] = Field(default_factory=list)

    @property
    def urgent_keywords(self) -> list[str]:
        """Lowercased keywords from every enabled rule."""
        return [
            keyword.lower()
            for rule in self.urgent_keyword_rules
            if rule.enabled
            for keyword in rule.keywords
            if keyword.strip()
        ]
