"""Analysis result schema definitions."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

DEFAULT_SPAM_THRESHOLD = 80


class Sentiment(str, Enum):
    """Emotional tone of a message."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class PriorityLevel(str, Enum):
    """Priority level assigned to a message."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnalysisSource(str, Enum):
    """Where the classification confidence came from."""

    AI = "ai"
    HEURISTIC = "heuristic"
    MIXED = "mixed"


class SpamVerdict(BaseModel):
    """Output of spam detection."""

    is_spam: bool
    probability: int = Field(..., ge=0, le=100)
    reasoning: str
    ai_derived: bool = True


class SentimentVerdict(BaseModel):
    """Output of sentiment analysis."""

    sentiment: Sentiment
    confidence: int = Field(..., ge=0, le=100)
    ai_derived: bool = True


class ResponseVerdict(BaseModel):
    """Output of response-necessity detection."""

    needs_response: bool
    confidence: int = Field(..., ge=0, le=100)
    reasoning: str
    ai_derived: bool = True


class ReplyDraft(BaseModel):
    """Generated reply suggestion."""

    reply_text: str
    language: str = "en"
    ai_derived: bool = True


class AnalysisResult(BaseModel):
    """AI-or-heuristic classification of a single message.

    At most one result exists per ``message_id``; re-analysis overwrites it.
    """

    message_id: str = Field(..., description="Analyzed message (one-to-one)")
    spam_probability: int = Field(..., ge=0, le=100)
    is_spam: bool = Field(..., description="Derived from spam_probability unless overridden")
    needs_response: bool = False
    response_confidence: int = Field(default=0, ge=0, le=100)
    sentiment: Sentiment = Sentiment.NEUTRAL
    priority_level: PriorityLevel = PriorityLevel.MEDIUM
    generated_reply: str | None = None
    analysis_version: str = "1.0"
    source: AnalysisSource = AnalysisSource.AI
    spam_reasoning: str = ""
    response_reasoning: str = ""
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="before")
    @classmethod
    def derive_is_spam(cls, data: Any) -> Any:
        """Fill ``is_spam`` from the probability when not given explicitly."""
        if isinstance(data, dict) and data.get("is_spam") is None:
            probability = data.get("spam_probability", 0) or 0
            data = {**data, "is_spam": probability >= DEFAULT_SPAM_THRESHOLD}
        return data

    @property
    def is_degraded(self) -> bool:
        """Whether any part of this result came from rule-based fallbacks."""
        return self.source != AnalysisSource.AI
