"""Message analysis result model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from inbox_automation.models.base import Base


class MessageAnalysisRecord(Base):
    """One analysis row per message, overwritten on re-analysis."""

    __tablename__ = "message_analyses"

    message_id: Mapped[str] = mapped_column(String, primary_key=True)

    spam_probability: Mapped[int] = mapped_column(Integer, nullable=False)
    is_spam: Mapped[bool] = mapped_column(Boolean, nullable=False)
    needs_response: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    sentiment: Mapped[str] = mapped_column(String(16), nullable=False)
    priority_level: Mapped[str] = mapped_column(String(16), nullable=False)
    generated_reply: Mapped[str | None] = mapped_column(Text, nullable=True)

    analysis_version: Mapped[str] = mapped_column(String(16), nullable=False)
    source: Mapped[str] = mapped_column(String(16), default="ai", server_default="ai")
    spam_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)

    analyzed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
