"""Message analysis repository for database operations."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inbox_automation.models.message_analysis import MessageAnalysisRecord
from inbox_automation.schemas.analysis import (
    AnalysisResult,
    AnalysisSource,
    PriorityLevel,
    Sentiment,
)


def to_schema(record: MessageAnalysisRecord) -> AnalysisResult:
    """Convert a row to the domain model."""
    return AnalysisResult(
        message_id=record.message_id,
        spam_probability=record.spam_probability,
        is_spam=record.is_spam,
        needs_response=record.needs_response,
        response_confidence=record.response_confidence,
        sentiment=Sentiment(record.sentiment),
        priority_level=PriorityLevel(record.priority_level),
        generated_reply=record.generated_reply,
        analysis_version=record.analysis_version,
        source=AnalysisSource(record.source),
        spam_reasoning=record.spam_reasoning or "",
        response_reasoning=record.response_reasoning or "",
        analyzed_at=record.analyzed_at,
    )


def _column_values(result: AnalysisResult) -> dict[str, Any]:
    return {
        "spam_probability": result.spam_probability,
        "is_spam": result.is_spam,
        "needs_response": result.needs_response,
        "response_confidence": result.response_confidence,
        "sentiment": result.sentiment.value,
        "priority_level": result.priority_level.value,
        "generated_reply": result.generated_reply,
        "analysis_version": result.analysis_version,
        "source": result.source.value,
        "spam_reasoning": result.spam_reasoning,
        "response_reasoning": result.response_reasoning,
        "analyzed_at": result.analyzed_at,
    }


class AnalysisRepository:
    """Repository for message analysis results.

    Implements the ``AnalysisStore`` protocol with one row per message. Each
    call runs in a session of its own.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory for async SQLAlchemy sessions.
        """
        self.session_factory = session_factory

    async def upsert(self, message_id: str, result: AnalysisResult) -> AnalysisResult:
        """Insert or overwrite the analysis for a message.

        Args:
            message_id: Analyzed message ID.
            result: Analysis to store.

        Returns:
            The stored analysis.
        """
        values = _column_values(result)
        stmt = (
            insert(MessageAnalysisRecord)
            .values(message_id=message_id, **values)
            .on_conflict_do_update(
                index_elements=[MessageAnalysisRecord.message_id],
                set_={**values, "updated_at": func.now()},
            )
            .returning(MessageAnalysisRecord)
        )
        async with self.session_factory() as session:
            row = await session.execute(stmt)
            stored = to_schema(row.scalar_one())
            await session.commit()
        return stored

    async def get_by_message_id(self, message_id: str) -> AnalysisResult | None:
        """Get the analysis for a message.

        Args:
            message_id: Message ID.

        Returns:
            Analysis if found, None otherwise.
        """
        async with self.session_factory() as session:
            record = await session.get(MessageAnalysisRecord, message_id)
            return to_schema(record) if record is not None else None
