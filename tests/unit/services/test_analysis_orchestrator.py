"""Tests for AnalysisOrchestrator."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from inbox_automation.core.config import AutomationSettings
from inbox_automation.exceptions import MessageNotFoundError
from inbox_automation.integrations.ollama.client import OllamaClient
from inbox_automation.schemas.analysis import (
    AnalysisSource,
    PriorityLevel,
    ResponseVerdict,
    Sentiment,
    SentimentVerdict,
    SpamVerdict,
)
from inbox_automation.schemas.message import Message
from inbox_automation.services.analysis_orchestrator import (
    REPLY_SYSTEM,
    RESPONSE_SYSTEM,
    SENTIMENT_SYSTEM,
    SPAM_SYSTEM,
    AnalysisOrchestrator,
    calculate_priority_level,
    normalize_sentiment,
)
from inbox_automation.services.heuristics import RULE_BASED_TAG
from tests.fakes import FakeAI, FakeAnalysisStore, FakeEventRecorder, FakeMessageStore


def _script(ai: FakeAI, spam: int, sentiment: str, needs: bool, confidence: int) -> None:
    ai.responses[SPAM_SYSTEM] = json.dumps({"probability": spam, "reasoning": "checked"})
    ai.responses[SENTIMENT_SYSTEM] = json.dumps({"sentiment": sentiment, "confidence": 80})
    ai.responses[RESPONSE_SYSTEM] = json.dumps(
        {"needsResponse": needs, "confidence": confidence, "reasoning": "direct question"}
    )
    ai.responses[REPLY_SYSTEM] = json.dumps({"replyText": "Happy to help.", "language": "en"})


@pytest.fixture
def orchestrator(
    message_store: FakeMessageStore,
    analysis_store: FakeAnalysisStore,
    ai: FakeAI,
    settings: AutomationSettings,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(message_store, analysis_store, ai, settings=settings)


class TestCalculatePriorityLevel:
    """Tests for calculate_priority_level."""

    def _verdicts(
        self, sentiment: Sentiment = Sentiment.NEUTRAL, needs: bool = False, confidence: int = 0
    ) -> tuple[SpamVerdict, SentimentVerdict, ResponseVerdict]:
        return (
            SpamVerdict(is_spam=False, probability=0, reasoning=""),
            SentimentVerdict(sentiment=sentiment, confidence=80),
            ResponseVerdict(needs_response=needs, confidence=confidence, reasoning=""),
        )

    def test_spam_is_always_low(self) -> None:
        """Test spam forces low priority even when urgent."""
        _, sentiment, response = self._verdicts(Sentiment.NEGATIVE, True, 95)
        spam = SpamVerdict(is_spam=True, probability=90, reasoning="")

        assert calculate_priority_level(spam, sentiment, response, True) == PriorityLevel.LOW

    def test_neutral_baseline_is_medium(self) -> None:
        """Test base score 50 is medium."""
        assert calculate_priority_level(*self._verdicts(), False) == PriorityLevel.MEDIUM

    def test_urgent_is_high(self) -> None:
        """Test the urgent flag adds 30."""
        assert calculate_priority_level(*self._verdicts(), True) == PriorityLevel.HIGH

    def test_confident_response_is_high(self) -> None:
        """Test confident response necessity adds 25."""
        verdicts = self._verdicts(needs=True, confidence=70)

        assert calculate_priority_level(*verdicts, False) == PriorityLevel.HIGH

    def test_weak_response_is_medium(self) -> None:
        """Test low-confidence response necessity adds only 15."""
        verdicts = self._verdicts(needs=True, confidence=50)

        assert calculate_priority_level(*verdicts, False) == PriorityLevel.MEDIUM

    def test_weak_response_with_positive_reaches_high(self) -> None:
        """Test +15 response and +5 positive tone reach the high threshold."""
        verdicts = self._verdicts(Sentiment.POSITIVE, needs=True, confidence=50)

        assert calculate_priority_level(*verdicts, False) == PriorityLevel.HIGH

    def test_negative_alone_is_medium(self) -> None:
        """Test negative tone adds 15."""
        verdicts = self._verdicts(Sentiment.NEGATIVE)

        assert calculate_priority_level(*verdicts, False) == PriorityLevel.MEDIUM

    def test_custom_thresholds(self) -> None:
        """Test thresholds are configurable."""
        verdicts = self._verdicts()

        assert (
            calculate_priority_level(*verdicts, False, high_threshold=90, medium_threshold=60)
            == PriorityLevel.LOW
        )


class TestNormalizeSentiment:
    """Tests for normalize_sentiment."""

    def test_maps_free_text(self) -> None:
        """Test loose model output is mapped."""
        assert normalize_sentiment("Very Positive") == Sentiment.POSITIVE
        assert normalize_sentiment("negative") == Sentiment.NEGATIVE
        assert normalize_sentiment("mixed") == Sentiment.NEUTRAL
        assert normalize_sentiment(None) == Sentiment.NEUTRAL


class TestAnalyze:
    """Tests for AnalysisOrchestrator.analyze."""

    @pytest.mark.asyncio
    async def test_ai_analysis_with_reply(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test a fully AI-derived result with a generated reply."""
        message = make_message(subject="Question", content="Can we meet Friday?")
        message_store.add(message)
        _script(ai, spam=5, sentiment="positive", needs=True, confidence=80)

        result = await orchestrator.analyze(message.id)

        assert result.spam_probability == 5
        assert result.is_spam is False
        assert result.needs_response is True
        assert result.sentiment == Sentiment.POSITIVE
        assert result.generated_reply == "Happy to help."
        assert result.priority_level == PriorityLevel.HIGH
        assert result.source == AnalysisSource.AI
        assert analysis_store.results[message.id] == result

    @pytest.mark.asyncio
    async def test_reply_only_above_generation_confidence(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test no reply is drafted below confidence 60."""
        message = make_message()
        message_store.add(message)
        _script(ai, spam=5, sentiment="neutral", needs=True, confidence=59)

        result = await orchestrator.analyze(message.id)

        assert result.generated_reply is None
        assert all(call["system"] != REPLY_SYSTEM for call in ai.calls)

    @pytest.mark.asyncio
    async def test_missing_message_raises(self, orchestrator: AnalysisOrchestrator) -> None:
        """Test NotFound for unknown message IDs."""
        with pytest.raises(MessageNotFoundError) as exc_info:
            await orchestrator.analyze("missing")

        assert exc_info.value.message_id == "missing"

    @pytest.mark.asyncio
    async def test_unavailable_backend_uses_heuristics(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test degraded mode never calls the backend and tags results."""
        ai.available = False
        message = make_message(
            subject="URGENT", content="Could you please send the contract asap?", is_urgent=True
        )
        message_store.add(message)

        result = await orchestrator.analyze(message.id)

        assert ai.calls == []
        assert result.source == AnalysisSource.HEURISTIC
        assert result.is_degraded is True
        assert result.spam_reasoning.endswith(RULE_BASED_TAG)
        assert result.response_reasoning.endswith(RULE_BASED_TAG)
        assert result.needs_response is True
        assert result.generated_reply is not None

    @pytest.mark.asyncio
    async def test_partial_failure_is_mixed(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test unparseable output for one check falls back for that check only."""
        message = make_message()
        message_store.add(message)
        _script(ai, spam=10, sentiment="neutral", needs=False, confidence=20)
        ai.responses[SENTIMENT_SYSTEM] = "I cannot answer that."

        result = await orchestrator.analyze(message.id)

        assert result.spam_probability == 10
        assert result.source == AnalysisSource.MIXED

    @pytest.mark.asyncio
    async def test_timeout_falls_back(
        self,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test slow inference is cut off and replaced by heuristics."""
        settings = AutomationSettings(_env_file=None, ai_timeout_seconds=0.01)  # type: ignore[call-arg]
        orchestrator = AnalysisOrchestrator(message_store, analysis_store, ai, settings=settings)
        ai.delay = 0.5
        message = make_message()
        message_store.add(message)

        result = await orchestrator.analyze(message.id)

        assert result.source == AnalysisSource.HEURISTIC

    @pytest.mark.asyncio
    async def test_backend_error_falls_back(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test inference errors degrade instead of failing the analysis."""
        ai.error = RuntimeError("connection reset")
        message = make_message()
        message_store.add(message)

        result = await orchestrator.analyze(message.id)

        assert result.source == AnalysisSource.HEURISTIC

    @pytest.mark.asyncio
    async def test_reanalysis_upserts_single_result(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test repeated analysis overwrites the stored result."""
        message = make_message()
        message_store.add(message)
        _script(ai, spam=5, sentiment="neutral", needs=False, confidence=10)

        first = await orchestrator.analyze(message.id)
        second = await orchestrator.analyze(message.id)

        assert len(analysis_store.results) == 1
        assert first.spam_probability == second.spam_probability
        assert first.priority_level == second.priority_level

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_share_one_run(
        self,
        orchestrator: AnalysisOrchestrator,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test concurrent triggers for one message produce one write."""
        message = make_message()
        message_store.add(message)
        _script(ai, spam=5, sentiment="neutral", needs=False, confidence=10)
        ai.delay = 0.01

        results = await asyncio.gather(*(orchestrator.analyze(message.id) for _ in range(5)))

        assert analysis_store.upsert_calls == 1
        assert all(r == results[0] for r in results)
        assert orchestrator.get_status()["inflight"] == 0

    @pytest.mark.asyncio
    async def test_publishes_event(
        self,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        ai: FakeAI,
        settings: AutomationSettings,
        event_recorder: FakeEventRecorder,
        make_message: Callable[..., Message],
    ) -> None:
        """Test analysis_completed is published to the event sink."""
        from inbox_automation.services.event_sink import AutomationEventSink

        sink = AutomationEventSink(event_recorder)
        orchestrator = AnalysisOrchestrator(
            message_store, analysis_store, ai, settings=settings, event_sink=sink
        )
        message = make_message()
        message_store.add(message)

        await sink.start()
        await orchestrator.analyze(message.id)
        await sink.stop()

        assert [e[0] for e in event_recorder.events] == ["analysis_completed"]
        assert event_recorder.events[0][1] == message.user_id


class TestGenerateReply:
    """Tests for AnalysisOrchestrator.generate_reply."""

    @pytest.mark.asyncio
    async def test_uses_creative_sampling(
        self,
        orchestrator: AnalysisOrchestrator,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test reply generation parameters and tone guidance."""
        ai.responses[REPLY_SYSTEM] = '{"replyText": "Sorry about that.", "language": "en"}'

        draft = await orchestrator.generate_reply(make_message(), Sentiment.NEGATIVE)

        assert draft.reply_text == "Sorry about that."
        call = ai.calls[0]
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 500
        assert "empathetic" in call["prompt"]

    @pytest.mark.asyncio
    async def test_empty_reply_uses_template(
        self,
        orchestrator: AnalysisOrchestrator,
        ai: FakeAI,
        make_message: Callable[..., Message],
    ) -> None:
        """Test an empty replyText falls back to the template."""
        ai.responses[REPLY_SYSTEM] = '{"replyText": ""}'

        draft = await orchestrator.generate_reply(make_message(), Sentiment.POSITIVE)

        assert draft.ai_derived is False


class TestGetStatus:
    """Tests for AnalysisOrchestrator.get_status."""

    def test_reports_degraded_mode(self, orchestrator: AnalysisOrchestrator, ai: FakeAI) -> None:
        """Test status mirrors backend availability."""
        ai.available = False

        status = orchestrator.get_status()

        assert status["ai_available"] is False
        assert status["degraded_mode"] is True
        assert status["thresholds"]["spam"] == 80


class TestBackendRecovery:
    """Tests for analysis after the inference backend comes back."""

    @pytest.mark.asyncio
    async def test_later_analyses_use_ai_after_outage(
        self,
        message_store: FakeMessageStore,
        analysis_store: FakeAnalysisStore,
        settings: AutomationSettings,
        make_message: Callable[..., Message],
    ) -> None:
        """Test an outage degrades one analysis and the next returns to AI."""
        backend = {"up": False}
        answers = {
            SPAM_SYSTEM: {"probability": 5, "reasoning": "checked"},
            SENTIMENT_SYSTEM: {"sentiment": "neutral", "confidence": 80},
            RESPONSE_SYSTEM: {"needsResponse": False, "confidence": 20, "reasoning": "fyi"},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            if not backend["up"]:
                return httpx.Response(503)
            system = json.loads(request.content)["messages"][0]["content"]
            content = json.dumps(answers[system])
            return httpx.Response(200, json={"message": {"content": content}})

        client = OllamaClient(
            retry_after=0.0, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        orchestrator = AnalysisOrchestrator(
            message_store, analysis_store, client, settings=settings
        )
        first, second, third = (make_message(content="FYI, minutes attached.") for _ in range(3))
        for message in (first, second, third):
            message_store.add(message)

        degraded = await orchestrator.analyze(first.id)
        backend["up"] = True
        recovered = [await orchestrator.analyze(m.id) for m in (second, third)]

        assert degraded.source == AnalysisSource.HEURISTIC
        assert [r.source for r in recovered] == [AnalysisSource.AI, AnalysisSource.AI]
        assert client.get_status().failure_count == 0
        await client.close()
