"""Per-message AI analysis with rule-based degradation.

Runs spam, sentiment, and response-necessity checks concurrently, drafts a
reply when a response is likely needed, derives a priority level, and upserts
one ``AnalysisResult`` per message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog

from inbox_automation.core.config import AutomationSettings
from inbox_automation.exceptions import MessageNotFoundError
from inbox_automation.integrations.ollama.parsing import clamp_percentage, parse_json_response
from inbox_automation.schemas.analysis import (
    AnalysisResult,
    AnalysisSource,
    PriorityLevel,
    ReplyDraft,
    ResponseVerdict,
    Sentiment,
    SentimentVerdict,
    SpamVerdict,
)
from inbox_automation.services import heuristics

if TYPE_CHECKING:
    from inbox_automation.protocols import AIInference, AnalysisStore, MessageStore
    from inbox_automation.schemas.message import Message
    from inbox_automation.services.event_sink import AutomationEventSink

logger = structlog.get_logger(__name__)

CLASSIFY_BODY_CHARS = 1000
REPLY_BODY_CHARS = 800

PRIORITY_BASE = 50
URGENT_BONUS = 30
CONFIDENT_RESPONSE_BONUS = 25
CONFIDENT_RESPONSE_MIN = 70
RESPONSE_BONUS = 15
NEGATIVE_BONUS = 15
POSITIVE_BONUS = 5

SPAM_SYSTEM = (
    "You are an expert spam detection system. Always respond with valid JSON "
    "containing probability (0-100) and reasoning fields."
)
SENTIMENT_SYSTEM = (
    "You are a sentiment analysis expert. Always respond with valid JSON containing "
    "sentiment (positive/neutral/negative) and confidence (0-100) fields."
)
RESPONSE_SYSTEM = (
    "You are an email analysis expert. Always respond with valid JSON containing "
    "needsResponse (boolean), confidence (0-100), and reasoning fields."
)
REPLY_SYSTEM = (
    "You are a professional email writing assistant. Always respond with valid JSON "
    "containing replyText and language fields. Match the tone and language of the "
    "original message."
)

TONE_GUIDANCE = {
    Sentiment.NEGATIVE: "empathetic and solution-oriented",
    Sentiment.POSITIVE: "warm and appreciative",
    Sentiment.NEUTRAL: "professional and courteous",
}


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def normalize_sentiment(value: object) -> Sentiment:
    """Map free-form model output onto a sentiment value."""
    normalized = str(value).lower()
    if "positive" in normalized:
        return Sentiment.POSITIVE
    if "negative" in normalized:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def calculate_priority_level(
    spam: SpamVerdict,
    sentiment: SentimentVerdict,
    response: ResponseVerdict,
    is_urgent: bool,
    high_threshold: int = 70,
    medium_threshold: int = 40,
) -> PriorityLevel:
    """Derive a priority level from the individual verdicts.

    Spam is always low priority. Otherwise a composite score starts at 50 and
    gains points for the urgent flag, response necessity, and sentiment.
    """
    if spam.is_spam:
        return PriorityLevel.LOW

    score = PRIORITY_BASE
    if is_urgent:
        score += URGENT_BONUS

    if response.needs_response and response.confidence >= CONFIDENT_RESPONSE_MIN:
        score += CONFIDENT_RESPONSE_BONUS
    elif response.needs_response:
        score += RESPONSE_BONUS

    if sentiment.sentiment == Sentiment.NEGATIVE:
        score += NEGATIVE_BONUS
    elif sentiment.sentiment == Sentiment.POSITIVE:
        score += POSITIVE_BONUS

    if score >= high_threshold:
        return PriorityLevel.HIGH
    if score >= medium_threshold:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW


class AnalysisOrchestrator:
    """Produces and stores one analysis result per message.

    Each detector polls the inference backend's availability flag before
    calling it and falls back to heuristics when the backend is unavailable,
    times out, errors, or returns unusable output.

    Example:
        orchestrator = AnalysisOrchestrator(message_store, analysis_store, ollama)
        result = await orchestrator.analyze("msg-123")
    """

    def __init__(
        self,
        message_store: MessageStore,
        analysis_store: AnalysisStore,
        ai: AIInference,
        settings: AutomationSettings | None = None,
        event_sink: AutomationEventSink | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            message_store: Source of messages to analyze.
            analysis_store: Destination for analysis results.
            ai: Inference backend.
            settings: Thresholds and timeouts (defaults from environment).
            event_sink: Optional sink for ``analysis_completed`` events.
        """
        self.message_store = message_store
        self.analysis_store = analysis_store
        self.ai = ai
        self.settings = settings or AutomationSettings()
        self.event_sink = event_sink
        self._inflight: dict[str, asyncio.Future[AnalysisResult]] = {}

    async def analyze(self, message_id: str) -> AnalysisResult:
        """Analyze a stored message and upsert its result.

        Args:
            message_id: Identifier of the message.

        Returns:
            The stored analysis result.

        Raises:
            MessageNotFoundError: If the message does not exist.
        """

        async def load_and_run() -> AnalysisResult:
            message = await self.message_store.get_by_id(message_id)
            if message is None:
                await logger.awarning("analysis_message_not_found", message_id=message_id)
                raise MessageNotFoundError(message_id)
            return await self._run(message)

        return await self._single_flight(message_id, load_and_run)

    async def analyze_message(self, message: Message) -> AnalysisResult:
        """Analyze an already loaded message and upsert its result."""
        return await self._single_flight(message.id, lambda: self._run(message))

    async def _single_flight(
        self,
        message_id: str,
        factory: Callable[[], Awaitable[AnalysisResult]],
    ) -> AnalysisResult:
        """Share one in-flight analysis between concurrent callers."""
        future = self._inflight.get(message_id)
        if future is None:
            future = asyncio.ensure_future(factory())
            self._inflight[message_id] = future
            future.add_done_callback(lambda _: self._inflight.pop(message_id, None))
        else:
            await logger.adebug("analysis_joined_inflight", message_id=message_id)
        return await asyncio.shield(future)

    async def _run(self, message: Message) -> AnalysisResult:
        await logger.ainfo("analysis_started", message_id=message.id)

        spam, sentiment, response = await asyncio.gather(
            self.detect_spam(message),
            self.analyze_sentiment(message),
            self.detect_response_necessity(message),
        )

        reply: ReplyDraft | None = None
        if (
            response.needs_response
            and response.confidence >= self.settings.reply_generation_confidence
        ):
            reply = await self.generate_reply(message, sentiment.sentiment)

        priority = calculate_priority_level(
            spam,
            sentiment,
            response,
            message.is_urgent,
            high_threshold=self.settings.high_priority_threshold,
            medium_threshold=self.settings.medium_priority_threshold,
        )

        derived = [spam.ai_derived, sentiment.ai_derived, response.ai_derived]
        if reply is not None:
            derived.append(reply.ai_derived)
        if all(derived):
            source = AnalysisSource.AI
        elif not any(derived):
            source = AnalysisSource.HEURISTIC
        else:
            source = AnalysisSource.MIXED

        result = AnalysisResult(
            message_id=message.id,
            spam_probability=spam.probability,
            is_spam=spam.is_spam,
            needs_response=response.needs_response,
            response_confidence=response.confidence,
            sentiment=sentiment.sentiment,
            priority_level=priority,
            generated_reply=reply.reply_text if reply else None,
            analysis_version=self.settings.analysis_version,
            source=source,
            spam_reasoning=spam.reasoning,
            response_reasoning=response.reasoning,
        )

        stored = await self.analysis_store.upsert(message.id, result)

        await logger.ainfo(
            "analysis_completed",
            message_id=message.id,
            spam_probability=stored.spam_probability,
            sentiment=stored.sentiment.value,
            needs_response=stored.needs_response,
            priority=stored.priority_level.value,
            source=stored.source.value,
        )
        if self.event_sink is not None:
            self.event_sink.publish(
                "analysis_completed",
                message.user_id,
                {
                    "message_id": message.id,
                    "is_spam": stored.is_spam,
                    "priority": stored.priority_level.value,
                    "source": stored.source.value,
                },
            )
        return stored

    async def _ask(
        self,
        check: str,
        prompt: str,
        system: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> dict[str, Any] | None:
        """Query the backend and parse a JSON object, or None to fall back."""
        if not self.ai.available:
            await logger.awarning("ai_unavailable_using_fallback", check=check)
            return None

        try:
            text = await asyncio.wait_for(
                self.ai.complete(
                    prompt, system=system, temperature=temperature, max_tokens=max_tokens
                ),
                timeout=self.settings.ai_timeout_seconds,
            )
        except TimeoutError:
            await logger.awarning(
                "ai_timeout_using_fallback",
                check=check,
                timeout=self.settings.ai_timeout_seconds,
            )
            return None
        except Exception as e:
            await logger.aerror("ai_call_failed_using_fallback", check=check, error=str(e))
            return None

        parsed = parse_json_response(text)
        if not parsed:
            await logger.awarning("ai_output_empty_using_fallback", check=check)
            return None
        return parsed

    async def detect_spam(self, message: Message) -> SpamVerdict:
        """Estimate the spam probability of a message."""
        prompt = (
            "Analyze this email for spam characteristics. Consider:\n"
            "- Promotional language and excessive marketing\n"
            "- Phishing attempts (suspicious links, urgency tactics, impersonation)\n"
            "- Suspicious sender patterns\n"
            "- Unsolicited commercial content\n"
            "- Requests for personal information\n\n"
            f"Subject: {message.subject or 'No subject'}\n"
            f"From: {message.sender}\n"
            f"Body: {_truncate(message.content, CLASSIFY_BODY_CHARS)}\n\n"
            'Respond in valid JSON format only:\n{"probability": <number 0-100>, '
            '"reasoning": "<brief explanation>"}'
        )
        parsed = await self._ask("spam", prompt, SPAM_SYSTEM)
        if parsed is None or "probability" not in parsed:
            return heuristics.rule_based_spam(
                message.subject, message.sender, message.content, self.settings.spam_threshold
            )

        probability = clamp_percentage(parsed.get("probability"), 0)
        return SpamVerdict(
            is_spam=probability >= self.settings.spam_threshold,
            probability=probability,
            reasoning=str(parsed.get("reasoning") or "AI analysis completed"),
        )

    async def analyze_sentiment(self, message: Message) -> SentimentVerdict:
        """Classify the emotional tone of a message."""
        prompt = (
            "Analyze the sentiment of this email. Determine if it's positive, "
            "neutral, or negative.\n\n"
            f"Subject: {message.subject or 'No subject'}\n"
            f"Body: {_truncate(message.content, CLASSIFY_BODY_CHARS)}\n\n"
            'Respond in valid JSON format only:\n{"sentiment": '
            '"<positive|neutral|negative>", "confidence": <number 0-100>}'
        )
        parsed = await self._ask("sentiment", prompt, SENTIMENT_SYSTEM)
        if parsed is None or "sentiment" not in parsed:
            return heuristics.rule_based_sentiment(message.subject, message.content)

        return SentimentVerdict(
            sentiment=normalize_sentiment(parsed.get("sentiment")),
            confidence=clamp_percentage(parsed.get("confidence"), 50),
        )

    async def detect_response_necessity(self, message: Message) -> ResponseVerdict:
        """Decide whether a message needs a reply."""
        prompt = (
            "Analyze if this email requires a response from the recipient.\n\n"
            f"Subject: {message.subject or 'No subject'}\n"
            f"From: {message.sender}\n"
            f"Body: {_truncate(message.content, CLASSIFY_BODY_CHARS)}\n\n"
            "Consider direct questions, action items, urgency, and whether the "
            "message is informational only.\n\n"
            'Respond in valid JSON format only:\n{"needsResponse": <true|false>, '
            '"confidence": <number 0-100>, "reasoning": "<brief explanation>"}'
        )
        parsed = await self._ask("response", prompt, RESPONSE_SYSTEM)
        if parsed is None or "needsResponse" not in parsed:
            return heuristics.rule_based_response(message.subject, message.content)

        needs_response = parsed.get("needsResponse")
        if isinstance(needs_response, str):
            needs_response = needs_response.strip().lower() == "true"
        return ResponseVerdict(
            needs_response=bool(needs_response),
            confidence=clamp_percentage(parsed.get("confidence"), 50),
            reasoning=str(parsed.get("reasoning") or "Analysis completed"),
        )

    async def generate_reply(
        self, message: Message, sentiment: Sentiment = Sentiment.NEUTRAL
    ) -> ReplyDraft:
        """Draft a reply whose tone follows the message sentiment."""
        prompt = (
            "Generate a professional email reply to this message.\n\n"
            f"Subject: {message.subject or 'No subject'}\n"
            f"From: {message.sender}\n"
            f"Body: {_truncate(message.content, REPLY_BODY_CHARS)}\n\n"
            "Requirements:\n"
            "- Length: 50-200 words\n"
            f"- Tone: {TONE_GUIDANCE[sentiment]}\n"
            "- Match the language of the original email\n"
            "- Address key points raised\n"
            "- Include appropriate greeting and closing\n\n"
            'Respond in valid JSON format only:\n{"replyText": "<reply>", '
            '"language": "<language code>"}'
        )
        parsed = await self._ask("reply", prompt, REPLY_SYSTEM, temperature=0.7, max_tokens=500)
        if parsed is None:
            return heuristics.template_reply(sentiment)
        reply_text = str(parsed.get("replyText") or "").strip()
        if not reply_text:
            return heuristics.template_reply(sentiment)

        word_count = len(reply_text.split())
        if word_count < 30 or word_count > 250:
            await logger.ainfo("generated_reply_length_unusual", words=word_count)

        return ReplyDraft(reply_text=reply_text, language=str(parsed.get("language") or "en"))

    def get_status(self) -> dict[str, Any]:
        """Report backend availability and thresholds."""
        return {
            "service": "AnalysisOrchestrator",
            "ai_available": self.ai.available,
            "degraded_mode": not self.ai.available,
            "inflight": len(self._inflight),
            "thresholds": {
                "spam": self.settings.spam_threshold,
                "high_priority": self.settings.high_priority_threshold,
                "medium_priority": self.settings.medium_priority_threshold,
                "reply_generation": self.settings.reply_generation_confidence,
            },
        }
