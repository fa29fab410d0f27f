"""Rule-based fallbacks used when the AI backend is unavailable.

Every verdict produced here has ``ai_derived=False`` and reasoning that ends
in ``(rule-based)`` so degraded results can be told apart downstream.
"""

from __future__ import annotations

from inbox_automation.schemas.analysis import (
    ReplyDraft,
    ResponseVerdict,
    Sentiment,
    SentimentVerdict,
    SpamVerdict,
)

RULE_BASED_TAG = "(rule-based)"

SPAM_KEYWORDS = (
    "viagra",
    "cialis",
    "lottery",
    "winner",
    "prize",
    "claim now",
    "limited time",
    "act now",
    "free money",
    "nigerian prince",
    "click here",
    "congratulations",
    "you have won",
    "unsubscribe",
)
SPAM_KEYWORD_WEIGHT = 15
CAPS_RATIO_LIMIT = 0.3
CAPS_WEIGHT = 20
EXCLAMATION_LIMIT = 3
EXCLAMATION_WEIGHT = 15
NO_REPLY_WEIGHT = 10

QUESTION_WEIGHT = 30
ACTION_KEYWORDS = ("please", "could you", "can you", "would you", "request", "need")
ACTION_WEIGHT = 15
URGENT_KEYWORDS = ("urgent", "asap", "immediately", "emergency")
URGENT_WEIGHT = 20
RESPONSE_CUTOFF = 50

POSITIVE_WORDS = (
    "thank",
    "thanks",
    "great",
    "appreciate",
    "congrat",
    "excellent",
    "happy",
    "glad",
    "love",
    "wonderful",
)
NEGATIVE_WORDS = (
    "problem",
    "issue",
    "complaint",
    "disappointed",
    "unacceptable",
    "angry",
    "refund",
    "broken",
    "failed",
    "wrong",
    "frustrated",
)

REPLY_TEMPLATES = {
    Sentiment.POSITIVE: (
        "Thank you for your message! I appreciate you reaching out. I have received "
        "your email and will review the details carefully. I will get back to you "
        "with a response shortly.\n\nBest regards"
    ),
    Sentiment.NEGATIVE: (
        "Thank you for bringing this to my attention. I understand your concerns and "
        "want to address them properly. I am reviewing the situation and will respond "
        "with a detailed solution as soon as possible.\n\nSincerely"
    ),
    Sentiment.NEUTRAL: (
        "Thank you for your email. I have received your message and will review it "
        "carefully. I will get back to you with a response soon.\n\nBest regards"
    ),
}


def _tagged(reasons: list[str], fallback: str) -> str:
    text = "; ".join(reasons) if reasons else fallback
    return f"{text} {RULE_BASED_TAG}"


def rule_based_spam(
    subject: str, sender: str, body: str, spam_threshold: int = 80
) -> SpamVerdict:
    """Score spam likelihood from keywords and formatting."""
    raw = f"{subject} {body}"
    text = raw.lower()
    score = 0
    reasons: list[str] = []

    for keyword in SPAM_KEYWORDS:
        if keyword in text:
            score += SPAM_KEYWORD_WEIGHT
            reasons.append(f"Contains spam keyword: {keyword}")

    letters = [c for c in raw if c.isalpha()]
    if letters:
        caps_ratio = sum(1 for c in letters if c.isupper()) / len(letters)
        if caps_ratio > CAPS_RATIO_LIMIT:
            score += CAPS_WEIGHT
            reasons.append("Excessive capitalization")

    if text.count("!") > EXCLAMATION_LIMIT:
        score += EXCLAMATION_WEIGHT
        reasons.append("Excessive exclamation marks")

    lowered_sender = sender.lower()
    if "noreply" in lowered_sender or "no-reply" in lowered_sender:
        score += NO_REPLY_WEIGHT
        reasons.append("No-reply sender")

    probability = min(100, score)
    return SpamVerdict(
        is_spam=probability >= spam_threshold,
        probability=probability,
        reasoning=_tagged(reasons, "No strong spam indicators detected"),
        ai_derived=False,
    )


def rule_based_response(subject: str, body: str) -> ResponseVerdict:
    """Score whether a message asks for a reply."""
    text = f"{subject} {body}".lower()
    score = 0
    reasons: list[str] = []

    questions = text.count("?")
    if questions:
        score += QUESTION_WEIGHT
        reasons.append(f"Contains {questions} question(s)")

    for keyword in ACTION_KEYWORDS:
        if keyword in text:
            score += ACTION_WEIGHT
            reasons.append(f"Contains action keyword: {keyword}")

    for keyword in URGENT_KEYWORDS:
        if keyword in text:
            score += URGENT_WEIGHT
            reasons.append(f"Urgent: contains {keyword}")

    confidence = min(100, score)
    return ResponseVerdict(
        needs_response=confidence >= RESPONSE_CUTOFF,
        confidence=confidence,
        reasoning=_tagged(reasons, "Informational message, no clear response needed"),
        ai_derived=False,
    )


def rule_based_sentiment(subject: str, body: str) -> SentimentVerdict:
    """Classify tone by counting polarity words."""
    text = f"{subject} {body}".lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in text)
    negative = sum(1 for word in NEGATIVE_WORDS if word in text)

    if positive == negative:
        return SentimentVerdict(sentiment=Sentiment.NEUTRAL, confidence=50, ai_derived=False)

    sentiment = Sentiment.POSITIVE if positive > negative else Sentiment.NEGATIVE
    confidence = min(90, 50 + 10 * abs(positive - negative))
    return SentimentVerdict(sentiment=sentiment, confidence=confidence, ai_derived=False)


def template_reply(sentiment: Sentiment = Sentiment.NEUTRAL) -> ReplyDraft:
    """Return a canned reply matching the message tone."""
    return ReplyDraft(
        reply_text=REPLY_TEMPLATES.get(sentiment, REPLY_TEMPLATES[Sentiment.NEUTRAL]),
        language="en",
        ai_derived=False,
    )
