"""Safety policy for automatic delete and reply actions.

Pure decision logic: no I/O, no clocks, no logging. Callers supply the
current time and today's reply count.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from inbox_automation.core.time_windows import WEEKDAYS, is_local_time_within
from inbox_automation.schemas.analysis import AnalysisResult
from inbox_automation.schemas.policy import AutomationPolicy


@dataclass(frozen=True)
class AutomationDecision:
    """Outcome of a policy evaluation.

    Attributes:
        allowed: Whether the automatic action may run.
        reason: Why it was allowed or rejected.
    """

    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def sender_matches(sender: str, entries: list[str]) -> bool:
    """Case-insensitive substring match of a sender against list entries."""
    lowered = sender.lower()
    return any(entry.strip() and entry.strip().lower() in lowered for entry in entries)


def is_business_hours(policy: AutomationPolicy, now: datetime) -> bool:
    """Check whether ``now`` falls in the policy's weekday business window."""
    return is_local_time_within(
        now,
        policy.timezone,
        policy.business_hours_start,
        policy.business_hours_end,
        days=WEEKDAYS,
    )


def explain_auto_delete(policy: AutomationPolicy, result: AnalysisResult) -> AutomationDecision:
    """Evaluate auto-delete and report the deciding condition."""
    if not policy.auto_delete_enabled:
        return AutomationDecision(False, "auto-delete disabled")
    if not result.is_spam:
        return AutomationDecision(False, "not classified as spam")
    if result.spam_probability < policy.spam_threshold:
        return AutomationDecision(
            False,
            f"spam probability {result.spam_probability} below threshold {policy.spam_threshold}",
        )
    return AutomationDecision(True, f"spam probability {result.spam_probability}")


def evaluate_auto_delete(policy: AutomationPolicy, result: AnalysisResult) -> bool:
    """Decide whether a message should be moved to trash automatically."""
    return explain_auto_delete(policy, result).allowed


def explain_auto_reply(
    policy: AutomationPolicy,
    result: AnalysisResult,
    sender: str,
    now: datetime,
    replies_today: int = 0,
) -> AutomationDecision:
    """Evaluate auto-reply and report the first failing condition."""
    if not policy.auto_reply_enabled:
        return AutomationDecision(False, "auto-reply disabled")
    if not result.needs_response:
        return AutomationDecision(False, "no response needed")
    if result.response_confidence < policy.response_confidence_threshold:
        return AutomationDecision(
            False,
            f"response confidence {result.response_confidence} below threshold "
            f"{policy.response_confidence_threshold}",
        )
    if sender_matches(sender, policy.sender_blacklist):
        return AutomationDecision(False, "sender is blacklisted")
    if policy.sender_whitelist and not sender_matches(sender, policy.sender_whitelist):
        return AutomationDecision(False, "sender not in whitelist")
    if policy.business_hours_only and not is_business_hours(policy, now):
        return AutomationDecision(False, "outside business hours")
    if replies_today >= policy.max_replies_per_day:
        return AutomationDecision(
            False, f"daily reply limit reached ({replies_today}/{policy.max_replies_per_day})"
        )
    return AutomationDecision(True, "all auto-reply conditions met")


def evaluate_auto_reply(
    policy: AutomationPolicy,
    result: AnalysisResult,
    sender: str,
    now: datetime,
    replies_today: int = 0,
) -> bool:
    """Decide whether an automatic reply may be sent."""
    return explain_auto_reply(policy, result, sender, now, replies_today).allowed


class AutomationGate:
    """Object facade over the gate functions for dependency injection."""

    def evaluate_auto_delete(self, policy: AutomationPolicy, result: AnalysisResult) -> bool:
        return evaluate_auto_delete(policy, result)

    def evaluate_auto_reply(
        self,
        policy: AutomationPolicy,
        result: AnalysisResult,
        sender: str,
        now: datetime,
        replies_today: int = 0,
    ) -> bool:
        return evaluate_auto_reply(policy, result, sender, now, replies_today)

    def explain_auto_delete(
        self, policy: AutomationPolicy, result: AnalysisResult
    ) -> AutomationDecision:
        return explain_auto_delete(policy, result)

    def explain_auto_reply(
        self,
        policy: AutomationPolicy,
        result: AnalysisResult,
        sender: str,
        now: datetime,
        replies_today: int = 0,
    ) -> AutomationDecision:
        return explain_auto_reply(policy, result, sender, now, replies_today)
