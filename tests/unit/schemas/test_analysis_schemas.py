"""Tests for analysis and policy schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from inbox_automation.schemas.analysis import AnalysisResult, AnalysisSource
from inbox_automation.schemas.policy import (
    AutomationPolicy,
    NotificationPreferences,
    QuietHours,
    UrgentKeywordRule,
)


class TestAnalysisResult:
    """Tests for AnalysisResult."""

    def test_is_spam_derived_from_probability(self) -> None:
        """Test is_spam defaults to probability >= 80."""
        assert AnalysisResult(message_id="m1", spam_probability=80).is_spam is True
        assert AnalysisResult(message_id="m2", spam_probability=79).is_spam is False

    def test_is_spam_override(self) -> None:
        """Test an explicit is_spam wins over the derived value."""
        result = AnalysisResult(message_id="m1", spam_probability=95, is_spam=False)

        assert result.is_spam is False

    def test_probability_bounds(self) -> None:
        """Test spam probability is limited to 0-100."""
        with pytest.raises(ValidationError):
            AnalysisResult(message_id="m1", spam_probability=101)

    def test_is_degraded(self) -> None:
        """Test heuristic and mixed results are flagged degraded."""
        assert not AnalysisResult(message_id="m1", spam_probability=0).is_degraded
        assert AnalysisResult(
            message_id="m1", spam_probability=0, source=AnalysisSource.MIXED
        ).is_degraded


class TestAutomationPolicy:
    """Tests for AutomationPolicy."""

    def test_defaults(self) -> None:
        """Test conservative defaults."""
        policy = AutomationPolicy()

        assert policy.auto_delete_enabled is False
        assert policy.auto_reply_enabled is False
        assert policy.spam_threshold == 80
        assert policy.response_confidence_threshold == 85
        assert policy.max_replies_per_day == 50

    def test_max_replies_bounds(self) -> None:
        """Test max_replies_per_day is within 1-100."""
        with pytest.raises(ValidationError):
            AutomationPolicy(max_replies_per_day=0)
        with pytest.raises(ValidationError):
            AutomationPolicy(max_replies_per_day=101)

    def test_rejects_bad_business_hours(self) -> None:
        """Test business hours must be HH:MM."""
        with pytest.raises(ValidationError):
            AutomationPolicy(business_hours_start="9am")


class TestNotificationPreferences:
    """Tests for NotificationPreferences."""

    def test_urgent_keywords_from_enabled_rules(self) -> None:
        """Test keywords are lowercased and disabled rules ignored."""
        preferences = NotificationPreferences(
            urgent_keyword_rules=[
                UrgentKeywordRule(keywords=["URGENT", " "]),
                UrgentKeywordRule(enabled=False, keywords=["invoice"]),
            ]
        )

        assert preferences.urgent_keywords == ["urgent"]

    def test_quiet_hours_validation(self) -> None:
        """Test quiet hours reject invalid clock values."""
        with pytest.raises(ValidationError):
            QuietHours(start="24:00")
