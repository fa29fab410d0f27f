"""Shared test fixtures for inbox-automation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from inbox_automation.core.config import AutomationSettings
from inbox_automation.schemas.message import Message
from tests.fakes import (
    FakeAI,
    FakeAnalysisStore,
    FakeEventRecorder,
    FakeMail,
    FakeMessageActions,
    FakeMessageStore,
    FakePreferencesStore,
    FakePush,
    FakeReplyLog,
    InMemoryOperationStore,
)

# Wednesday 2024-01-10 14:00 UTC
WEEKDAY_AFTERNOON = datetime(2024, 1, 10, 14, 0, tzinfo=UTC)


@pytest.fixture
def settings() -> AutomationSettings:
    """Settings independent of the environment."""
    return AutomationSettings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Factory for messages with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Message:
        counter["n"] += 1
        data: dict[str, Any] = {
            "id": f"msg-{counter['n']}",
            "user_id": "user-1",
            "account_id": "acct-1",
            "external_id": f"ext-{counter['n']}",
            "subject": "Project update",
            "content": "Here is the latest status of the project.",
            "sender": "alice@example.com",
            "timestamp": WEEKDAY_AFTERNOON,
        }
        data.update(overrides)
        return Message(**data)

    return _make


@pytest.fixture
def message_store() -> FakeMessageStore:
    return FakeMessageStore()


@pytest.fixture
def analysis_store(message_store: FakeMessageStore) -> FakeAnalysisStore:
    return FakeAnalysisStore(message_store)


@pytest.fixture
def ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def mail() -> FakeMail:
    return FakeMail()


@pytest.fixture
def push() -> FakePush:
    return FakePush()


@pytest.fixture
def reply_log() -> FakeReplyLog:
    return FakeReplyLog()


@pytest.fixture
def preferences_store() -> FakePreferencesStore:
    return FakePreferencesStore()


@pytest.fixture
def operation_store() -> InMemoryOperationStore:
    return InMemoryOperationStore()


@pytest.fixture
def message_actions() -> FakeMessageActions:
    return FakeMessageActions(known=["msg-1", "msg-2", "msg-3"])


@pytest.fixture
def event_recorder() -> FakeEventRecorder:
    return FakeEventRecorder()
