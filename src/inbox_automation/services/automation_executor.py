"""Executes gate decisions against the mail provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import TYPE_CHECKING

import structlog

from inbox_automation.core.time_windows import to_local
from inbox_automation.services import automation_gate

if TYPE_CHECKING:
    from inbox_automation.protocols import MailActions, ReplyLog
    from inbox_automation.schemas.analysis import AnalysisResult
    from inbox_automation.schemas.message import Message
    from inbox_automation.schemas.policy import AutomationPolicy
    from inbox_automation.services.analysis_orchestrator import AnalysisOrchestrator
    from inbox_automation.services.event_sink import AutomationEventSink

logger = structlog.get_logger(__name__)


@dataclass
class ExecutionOutcome:
    """What the executor did for one message.

    Attributes:
        deleted: Message was moved to trash.
        replied: An automatic reply was sent.
        errors: Collaborator failures, as readable strings.
    """

    deleted: bool = False
    replied: bool = False
    errors: list[str] = field(default_factory=list)


def start_of_local_day(now: datetime, timezone: str) -> datetime:
    """Midnight of the user's current local day, as an aware datetime."""
    local = to_local(now, timezone)
    return datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)


class AutomationExecutor:
    """Runs auto-delete and auto-reply for analyzed messages.

    Decisions come from the pure gate; this class performs the side effects
    through ``MailActions`` and records replies for the daily limit. Policy
    rejections are logged at info level and are not errors.
    """

    def __init__(
        self,
        mail: MailActions,
        reply_log: ReplyLog,
        orchestrator: AnalysisOrchestrator | None = None,
        event_sink: AutomationEventSink | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            mail: Provider mailbox actions.
            reply_log: Reply history used for the daily rate limit.
            orchestrator: Used to draft a reply when none was stored.
            event_sink: Optional sink for ``auto_deleted``/``auto_replied`` events.
        """
        self.mail = mail
        self.reply_log = reply_log
        self.orchestrator = orchestrator
        self.event_sink = event_sink

    async def apply(
        self,
        user_id: str,
        policy: AutomationPolicy,
        message: Message,
        result: AnalysisResult,
        now: datetime,
    ) -> ExecutionOutcome:
        """Apply the user's policy to one analyzed message.

        A deleted message is never replied to.
        """
        outcome = ExecutionOutcome()

        delete_decision = automation_gate.explain_auto_delete(policy, result)
        if delete_decision.allowed:
            outcome.deleted = await self._trash(user_id, message, result, outcome)
            if outcome.deleted:
                return outcome
        elif policy.auto_delete_enabled and result.is_spam:
            await logger.ainfo(
                "auto_delete_rejected",
                user_id=user_id,
                message_id=message.id,
                reason=delete_decision.reason,
            )

        if not policy.auto_reply_enabled or not result.needs_response:
            return outcome

        since = start_of_local_day(now, policy.timezone)
        replies_today = await self.reply_log.count_since(user_id, since)
        reply_decision = automation_gate.explain_auto_reply(
            policy, result, message.sender, now, replies_today
        )
        if not reply_decision.allowed:
            await logger.ainfo(
                "auto_reply_rejected",
                user_id=user_id,
                message_id=message.id,
                reason=reply_decision.reason,
            )
            return outcome

        outcome.replied = await self._reply(user_id, message, result, now, outcome)
        return outcome

    async def _trash(
        self,
        user_id: str,
        message: Message,
        result: AnalysisResult,
        outcome: ExecutionOutcome,
    ) -> bool:
        try:
            trashed = await self.mail.trash(message.account_id, message.external_id)
        except Exception as e:
            await logger.aerror("auto_delete_failed", message_id=message.id, error=str(e))
            outcome.errors.append(f"Auto-delete {message.id}: {e}")
            return False

        if not trashed:
            outcome.errors.append(f"Auto-delete {message.id}: provider refused trash")
            return False

        await logger.ainfo(
            "auto_deleted",
            user_id=user_id,
            message_id=message.id,
            spam_probability=result.spam_probability,
        )
        if self.event_sink is not None:
            self.event_sink.publish(
                "auto_deleted",
                user_id,
                {"message_id": message.id, "spam_probability": result.spam_probability},
            )
        return True

    async def _reply(
        self,
        user_id: str,
        message: Message,
        result: AnalysisResult,
        now: datetime,
        outcome: ExecutionOutcome,
    ) -> bool:
        reply_text = result.generated_reply
        if not reply_text and self.orchestrator is not None:
            draft = await self.orchestrator.generate_reply(message, result.sentiment)
            reply_text = draft.reply_text
        if not reply_text:
            outcome.errors.append(f"Auto-reply {message.id}: no reply text available")
            return False

        try:
            sent = await self.mail.send_reply(message.id, reply_text, False)
        except Exception as e:
            await logger.aerror("auto_reply_failed", message_id=message.id, error=str(e))
            outcome.errors.append(f"Auto-reply {message.id}: {e}")
            return False

        if not sent:
            outcome.errors.append(f"Auto-reply {message.id}: provider refused send")
            return False

        await self.reply_log.record(user_id, message.id, now)
        await logger.ainfo("auto_replied", user_id=user_id, message_id=message.id)
        if self.event_sink is not None:
            self.event_sink.publish("auto_replied", user_id, {"message_id": message.id})
        return True

    async def restore(self, message: Message) -> bool:
        """Move an auto-deleted message back out of trash.

        Returns:
            True if the provider restored the message.
        """
        try:
            restored = await self.mail.untrash(message.account_id, message.external_id)
        except Exception as e:
            await logger.aerror("restore_from_trash_failed", message_id=message.id, error=str(e))
            return False

        await logger.ainfo("restore_from_trash", message_id=message.id, restored=restored)
        return restored
