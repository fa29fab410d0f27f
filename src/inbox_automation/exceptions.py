"""Exceptions raised by the automation pipeline."""

from __future__ import annotations


class AutomationError(Exception):
    """Base exception for automation pipeline errors."""

    pass


class MessageNotFoundError(AutomationError):
    """Raised when a message to analyze does not exist."""

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message not found: {message_id}")


class InferenceError(AutomationError):
    """Raised when the AI backend fails to produce a completion."""

    pass


class OperationNotFoundError(AutomationError):
    """Raised when a queued operation cannot be found."""

    def __init__(self, operation_id: str) -> None:
        self.operation_id = operation_id
        super().__init__(f"Queued operation not found: {operation_id}")


class PermanentOperationError(AutomationError):
    """Raised by operation handlers for failures that retrying cannot fix.

    Examples are a missing target message or a payload the provider rejects.
    """

    pass


class PipelineNotConfiguredError(AutomationError):
    """Raised when background tasks run before the pipeline is registered."""

    pass


class TransientOperationError(AutomationError):
    """Raised by operation handlers for failures worth retrying."""

    pass
