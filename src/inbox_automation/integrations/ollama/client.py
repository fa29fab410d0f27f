"""Ollama client used as the AI inference backend."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from inbox_automation.exceptions import InferenceError

if TYPE_CHECKING:
    from inbox_automation.core.config import AutomationSettings

logger = structlog.get_logger(__name__)


@dataclass
class OllamaStatus:
    """Availability snapshot of the inference backend.

    Attributes:
        available: Whether the last call or health check succeeded.
        endpoint: "local" or "remote".
        model: Model name used for completions.
        last_check: When availability last changed or was checked.
        failure_count: Consecutive failures since the last success.
    """

    available: bool
    endpoint: str
    model: str
    last_check: datetime
    failure_count: int = 0
    models: list[str] = field(default_factory=list)

    @property
    def degraded_mode(self) -> bool:
        """Whether callers should use rule-based fallbacks."""
        return not self.available


class OllamaClient:
    """Client for the Ollama chat API.

    Tracks backend availability so callers can poll ``available`` before
    each request and degrade to heuristics instead of waiting on timeouts.
    After ``retry_after`` seconds without a success, ``available`` reports
    True again so the next request tries the backend. A connection failure
    against the local endpoint switches to the remote endpoint when one is
    configured.

    Typical usage:
        async with OllamaClient(local_url="http://localhost:11434") as client:
            if client.available:
                text = await client.complete("Classify this email ...")
    """

    def __init__(
        self,
        local_url: str = "http://localhost:11434",
        remote_url: str | None = None,
        model: str = "llama3.1:8b",
        use_local: bool = True,
        timeout: float = 5.0,
        retry_after: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Ollama client.

        Args:
            local_url: Base URL of the local Ollama server.
            remote_url: Optional base URL used when local is unreachable.
            model: Model name for completions.
            use_local: Start on the local endpoint.
            timeout: Per-request timeout in seconds.
            retry_after: Seconds after a failure before the backend is tried again.
            http_client: Optional preconfigured HTTP client (for tests).
        """
        self.local_url = local_url.rstrip("/")
        self.remote_url = remote_url.rstrip("/") if remote_url else None
        self.model = model
        self.use_local = use_local or self.remote_url is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self.retry_after = retry_after
        self._available = True
        self._failure_count = 0
        self._failed_at = 0.0
        self._last_check = datetime.now(UTC)

    @classmethod
    def from_settings(
        cls, settings: AutomationSettings, http_client: httpx.AsyncClient | None = None
    ) -> OllamaClient:
        """Build a client from automation settings."""
        return cls(
            local_url=settings.ollama_local_url,
            remote_url=settings.ollama_remote_url,
            model=settings.ollama_model,
            use_local=settings.ollama_use_local,
            timeout=settings.ai_timeout_seconds,
            retry_after=settings.ai_retry_after_seconds,
            http_client=http_client,
        )

    @property
    def base_url(self) -> str:
        """Endpoint currently in use."""
        if self.use_local or self.remote_url is None:
            return self.local_url
        return self.remote_url

    @property
    def available(self) -> bool:
        """Whether the backend is believed to be reachable.

        An unavailable backend becomes eligible again once ``retry_after``
        seconds have passed since the last failure.
        """
        if self._available:
            return True
        return time.monotonic() - self._failed_at >= self.retry_after

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> OllamaClient:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        await self.close()

    def get_status(self) -> OllamaStatus:
        """Return the current availability snapshot."""
        return OllamaStatus(
            available=self.available,
            endpoint="local" if self.use_local else "remote",
            model=self.model,
            last_check=self._last_check,
            failure_count=self._failure_count,
        )

    async def health_check(self) -> OllamaStatus:
        """Query ``/api/tags`` and update availability.

        Returns:
            Status including the model names the server reports.
        """
        try:
            response = await self._client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._mark_failure()
            await logger.awarning("ollama_health_check_failed", error=str(e))
            return self.get_status()

        self._mark_success()
        status = self.get_status()
        status.models = [m.get("name", "") for m in payload.get("models", [])]
        return status

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a chat completion.

        Args:
            prompt: User message content.
            system: Optional system instruction.
            temperature: Sampling temperature.
            max_tokens: Optional cap on generated tokens.

        Returns:
            Completion text.

        Raises:
            InferenceError: If the request fails.
        """
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        options: dict[str, Any] = {"temperature": temperature, "top_p": 0.9}
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        body = {"model": self.model, "messages": messages, "stream": False, "options": options}

        try:
            response = await self._client.post(f"{self.base_url}/api/chat", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            self._mark_failure()
            if self.use_local and self.remote_url:
                await logger.awarning("ollama_local_unreachable_switching_remote", error=str(e))
                self.use_local = False
                return await self.complete(
                    prompt, system=system, temperature=temperature, max_tokens=max_tokens
                )
            raise InferenceError(f"Ollama request failed: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            self._mark_failure()
            raise InferenceError(f"Ollama request failed: {e}") from e

        if self._failure_count > 0:
            await logger.ainfo("ollama_recovered", failures=self._failure_count)
        self._mark_success()

        message = data.get("message") or {}
        return str(message.get("content", ""))

    def _mark_failure(self) -> None:
        self._available = False
        self._failure_count += 1
        self._failed_at = time.monotonic()
        self._last_check = datetime.now(UTC)

    def _mark_success(self) -> None:
        self._available = True
        self._failure_count = 0
        self._last_check = datetime.now(UTC)
