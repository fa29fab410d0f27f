"""Tests for the Ollama client."""

from __future__ import annotations

import json

import httpx
import pytest

from inbox_automation.core.config import AutomationSettings
from inbox_automation.exceptions import InferenceError
from inbox_automation.integrations.ollama.client import OllamaClient


def _chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})


def _client(handler: httpx.MockTransport, **kwargs: object) -> OllamaClient:
    return OllamaClient(http_client=httpx.AsyncClient(transport=handler), **kwargs)  # type: ignore[arg-type]


class TestOllamaClientComplete:
    """Tests for OllamaClient.complete."""

    @pytest.mark.asyncio
    async def test_posts_chat_request(self) -> None:
        """Test request body and returned content."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _chat_response('{"probability": 10}')

        client = _client(httpx.MockTransport(handler), model="test-model")

        text = await client.complete("Classify", system="Be strict", max_tokens=100)

        assert text == '{"probability": 10}'
        request = seen[0]
        assert request.url == httpx.URL("http://localhost:11434/api/chat")
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert body["stream"] is False
        assert body["messages"][0] == {"role": "system", "content": "Be strict"}
        assert body["messages"][1] == {"role": "user", "content": "Classify"}
        assert body["options"]["num_predict"] == 100
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_marks_unavailable(self) -> None:
        """Test server errors raise InferenceError and flip availability."""
        client = _client(httpx.MockTransport(lambda request: httpx.Response(500)))

        with pytest.raises(InferenceError):
            await client.complete("hi")

        assert client.available is False
        assert client.get_status().failure_count == 1
        assert client.get_status().degraded_mode is True
        await client.close()

    @pytest.mark.asyncio
    async def test_success_recovers_availability(self) -> None:
        """Test a successful call marks the backend available again."""
        responses = iter([httpx.Response(503), _chat_response("ok")])
        client = _client(httpx.MockTransport(lambda request: next(responses)))

        with pytest.raises(InferenceError):
            await client.complete("first")
        assert client.available is False

        assert await client.complete("second") == "ok"
        assert client.available is True
        assert client.get_status().failure_count == 0
        await client.close()

    @pytest.mark.asyncio
    async def test_fails_over_to_remote(self) -> None:
        """Test a local connection failure switches to the remote endpoint."""
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "localhost":
                raise httpx.ConnectError("refused", request=request)
            return _chat_response("remote answer")

        client = _client(httpx.MockTransport(handler), remote_url="https://ollama.example.com")

        text = await client.complete("hi")

        assert text == "remote answer"
        assert hosts == ["localhost", "ollama.example.com"]
        assert client.base_url == "https://ollama.example.com"
        assert client.available is True
        await client.close()

    @pytest.mark.asyncio
    async def test_connect_error_without_remote_raises(self) -> None:
        """Test connection failure with no remote configured."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(httpx.MockTransport(handler))

        with pytest.raises(InferenceError):
            await client.complete("hi")
        assert client.available is False
        await client.close()


class TestOllamaClientHealthCheck:
    """Tests for OllamaClient.health_check."""

    @pytest.mark.asyncio
    async def test_reports_models(self) -> None:
        """Test model names are reported from /api/tags."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llama3.1:8b"}]})

        async with _client(httpx.MockTransport(handler)) as client:
            status = await client.health_check()

        assert status.available is True
        assert status.models == ["llama3.1:8b"]
        assert status.endpoint == "local"

    @pytest.mark.asyncio
    async def test_failure_marks_unavailable(self) -> None:
        """Test a failed health check flips availability."""
        async with _client(httpx.MockTransport(lambda request: httpx.Response(502))) as client:
            status = await client.health_check()

        assert status.available is False
        assert status.failure_count == 1


class TestOllamaClientRecovery:
    """Tests for availability after a backend outage."""

    @pytest.mark.asyncio
    async def test_unavailable_until_retry_after_elapses(self) -> None:
        """Test the backend is offered again once the cooldown has passed."""
        client = _client(httpx.MockTransport(lambda request: httpx.Response(503)), retry_after=30.0)

        with pytest.raises(InferenceError):
            await client.complete("hi")
        assert client.available is False
        assert client.get_status().degraded_mode is True

        client._failed_at -= 31.0

        assert client.available is True
        assert client.get_status().failure_count == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_outage_then_recovery(self) -> None:
        """Test calls reach the backend again after it comes back."""
        responses = iter([httpx.Response(503)] * 3 + [_chat_response("back")])
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return next(responses)

        client = _client(httpx.MockTransport(handler), retry_after=0.0)

        for _ in range(3):
            assert client.available is True
            with pytest.raises(InferenceError):
                await client.complete("hi")

        assert client.available is True
        assert await client.complete("hi") == "back"
        assert len(calls) == 4
        assert client.get_status().failure_count == 0
        await client.close()

    def test_from_settings(self) -> None:
        """Test settings flow into the client."""
        settings = AutomationSettings(  # type: ignore[call-arg]
            _env_file=None,
            ollama_model="mistral",
            ollama_remote_url="https://ollama.example.com/",
            ai_retry_after_seconds=12.5,
        )

        client = OllamaClient.from_settings(settings)

        assert client.model == "mistral"
        assert client.remote_url == "https://ollama.example.com"
        assert client.retry_after == 12.5
        assert client.base_url == "http://localhost:11434"
