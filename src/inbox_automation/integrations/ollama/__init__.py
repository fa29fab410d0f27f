"""Ollama inference backend integration."""

from inbox_automation.integrations.ollama.client import OllamaClient, OllamaStatus
from inbox_automation.integrations.ollama.parsing import clamp_percentage, parse_json_response

__all__ = [
    "OllamaClient",
    "OllamaStatus",
    "clamp_percentage",
    "parse_json_response",
]
