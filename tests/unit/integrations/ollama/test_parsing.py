"""Tests for model output parsing."""

from __future__ import annotations

import pytest

from inbox_automation.integrations.ollama.parsing import clamp_percentage, parse_json_response


class TestParseJsonResponse:
    """Tests for parse_json_response."""

    def test_plain_json(self) -> None:
        """Test a bare JSON object."""
        assert parse_json_response('{"probability": 12}') == {"probability": 12}

    def test_fenced_block(self) -> None:
        """Test a fenced json code block."""
        text = 'Here you go:\n```json\n{"sentiment": "positive", "confidence": 80}\n```\nDone.'

        assert parse_json_response(text) == {"sentiment": "positive", "confidence": 80}

    def test_object_wrapped_in_prose(self) -> None:
        """Test free text around the object is ignored."""
        text = 'Sure! {"needsResponse": true, "confidence": 75} Hope that helps.'

        assert parse_json_response(text) == {"needsResponse": True, "confidence": 75}

    def test_braces_inside_strings(self) -> None:
        """Test braces within string values do not end the object early."""
        text = 'Result: {"reasoning": "uses {curly} text", "probability": 5} trailing }'

        assert parse_json_response(text) == {"reasoning": "uses {curly} text", "probability": 5}

    def test_nested_objects(self) -> None:
        """Test the outermost object is returned."""
        text = 'x {"a": {"b": 1}, "c": 2} y'

        assert parse_json_response(text) == {"a": {"b": 1}, "c": 2}

    @pytest.mark.parametrize("text", ["", "no json here", "{broken", "[1, 2, 3]"])
    def test_malformed_returns_empty(self, text: str) -> None:
        """Test malformed output fails soft."""
        assert parse_json_response(text) == {}


class TestClampPercentage:
    """Tests for clamp_percentage."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(50, 50), (72.6, 73), ("85", 85), (-5, 0), (150, 100), (float("inf"), 100)],
    )
    def test_coerces_and_clamps(self, value: object, expected: int) -> None:
        """Test numeric coercion and clamping."""
        assert clamp_percentage(value, 0) == expected

    @pytest.mark.parametrize("value", [None, "high", float("nan"), {}])
    def test_defaults_on_garbage(self, value: object) -> None:
        """Test non-numeric input returns the default."""
        assert clamp_percentage(value, 42) == 42
