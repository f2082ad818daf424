"""Unit tests for the model provider gateway."""

from __future__ import annotations

from typing import List

import pytest
from pydantic import BaseModel

from pagescore.gateway import GatewayError, ModelGateway, Prompt, parse_json_object
from pagescore.gateway.gateway import InvalidResponse
from pagescore.protocols import ProviderError
from tests.helpers import ScriptedBackend, metric_delta

PROMPT = Prompt(system="You are a test.", user="Answer.")


class Answer(BaseModel):
    label: str
    score: int


GOOD = {"label": "ok", "score": 7}


class TestOrderedFallback:
    """Test provider fallback order."""

    @pytest.mark.asyncio
    async def test_first_provider_answers(self):
        """Test that a healthy first provider short-circuits the rest."""
        first = ScriptedBackend("first", GOOD)
        second = ScriptedBackend("second", GOOD)
        gateway = ModelGateway([first, second])

        result = await gateway.structured_call(PROMPT, Answer)

        assert result.ok
        assert result.value == Answer(label="ok", score=7)
        assert result.provider == "first"
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_third_provider_satisfies_after_two_failures(self):
        """Test that two failing providers fall through to the third."""
        backends = [
            ScriptedBackend("first", ProviderError("first", "HTTP 500")),
            ScriptedBackend("second", "this is not json at all"),
            ScriptedBackend("third", GOOD),
        ]
        gateway = ModelGateway(backends)

        result = await gateway.structured_call(PROMPT, Answer)

        assert result.ok
        assert result.provider == "third"
        assert [name for name, _ in result.attempts] == ["first", "second"]
        assert all(b.calls == 1 for b in backends)

    @pytest.mark.asyncio
    async def test_all_providers_fail_returns_typed_failure(self):
        """Test that exhaustion is returned as a GatewayError, not raised."""
        backends = [
            ScriptedBackend("first", RuntimeError("boom")),
            ScriptedBackend("second", None),
            ScriptedBackend("third", {"label": "missing score"}),
        ]
        gateway = ModelGateway(backends)

        result = await gateway.structured_call(PROMPT, Answer)

        assert not result.ok
        assert result.value is None
        assert isinstance(result.error, GatewayError)
        assert [name for name, _ in result.error.attempts] == ["first", "second", "third"]
        assert "schema validation failed" in result.error.attempts[2][1]

    @pytest.mark.asyncio
    async def test_no_backends(self):
        """Test that a gateway without backends is falsy and fails cleanly."""
        gateway = ModelGateway([])

        result = await gateway.structured_call(PROMPT, Answer)

        assert not gateway
        assert not result.ok
        assert "no providers configured" in str(result.error)

    @pytest.mark.asyncio
    async def test_timeout_moves_to_next_provider(self):
        """Test that a slow provider is abandoned after the timeout."""
        slow = ScriptedBackend("slow", GOOD, delay=1.0)
        fast = ScriptedBackend("fast", GOOD)
        gateway = ModelGateway([slow, fast], timeout_seconds=0.05)

        result = await gateway.structured_call(PROMPT, Answer)

        assert result.provider == "fast"
        assert "timed out" in result.attempts[0][1]


class TestResponseParsing:
    """Test free-text responses."""

    @pytest.mark.asyncio
    async def test_fenced_json_text(self):
        """Test that markdown code fences are stripped before parsing."""
        gateway = ModelGateway([ScriptedBackend("text", '```json\n{"label": "fenced", "score": 3}\n```')])

        result = await gateway.structured_call(PROMPT, Answer)

        assert result.value == Answer(label="fenced", score=3)

    def test_json_embedded_in_chatter(self):
        """Test that the first object is extracted from surrounding prose."""
        data = parse_json_object('Sure! Here you go: {"label": "x", "score": 1} Hope that helps.')

        assert data == {"label": "x", "score": 1}

    @pytest.mark.parametrize("text", ["no braces here", "[1, 2, 3]", "{not: valid}"])
    def test_unparseable_text_raises(self, text):
        """Test that text without a JSON object is rejected."""
        with pytest.raises(InvalidResponse):
            parse_json_object(text)


class TestGatewayMetrics:
    """Test per-provider bookkeeping."""

    @pytest.mark.asyncio
    async def test_get_metrics_counts_attempts_and_successes(self):
        """Test that attempts and successes are tracked per provider."""
        gateway = ModelGateway([ScriptedBackend("flaky", RuntimeError("x")), ScriptedBackend("steady", GOOD)])

        await gateway.structured_call(PROMPT, Answer)
        await gateway.structured_call(PROMPT, Answer)
        metrics = gateway.get_metrics()

        assert metrics["flaky"]["attempts"] == 2
        assert metrics["flaky"]["successes"] == 0
        assert metrics["steady"]["success_rate"] == 1.0

    @pytest.mark.asyncio
    async def test_prometheus_counter_labels(self):
        """Test that the gateway_calls counter is labelled by provider and outcome."""
        gateway = ModelGateway([ScriptedBackend("metric-fail", RuntimeError("x")), ScriptedBackend("metric-ok", GOOD)])

        with metric_delta("pagescore_gateway_calls_total", {"provider": "metric-fail", "outcome": "failure"}):
            with metric_delta("pagescore_gateway_calls_total", {"provider": "metric-ok", "outcome": "success"}):
                await gateway.structured_call(PROMPT, Answer)

    @pytest.mark.asyncio
    async def test_close_closes_every_backend(self):
        """Test that close() reaches all backends."""
        backends: List[ScriptedBackend] = [ScriptedBackend("a"), ScriptedBackend("b")]

        await ModelGateway(backends).close()

        assert all(b.closed for b in backends)

    @pytest.mark.asyncio
    async def test_request_carries_schema(self):
        """Test that backends receive the pydantic JSON schema."""
        backend = ScriptedBackend("a", GOOD)

        await ModelGateway([backend]).structured_call(PROMPT, Answer, temperature=0.2, max_tokens=50)
        request = backend.requests[0]

        assert request.schema_name == "Answer"
        assert set(request.json_schema["properties"]) == {"label", "score"}
        assert request.temperature == 0.2
        assert request.max_tokens == 50
