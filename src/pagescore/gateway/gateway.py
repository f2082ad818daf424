"""
Provider-agnostic model gateway.

Tries the configured backends in order and returns the first answer that
parses and validates against the expected pydantic shape.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from pagescore.observability.metrics import METRICS
from pagescore.protocols import PageScoreError

from .protocols import ModelBackend, ModelRequest, ModelResponse, Prompt

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class GatewayError(PageScoreError):
    """Every provider failed. Returned inside a GatewayResult, not raised."""

    def __init__(self, attempts: Sequence[Tuple[str, str]]) -> None:
        self.attempts = list(attempts)
        if self.attempts:
            detail = "; ".join(f"{name}: {reason}" for name, reason in self.attempts)
        else:
            detail = "no providers configured"
        super().__init__(f"All model providers failed ({detail})")


@dataclass
class GatewayResult(Generic[T]):
    """Outcome of a structured call: a validated value, or the failure."""

    value: Optional[T] = None
    provider: Optional[str] = None
    error: Optional[GatewayError] = None
    attempts: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and self.error is None


class InvalidResponse(PageScoreError):
    """A provider answered, but not with a usable object."""


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object from model text, tolerating code fences and chatter."""
    cleaned = _FENCE.sub("", text.strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _OBJECT.search(cleaned)
        if not match:
            raise InvalidResponse("no JSON object in response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise InvalidResponse(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidResponse(f"expected a JSON object, got {type(data).__name__}")
    return data


class ModelGateway:
    """
    Ordered fallback over model backends.

    Features:
    - Bounded per-provider timeout
    - Native structured output and free-text JSON handled alike
    - Pydantic validation of every answer
    - Never raises: exhaustion is reported as a typed failure
    - Per-provider attempt/success metrics
    """

    def __init__(self, backends: Sequence[ModelBackend], timeout_seconds: float = 30.0) -> None:
        self.backends = list(backends)
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(component="ModelGateway")
        self._call_metrics: Dict[str, Dict[str, float]] = {
            backend.name: {"attempts": 0, "successes": 0, "total_time": 0.0} for backend in self.backends
        }

    @property
    def providers(self) -> List[str]:
        return [backend.name for backend in self.backends]

    def __bool__(self) -> bool:
        return bool(self.backends)

    async def structured_call(
        self,
        prompt: Prompt,
        shape: Type[T],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GatewayResult[T]:
        """
        Get an answer validated against `shape` from the first provider that can give one.

        Args:
            prompt: System and user prompt
            shape: Pydantic model the answer must validate against
            temperature: Optional sampling temperature override
            max_tokens: Optional output token limit override

        Returns:
            GatewayResult holding the validated value and provider, or a GatewayError
        """
        request = ModelRequest(
            prompt=prompt,
            schema_name=shape.__name__,
            json_schema=shape.model_json_schema(),
            temperature=temperature,
            max_tokens=max_tokens,
        )
        attempts: List[Tuple[str, str]] = []

        for backend in self.backends:
            start_time = time.monotonic()
            stats = self._call_metrics.setdefault(backend.name, {"attempts": 0, "successes": 0, "total_time": 0.0})
            stats["attempts"] += 1

            try:
                response = await asyncio.wait_for(backend.complete(request), timeout=self.timeout_seconds)
                value = self._validate(response, shape)
            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout_seconds}s"
            except ValidationError as e:
                reason = f"schema validation failed ({e.error_count()} errors)"
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
            else:
                stats["successes"] += 1
                stats["total_time"] += time.monotonic() - start_time
                METRICS["gateway_calls"].labels(provider=backend.name, outcome="success").inc()
                self.logger.debug("Model call succeeded", provider=backend.name, shape=shape.__name__)
                return GatewayResult(value=value, provider=backend.name, attempts=attempts)

            stats["total_time"] += time.monotonic() - start_time
            attempts.append((backend.name, reason))
            METRICS["gateway_calls"].labels(provider=backend.name, outcome="failure").inc()
            self.logger.warning(
                "Model provider failed",
                event_type="provider_failed",
                provider=backend.name,
                shape=shape.__name__,
                error=reason,
            )

        error = GatewayError(attempts)
        self.logger.warning("All model providers failed", shape=shape.__name__, attempts=len(attempts))
        return GatewayResult(error=error, attempts=attempts)

    @staticmethod
    def _validate(response: ModelResponse, shape: Type[T]) -> T:
        if response is None or response.is_empty:
            raise InvalidResponse("empty response")
        data = response.structured if response.structured else parse_json_object(response.text or "")
        return shape.model_validate(data)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """Per-provider attempts, successes and timings."""
        metrics = {}
        for name, raw in self._call_metrics.items():
            attempts = raw["attempts"]
            metrics[name] = {
                "attempts": attempts,
                "successes": raw["successes"],
                "success_rate": raw["successes"] / attempts if attempts > 0 else 0.0,
                "total_time": raw["total_time"],
                "avg_time": raw["total_time"] / attempts if attempts > 0 else 0.0,
            }
        return metrics

    async def close(self) -> None:
        for backend in self.backends:
            try:
                await backend.close()
            except Exception as e:
                self.logger.error("Error closing model backend", provider=backend.name, error=str(e))
