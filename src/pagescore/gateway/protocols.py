"""
Protocols for pluggable LLM provider backends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Prompt:
    """A system + user prompt pair."""

    system: str
    user: str


@dataclass(frozen=True)
class ModelRequest:
    """Provider-neutral request handed to a backend."""

    prompt: Prompt
    schema_name: str
    json_schema: Dict[str, Any] = field(default_factory=dict)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass(frozen=True)
class ModelResponse:
    """
    What a backend returned: a parsed object when the provider enforces the
    schema natively, or raw text that still has to be parsed and validated.
    """

    structured: Optional[Dict[str, Any]] = None
    text: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.structured and not (self.text and self.text.strip())


@runtime_checkable
class ModelBackend(Protocol):
    """A single chat-completion provider."""

    name: str

    async def complete(self, request: ModelRequest) -> ModelResponse:
        """Send the request and return the provider's answer."""
        ...

    async def close(self) -> None:
        ...
