"""
REST adapters for the supported LLM providers.

Each adapter speaks one vendor's HTTP API through aiohttp and normalizes the
answer into a ModelResponse. Adapters never interpret the answer beyond
extracting it; validation happens in the gateway.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from pagescore.config.config import GatewayConfig, ProviderConfig
from pagescore.protocols import ProviderError

from .protocols import ModelBackend, ModelRequest, ModelResponse

logger = structlog.get_logger(__name__)


class HTTPBackend:
    """Shared session handling and request plumbing for REST providers."""

    name: str = "http"
    default_base_url: str = ""

    def __init__(self, config: ProviderConfig, timeout_seconds: float = 30.0) -> None:
        self.config = config
        self.model = config.model
        self.api_key = config.resolved_api_key()
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))
        return self.session

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _post_json(
        self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        session = self._get_session()
        async with session.post(url, json=payload, headers=headers) as response:
            body = await response.text()
            if response.status >= 400:
                raise ProviderError(self.name, f"HTTP {response.status}: {body[:200]}", status=response.status)
            try:
                return json.loads(body)
            except json.JSONDecodeError as e:
                raise ProviderError(self.name, f"Response is not JSON: {e}") from e

    @staticmethod
    def _schema_instructions(request: ModelRequest) -> str:
        if not request.json_schema:
            return "Respond with a single valid JSON object and nothing else."
        return (
            "Respond with a single valid JSON object and nothing else. "
            f"It must match this JSON schema:\n{json.dumps(request.json_schema)}"
        )

    def _temperature(self, request: ModelRequest) -> float:
        return request.temperature if request.temperature is not None else self.config.temperature

    def _max_tokens(self, request: ModelRequest) -> int:
        return request.max_tokens if request.max_tokens is not None else self.config.max_tokens

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"


class OpenAIBackend(HTTPBackend):
    """OpenAI chat completions with schema-constrained JSON output."""

    name = "openai"
    default_base_url = "https://api.openai.com/v1"

    async def complete(self, request: ModelRequest) -> ModelResponse:
        if request.json_schema:
            response_format: Dict[str, Any] = {
                "type": "json_schema",
                "json_schema": {"name": request.schema_name, "schema": request.json_schema, "strict": False},
            }
        else:
            response_format = {"type": "json_object"}

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.prompt.system},
                {"role": "user", "content": request.prompt.user},
            ],
            "temperature": self._temperature(request),
            "max_tokens": self._max_tokens(request),
            "response_format": response_format,
        }
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Unexpected response layout: {e}") from e

        # Native structured output still arrives as a JSON string
        if isinstance(content, str):
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError:
                return ModelResponse(text=content)
            if isinstance(parsed, dict):
                return ModelResponse(structured=parsed)
        return ModelResponse(text=content if isinstance(content, str) else None)


class AnthropicBackend(HTTPBackend):
    """Anthropic messages API. Returns free text that must be parsed."""

    name = "anthropic"
    default_base_url = "https://api.anthropic.com"
    api_version = "2023-06-01"

    async def complete(self, request: ModelRequest) -> ModelResponse:
        payload = {
            "model": self.model,
            "max_tokens": self._max_tokens(request),
            "temperature": self._temperature(request),
            "system": f"{request.prompt.system}\n\n{self._schema_instructions(request)}",
            "messages": [{"role": "user", "content": request.prompt.user}],
        }
        data = await self._post_json(
            f"{self.base_url}/v1/messages",
            payload,
            headers={"x-api-key": self.api_key or "", "anthropic-version": self.api_version},
        )

        blocks = data.get("content") or []
        text = "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
        return ModelResponse(text=text)


class GeminiBackend(HTTPBackend):
    """Google Gemini generateContent with a JSON response MIME type."""

    name = "google"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    async def complete(self, request: ModelRequest) -> ModelResponse:
        payload = {
            "systemInstruction": {"parts": [{"text": request.prompt.system}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": f"{request.prompt.user}\n\n{self._schema_instructions(request)}"}],
                }
            ],
            "generationConfig": {
                "temperature": self._temperature(request),
                "maxOutputTokens": self._max_tokens(request),
                "responseMimeType": "application/json",
            },
        }
        data = await self._post_json(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload,
            headers={"x-goog-api-key": self.api_key or ""},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            return ModelResponse()
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return ModelResponse(text="".join(part.get("text", "") for part in parts))


BACKEND_TYPES: Dict[str, type] = {
    "openai": OpenAIBackend,
    "anthropic": AnthropicBackend,
    "google": GeminiBackend,
}


def build_backends(config: GatewayConfig) -> List[ModelBackend]:
    """Create adapters for every enabled provider that has an API key, in fallback order."""
    backends: List[ModelBackend] = []
    for provider in config.providers:
        if not provider.enabled:
            continue
        if not provider.resolved_api_key():
            logger.info("Skipping provider without API key", provider=provider.name)
            continue
        backends.append(BACKEND_TYPES[provider.name](provider, timeout_seconds=config.timeout_seconds))

    logger.info("Model backends configured", providers=[b.name for b in backends])
    return backends
