"""Model provider gateway and backend adapters."""

from .backends import AnthropicBackend, GeminiBackend, OpenAIBackend, build_backends
from .gateway import GatewayError, GatewayResult, ModelGateway, parse_json_object
from .protocols import ModelBackend, ModelRequest, ModelResponse, Prompt

__all__ = [
    "AnthropicBackend",
    "GatewayError",
    "GatewayResult",
    "GeminiBackend",
    "ModelBackend",
    "ModelGateway",
    "ModelRequest",
    "ModelResponse",
    "OpenAIBackend",
    "Prompt",
    "build_backends",
    "parse_json_object",
]
