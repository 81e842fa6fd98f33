"""Build a model from configuration.

The provider is an explicit setting. Nothing here inspects model names
to guess which API to call.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ModelProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    FIREWORKS = "fireworks"

    @classmethod
    def parse(cls, value: Any) -> "ModelProvider":
        """Accept an enum member or its (case-insensitive) value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown AI provider '{value}'. Expected one of: {valid}") from None


# Default models - cheap/fast
PROVIDER_DEFAULTS = {
    ModelProvider.OPENAI: "gpt-4o-mini",
    ModelProvider.GEMINI: "gemini-1.5-flash",
    ModelProvider.ANTHROPIC: "claude-3-5-haiku-latest",
    ModelProvider.FIREWORKS: "accounts/fireworks/models/llama-v3p1-8b-instruct",
}


def default_model(provider: Any) -> str:
    return PROVIDER_DEFAULTS[ModelProvider.parse(provider)]


def create_model(
    provider: Any,
    *,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    max_tokens: Optional[int] = None,
):
    """Create the ModelProtocol implementation for ``provider``.

    Raises:
        ValueError: unknown provider or missing API key.
        ImportError: the provider's client library is not installed.
    """
    kind = ModelProvider.parse(provider)
    model_id = model or PROVIDER_DEFAULTS[kind]
    kwargs: dict[str, Any] = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    if max_tokens:
        kwargs["max_tokens"] = max_tokens

    if kind is ModelProvider.OPENAI:
        from scraps.models.openai import OpenAIModel

        instance = OpenAIModel(model_id=model_id, **kwargs)
    elif kind is ModelProvider.FIREWORKS:
        from scraps.models.fireworks import FireworksModel

        instance = FireworksModel(model_id=model_id, **kwargs)
    elif kind is ModelProvider.ANTHROPIC:
        from scraps.models.anthropic import AnthropicModel

        instance = AnthropicModel(model_id=model_id, **kwargs)
    else:
        from scraps.models.gemini import GeminiModel

        instance = GeminiModel(model_id=model_id, **kwargs)

    logger.info("Configured %s model (model=%s)", kind.value, model_id)
    return instance
