"""AnthropicModel - Claude through the Messages API.

The ``anthropic`` SDK is imported when the model is constructed, not
when this module is imported.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from scraps.models.errors import ModelError, classify_sdk_error
from scraps.protocols import ModelCapabilities, ModelMessage, ModelResponse

logger = logging.getLogger(__name__)

# Checked in order when no api_key is passed
API_KEY_ENV_VARS = ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY")


class AnthropicModelError(ModelError):
    """Raised when a Messages API call fails."""


class AnthropicModel:
    """ModelProtocol implementation for Claude models.

    The Messages API takes the system prompt as a top-level argument, so
    any ``system`` role messages are folded into it.

    Usage::

        model = AnthropicModel()  # uses ANTHROPIC_API_KEY or CLAUDE_API_KEY
        response = model.generate([ModelMessage(role="user", content="Hello")])
    """

    provider = "anthropic"
    context_window = 200_000

    def __init__(
        self,
        model_id: str = "claude-3-5-haiku-latest",
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = 2048,
        timeout: float = 60.0,
    ) -> None:
        try:
            import anthropic as _anthropic
        except ImportError:
            raise ImportError(
                "AnthropicModel needs the 'anthropic' package: pip install anthropic"
            ) from None

        key = api_key or next(
            (os.environ[name] for name in API_KEY_ENV_VARS if os.environ.get(name)), None
        )
        if not key:
            raise ValueError(
                f"No Anthropic API key: pass api_key= or set {' / '.join(API_KEY_ENV_VARS)}."
            )

        self._sdk = _anthropic
        self._model_id = model_id
        self._max_tokens = max_tokens
        options: dict[str, Any] = {"api_key": key, "timeout": timeout}
        if base_url:
            options["base_url"] = base_url
        self._client = _anthropic.Anthropic(**options)

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def capabilities(self) -> ModelCapabilities:
        return ModelCapabilities(
            model_id=self._model_id,
            provider=self.provider,
            context_window=self.context_window,
            max_output_tokens=self._max_tokens,
        )

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        request = self._request(messages, system, temperature, max_tokens)
        try:
            reply = self._client.messages.create(**request)
        except Exception as exc:
            logger.debug(f"anthropic generate failed: {exc}", exc_info=True)
            raise classify_sdk_error(
                self._sdk, exc, "Anthropic API error", AnthropicModelError
            ) from exc
        return self._to_response(reply)

    def _request(
        self,
        messages: list[ModelMessage],
        system: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> dict[str, Any]:
        system_parts = [system] if system else []
        turns = []
        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                turns.append({"role": msg.role, "content": msg.content})

        request: dict[str, Any] = {
            "model": self._model_id,
            "messages": turns,
            "max_tokens": max_tokens or self._max_tokens,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)
        if temperature is not None:
            request["temperature"] = temperature
        return request

    @staticmethod
    def _to_response(reply: Any) -> ModelResponse:
        text = "".join(block.text for block in reply.content if block.type == "text")
        usage = (
            {"input_tokens": reply.usage.input_tokens, "output_tokens": reply.usage.output_tokens}
            if reply.usage
            else {}
        )
        return ModelResponse(
            content=text, usage=usage, stop_reason=reply.stop_reason, model_id=reply.model
        )
