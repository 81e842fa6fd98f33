"""OpenAIModel - ModelProtocol implementation for OpenAI's API.

Wraps the ``openai`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``openai`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from scraps.models.errors import ModelError, classify_sdk_error
from scraps.protocols import ModelCapabilities, ModelMessage, ModelResponse

logger = logging.getLogger(__name__)


class OpenAIModelError(ModelError):
    """Raised when the OpenAI SDK reports an error."""


class OpenAIModel:
    """ModelProtocol implementation backed by the OpenAI chat completions API.

    Also serves any OpenAI-compatible endpoint through ``base_url``.

    Usage::

        model = OpenAIModel()  # uses OPENAI_API_KEY env var
        response = model.generate([ModelMessage(role="user", content="Hello")])
    """

    provider = "openai"
    api_key_env = "OPENAI_API_KEY"
    default_base_url: Optional[str] = None
    context_window = 128_000

    def __init__(
        self,
        model_id: str = "gpt-4o-mini",
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = 2048,
        timeout: float = 60.0,
    ) -> None:
        try:
            import openai as _openai  # noqa: F811
        except ImportError:
            raise ImportError(
                f"The 'openai' package is required for {type(self).__name__}. "
                "Install it with: pip install openai"
            ) from None

        resolved_key = api_key or os.environ.get(self.api_key_env)
        if not resolved_key:
            raise ValueError(f"An API key is required. Pass api_key= or set {self.api_key_env}.")

        self._sdk = _openai
        self._model_id = model_id
        self._max_tokens = max_tokens
        client_kwargs: dict[str, Any] = {"api_key": resolved_key, "timeout": timeout}
        resolved_base = base_url or self.default_base_url
        if resolved_base:
            client_kwargs["base_url"] = resolved_base
        self._client = _openai.OpenAI(**client_kwargs)

    # ---- ModelProtocol properties ----

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

    # ---- Generate ----

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response via the chat completions API."""
        api_messages = self._prepare_messages(messages, system)
        kwargs = self._build_kwargs(api_messages, temperature=temperature, max_tokens=max_tokens)

        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            logger.debug("%s generate failed: %s", self.provider, exc, exc_info=True)
            raise classify_sdk_error(
                self._sdk, exc, f"{self.provider} API error", OpenAIModelError
            ) from exc

        return self._parse_response(response)

    # ---- Internal helpers ----

    def _prepare_messages(
        self,
        messages: list[ModelMessage],
        system: Optional[str],
    ) -> list[dict[str, Any]]:
        """Convert ModelMessages to chat format."""
        api_messages: list[dict[str, Any]] = []

        # Prepend explicit system param as a system message
        if system:
            api_messages.append({"role": "system", "content": system})

        for msg in messages:
            api_messages.append({"role": msg.role, "content": msg.content})

        return api_messages

    def _build_kwargs(
        self,
        api_messages: list[dict[str, Any]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model_id,
            "messages": api_messages,
            "max_tokens": max_tokens or self._max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs

    def _parse_response(self, response: Any) -> ModelResponse:
        if not response.choices:
            raise OpenAIModelError("unknown", f"{self.provider} API returned no choices")
        choice = response.choices[0]

        usage = {}
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }

        return ModelResponse(
            content=choice.message.content or "",
            usage=usage,
            stop_reason=choice.finish_reason,
            model_id=response.model,
        )
