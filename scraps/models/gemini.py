"""GeminiModel - ModelProtocol implementation for Google's Gemini API.

Talks to the ``generateContent`` REST endpoint with ``requests``; no
Google SDK required.
"""

from __future__ import annotations

import os
from typing import Any, Optional

from scraps.models.errors import ModelError
from scraps.protocols import (
    ModelCapabilities,
    ModelMessage,
    ModelResponse,
    classify_http_status,
)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiModelError(ModelError):
    """Raised when the Gemini API reports an error or is unreachable."""


class GeminiModel:
    """ModelProtocol implementation backed by the Gemini REST API.

    Usage::

        model = GeminiModel()  # uses GEMINI_API_KEY env var
        response = model.generate([ModelMessage(role="user", content="Hello")])
    """

    def __init__(
        self,
        model_id: str = "gemini-1.5-flash",
        *,
        api_key: Optional[str] = None,
        base_url: str = GEMINI_BASE_URL,
        max_tokens: int = 2048,
        timeout: int = 60,
    ) -> None:
        try:
            import requests as _requests  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'requests' package is required for GeminiModel. "
                "Install it with: pip install requests"
            ) from None

        resolved_key = api_key or os.environ.get("GEMINI_API_KEY")
        if not resolved_key:
            raise ValueError("An API key is required. Pass api_key= or set GEMINI_API_KEY.")

        self._requests = _requests
        self._api_key = resolved_key
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")
        self._max_tokens = max_tokens
        self._timeout = timeout

    # ---- ModelProtocol properties ----

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def capabilities(self) -> ModelCapabilities:
        return ModelCapabilities(
            model_id=self._model_id,
            provider="gemini",
            context_window=1_000_000,
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
        """Generate a complete response via ``models/{model}:generateContent``."""
        contents, extracted_system = self._prepare_messages(messages, system)
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"maxOutputTokens": max_tokens or self._max_tokens},
        }
        if temperature is not None:
            payload["generationConfig"]["temperature"] = temperature
        if extracted_system:
            payload["systemInstruction"] = {"parts": [{"text": extracted_system}]}

        data = self._post(f"/models/{self._model_id}:generateContent", payload)
        return self._parse_response(data)

    # ---- Internal helpers ----

    def _prepare_messages(
        self,
        messages: list[ModelMessage],
        system: Optional[str],
    ) -> tuple[list[dict[str, Any]], Optional[str]]:
        """Convert ModelMessages to Gemini ``contents``; assistant becomes ``model``."""
        extracted_system = system
        contents: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                extracted_system = (
                    f"{extracted_system}\n\n{msg.content}" if extracted_system else msg.content
                )
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.content}]})
        return contents, extracted_system

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to the Gemini API and return parsed JSON."""
        url = f"{self._base_url}{path}"
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}
        try:
            resp = self._requests.post(url, json=payload, headers=headers, timeout=self._timeout)
        except self._requests.Timeout as exc:
            raise GeminiModelError(
                "timeout", f"Gemini request timed out after {self._timeout}s: {exc}"
            ) from exc
        except self._requests.ConnectionError as exc:
            raise GeminiModelError("timeout", f"Cannot connect to Gemini API: {exc}") from exc

        if resp.status_code != 200:
            error_class = classify_http_status(resp.status_code)
            raise GeminiModelError(
                error_class, f"Gemini returned HTTP {resp.status_code}: {resp.text[:300]}"
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise GeminiModelError("unknown", f"Gemini returned invalid JSON: {exc}") from exc

    def _parse_response(self, data: dict[str, Any]) -> ModelResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates")
            raise GeminiModelError("unknown", f"Gemini returned no candidates ({reason})")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)

        usage: dict[str, int] = {}
        metadata = data.get("usageMetadata") or {}
        if "promptTokenCount" in metadata:
            usage["input_tokens"] = metadata["promptTokenCount"]
        if "candidatesTokenCount" in metadata:
            usage["output_tokens"] = metadata["candidatesTokenCount"]

        return ModelResponse(
            content=text,
            usage=usage,
            stop_reason=candidate.get("finishReason"),
            model_id=data.get("modelVersion", self._model_id),
        )
