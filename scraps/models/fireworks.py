"""FireworksModel - Fireworks AI through its OpenAI-compatible endpoint."""

from __future__ import annotations

from scraps.models.openai import OpenAIModel

FIREWORKS_BASE_URL = "https://api.fireworks.ai/inference/v1"


class FireworksModel(OpenAIModel):
    """Same request shape as OpenAI, different host and key.

    Usage::

        model = FireworksModel()  # uses FIREWORKS_API_KEY env var
    """

    provider = "fireworks"
    api_key_env = "FIREWORKS_API_KEY"
    default_base_url = FIREWORKS_BASE_URL
    context_window = 131_072

    def __init__(
        self,
        model_id: str = "accounts/fireworks/models/llama-v3p1-8b-instruct",
        **kwargs,
    ) -> None:
        super().__init__(model_id, **kwargs)
