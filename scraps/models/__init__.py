"""scraps model implementations.

Concrete ModelProtocol implementations, one per supported provider.
Pick one by configuration through ``scraps.models.auto.create_model``.
"""

from __future__ import annotations

from scraps.models.anthropic import AnthropicModel
from scraps.models.auto import ModelProvider, create_model
from scraps.models.fireworks import FireworksModel
from scraps.models.gemini import GeminiModel
from scraps.models.openai import OpenAIModel

__all__ = [
    "AnthropicModel",
    "FireworksModel",
    "GeminiModel",
    "ModelProvider",
    "OpenAIModel",
    "create_model",
]
