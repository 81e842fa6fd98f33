"""
scraps Protocol Definitions
===========================

The interface contracts between the scraps components.

Components and their roles:
- Local store:   Owns the notes. Durable. Notifies observers on change.
- Remote store:  A document collection reached over the network.
- Model:         A text-generation provider used by the AI transform.
- Sync engine:   Reconciles the two stores, one pass at a time.

Error handling philosophy:
- Remote failures raise RemoteStoreError (with an error_class)
- Provider failures raise a provider-specific ScrapsError subclass
- The AI transform never raises; it returns a TransformResult
- Only a failed pull aborts a sync pass; everything else is note-level
- Invalid arguments raise ValueError
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Optional,
    Protocol,
    runtime_checkable,
)

from scraps.types import RemoteDocument

# =============================================================================
# ERRORS
# =============================================================================


class ScrapsError(Exception):
    """Base for all scraps errors."""

    pass


class RemoteStoreError(ScrapsError):
    """Raised when a remote store operation fails.

    ``error_class`` is one of: auth, rate_limit, server, not_found,
    timeout, unknown.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_class: str = "unknown",
    ) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.status_code = status_code
        self.error_class = error_class


class TransformError(ScrapsError):
    """Raised inside the AI transform; never escapes it."""

    pass


class EmptyContentError(ScrapsError):
    """Raised when a non-blank note body encodes to no blocks."""

    pass


class SyncInProgressError(ScrapsError):
    """Raised when a pass is requested while another is running."""

    pass


def classify_http_status(status_code: int) -> str:
    """Map HTTP status codes to error classes."""
    if status_code in (401, 403):
        return "auth"
    if status_code == 404:
        return "not_found"
    if status_code == 429:
        return "rate_limit"
    if status_code >= 500:
        return "server"
    return "unknown"


# =============================================================================
# MODEL TYPES
# =============================================================================


@dataclass
class ModelCapabilities:
    """What a model implementation can do."""

    model_id: str
    provider: str  # "openai", "gemini", "anthropic", "fireworks"
    context_window: int
    max_output_tokens: int = 1024


@dataclass
class ModelMessage:
    """A message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ModelResponse:
    """Complete response from a model."""

    content: str
    usage: dict[str, int] = field(default_factory=dict)
    stop_reason: Optional[str] = None
    model_id: Optional[str] = None


# =============================================================================
# MODEL PROTOCOL
# =============================================================================
# One capability: rewrite text given a prompt. Providers differ only in
# request shape and authentication, and are chosen by configuration.
# =============================================================================


@runtime_checkable
class ModelProtocol(Protocol):
    """Interface for a text-generation provider.

    Implementations: OpenAIModel, FireworksModel, AnthropicModel, GeminiModel.
    """

    @property
    def model_id(self) -> str:
        """Identifier (e.g., 'gpt-4o-mini', 'gemini-1.5-flash')."""
        ...

    @property
    def capabilities(self) -> ModelCapabilities:
        """What this model can do."""
        ...

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response."""
        ...


# =============================================================================
# REMOTE STORE PROTOCOL
# =============================================================================


@runtime_checkable
class RemoteStoreProtocol(Protocol):
    """A remote document collection.

    Every method except ``test_connection`` raises RemoteStoreError on
    failure and leaves local state untouched.
    """

    def test_connection(self) -> bool:
        """False on any failure. Never raises."""
        ...

    def list_all(self) -> list[RemoteDocument]:
        """Every non-archived document with a non-empty title."""
        ...

    def get(self, remote_id: str) -> RemoteDocument:
        """Fetch one document's properties and content."""
        ...

    def create(self, title: str, body: str, *, last_modified: Optional[int] = None) -> str:
        """Create a document and return its remote id."""
        ...

    def update(
        self, remote_id: str, title: str, body: str, *, last_modified: Optional[int] = None
    ) -> bool:
        """Replace the title and the full content of a document."""
        ...

    def archive(self, remote_id: str) -> bool:
        """Soft-delete a document."""
        ...


# =============================================================================
# KEY-VALUE STORE PROTOCOL
# =============================================================================


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """Durable persistence for lists of records under string keys."""

    def get(self, key: str) -> list[Any]:
        """Return the stored list, or an empty list."""
        ...

    def set(self, key: str, records: list[Any]) -> None:
        """Replace the list stored under ``key``."""
        ...
