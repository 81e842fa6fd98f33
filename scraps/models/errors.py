"""Error type shared by the model providers.

Every provider reports failures as a ``ModelError`` subclass whose
``error_class`` uses the same categories as ``RemoteStoreError``: auth,
rate_limit, server, not_found, timeout, unknown.
"""

from __future__ import annotations

from typing import Any

from scraps.protocols import ScrapsError, classify_http_status

# SDK exception names checked before falling back to the HTTP status.
# Order matters: the SDKs derive several of these from APIStatusError.
SDK_ERROR_CLASSES: tuple[tuple[str, str], ...] = (
    ("RateLimitError", "rate_limit"),
    ("AuthenticationError", "auth"),
    ("PermissionDeniedError", "auth"),
    ("NotFoundError", "not_found"),
    ("APITimeoutError", "timeout"),
)


class ModelError(ScrapsError):
    """Raised when a model provider fails."""

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


def classify_sdk_error(
    sdk: Any, exc: Exception, prefix: str, error_type: type[ModelError] = ModelError
) -> ModelError:
    """Map an exception raised by an OpenAI-style SDK onto ``error_type``.

    ``sdk`` is the imported SDK module. Its exception types are looked up
    with ``getattr`` so a partial or faked module still classifies.
    """
    for attr, error_class in SDK_ERROR_CLASSES:
        exc_type = getattr(sdk, attr, None)
        if isinstance(exc_type, type) and isinstance(exc, exc_type):
            return error_type(error_class, f"{prefix}: {error_class}: {exc}")

    status_error = getattr(sdk, "APIStatusError", None)
    if isinstance(status_error, type) and isinstance(exc, status_error):
        code = getattr(exc, "status_code", None)
        error_class = classify_http_status(code) if isinstance(code, int) else "unknown"
        return error_type(error_class, f"{prefix}: API error ({code}): {exc}")

    return error_type("unknown", f"{prefix}: {exc}")
