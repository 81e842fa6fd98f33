"""AI transform applied to a note body right before it is pushed.

``AITransform.transform`` never raises: provider errors, empty responses
and blank input all come back as a failed ``TransformResult`` and the
sync engine decides what to do with the note.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from scraps.diff import mark_edits, strip_markers
from scraps.protocols import ModelMessage, ModelProtocol, ScrapsError, TransformError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You tidy up short developer notes.

Rules:
- Spans between [EDITED] and [/EDITED] changed since the last sync. Only restructure those; copy everything else through unchanged. An empty [EDITED][/EDITED] pair marks where text was deleted.
- Wrap every command-like line (shell commands, CLI invocations, code) in a fenced code block with a language tag, preceded by a one-line description of what it does.
- Collect free-form remarks that are not commands under a trailing "## Notes" heading.
- Keep headings, bullets and existing code blocks as they are.
- Use only '#' headings, '- ' bullets, fenced code blocks and '---' dividers.
- Return only the rewritten note. Do not include the [EDITED] markers, explanations or a surrounding code fence."""

_OUTER_FENCE_RE = re.compile(r"^```(?:markdown|md)?\n(.*)\n```$", re.DOTALL)


@dataclass
class TransformResult:
    """Outcome of one transform call."""

    ok: bool
    text: str = ""
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "TransformResult":
        return cls(ok=False, text="", error=error)


class AITransform:
    """Rewrite note bodies through a text-generation model."""

    def __init__(
        self,
        model: ModelProtocol,
        *,
        temperature: Optional[float] = 0.2,
        max_tokens: Optional[int] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    def transform(self, previous_body: str, new_body: str) -> TransformResult:
        """Mark edits since ``previous_body`` and ask the model to restructure ``new_body``."""
        if not (new_body or "").strip():
            return TransformResult.failure("note body is empty")

        marked = mark_edits(previous_body or "", new_body)
        try:
            response = self.model.generate(
                [ModelMessage(role="user", content=marked)],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                system=self.system_prompt,
            )
            text = self._clean(response.content)
        except (ScrapsError, ValueError) as exc:
            logger.warning("AI transform failed (%s): %s", self.model.model_id, exc)
            return TransformResult.failure(str(exc))
        except Exception as exc:
            logger.warning(
                "AI transform failed unexpectedly (%s): %s", self.model.model_id, exc, exc_info=True
            )
            return TransformResult.failure(f"unexpected error: {exc}")

        return TransformResult(ok=True, text=text)

    @staticmethod
    def _clean(content: Optional[str]) -> str:
        text = strip_markers(content or "").strip()
        match = _OUTER_FENCE_RE.match(text)
        if match:
            text = match.group(1).strip()
        if not text:
            raise TransformError("model returned an empty response")
        return text
