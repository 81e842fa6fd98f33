"""Content codec between note bodies and the remote block schema.

A note body is restricted markup:

- ``#``, ``##``, ``###`` headings (deeper levels collapse to 3)
- fenced code blocks with an optional language tag
- ``- `` bulleted items
- ``---`` / ``***`` / ``___`` dividers
- everything else is a paragraph, one per line

``encode`` and ``decode`` work on ``Block`` values. ``to_remote_blocks``
and ``from_remote_blocks`` map those values to and from the remote API's
JSON block objects. Both directions are lossy: unsupported remote block
types are dropped and decoded text is only semantically equivalent to
the original markup.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

MAX_HEADING_LEVEL = 3

# Remote API limit per rich_text item
RICH_TEXT_LIMIT = 2000

PLAIN_TEXT_LANGUAGE = "plain text"

SUPPORTED_LANGUAGES = frozenset(
    {
        "abap",
        "agda",
        "arduino",
        "ascii art",
        "assembly",
        "bash",
        "basic",
        "bnf",
        "c",
        "c#",
        "c++",
        "clojure",
        "coffeescript",
        "coq",
        "css",
        "dart",
        "dhall",
        "diff",
        "docker",
        "ebnf",
        "elixir",
        "elm",
        "erlang",
        "f#",
        "flow",
        "fortran",
        "gherkin",
        "glsl",
        "go",
        "graphql",
        "groovy",
        "haskell",
        "hcl",
        "html",
        "idris",
        "java",
        "javascript",
        "json",
        "julia",
        "kotlin",
        "latex",
        "less",
        "lisp",
        "livescript",
        "llvm ir",
        "lua",
        "makefile",
        "markdown",
        "markup",
        "matlab",
        "mathematica",
        "mermaid",
        "nix",
        "notion formula",
        "objective-c",
        "ocaml",
        "pascal",
        "perl",
        "php",
        PLAIN_TEXT_LANGUAGE,
        "powershell",
        "prolog",
        "protobuf",
        "purescript",
        "python",
        "r",
        "racket",
        "reason",
        "ruby",
        "rust",
        "sass",
        "scala",
        "scheme",
        "scss",
        "shell",
        "smalltalk",
        "solidity",
        "sql",
        "swift",
        "toml",
        "typescript",
        "vb.net",
        "verilog",
        "vhdl",
        "visual basic",
        "webassembly",
        "xml",
        "yaml",
        "java/c/c++/c#",
    }
)

# Common fence tags that are spelled differently on the remote side
LANGUAGE_ALIASES = {
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "yml": "yaml",
    "dockerfile": "docker",
    "cpp": "c++",
    "csharp": "c#",
    "cs": "c#",
    "rb": "ruby",
    "rs": "rust",
    "md": "markdown",
    "text": PLAIN_TEXT_LANGUAGE,
    "txt": PLAIN_TEXT_LANGUAGE,
    "plaintext": PLAIN_TEXT_LANGUAGE,
}

_HEADING_RE = re.compile(r"^(#+)\s+(\S.*)$")
_BULLET_RE = re.compile(r"^\s*- (.*)$")
_FENCE = "```"
_DIVIDERS = frozenset({"---", "***", "___"})


# === Block variants ===


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class BulletedItem:
    text: str


@dataclass(frozen=True)
class Code:
    language: str
    text: str


@dataclass(frozen=True)
class Divider:
    pass


Block = Union[Heading, Paragraph, BulletedItem, Code, Divider]


def normalize_language(tag: Optional[str]) -> str:
    """Map a fence tag onto the remote allow-list, or plain text."""
    if not tag:
        return PLAIN_TEXT_LANGUAGE
    key = tag.strip().lower()
    key = LANGUAGE_ALIASES.get(key, key)
    if key in SUPPORTED_LANGUAGES:
        return key
    logger.debug("Unsupported code language %r, using plain text", tag)
    return PLAIN_TEXT_LANGUAGE


# === Markup <-> Block ===


def encode(body: str) -> List[Block]:
    """Parse a note body into blocks."""
    lines = (body or "").split("\n")
    blocks: List[Block] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if stripped.startswith(_FENCE):
            closing = _find_closing_fence(lines, i + 1)
            if closing is not None:
                language = normalize_language(stripped[len(_FENCE) :])
                blocks.append(Code(language=language, text="\n".join(lines[i + 1 : closing])))
                i = closing + 1
                continue
            # Unclosed fence: fall through and keep the line as a paragraph

        i += 1
        if not stripped:
            continue

        if stripped.startswith(_FENCE):
            blocks.append(Paragraph(stripped))
            continue

        if stripped in _DIVIDERS:
            blocks.append(Divider())
            continue

        match = _HEADING_RE.match(stripped)
        if match:
            level = min(len(match.group(1)), MAX_HEADING_LEVEL)
            blocks.append(Heading(level=level, text=match.group(2).strip()))
            continue

        match = _BULLET_RE.match(line)
        if match:
            blocks.append(BulletedItem(match.group(1).strip()))
            continue

        blocks.append(Paragraph(stripped))

    return blocks


def _find_closing_fence(lines: List[str], start: int) -> Optional[int]:
    for j in range(start, len(lines)):
        if lines[j].strip() == _FENCE:
            return j
    return None


def decode(blocks: Iterable[Block]) -> str:
    """Render blocks back into note markup."""
    out: List[str] = []
    for block in blocks:
        if isinstance(block, Heading):
            out.append("#" * block.level + " " + block.text)
        elif isinstance(block, BulletedItem):
            out.append("- " + block.text)
        elif isinstance(block, Code):
            tag = "" if block.language == PLAIN_TEXT_LANGUAGE else block.language
            out.append(f"{_FENCE}{tag}\n{block.text}\n{_FENCE}")
        elif isinstance(block, Divider):
            out.append("---")
        elif isinstance(block, Paragraph):
            out.append(block.text)
    return "\n".join(out).strip("\n")


# === Block <-> remote JSON ===


def to_rich_text(text: str) -> List[Dict[str, Any]]:
    if not text:
        return []
    return [
        {"type": "text", "text": {"content": text[start : start + RICH_TEXT_LIMIT]}}
        for start in range(0, len(text), RICH_TEXT_LIMIT)
    ]


def read_plain_text(items: Iterable[Dict[str, Any]]) -> str:
    """Join a rich_text array into plain text."""
    parts = []
    for item in items or []:
        text = item.get("plain_text")
        if text is None:
            text = (item.get("text") or {}).get("content", "")
        parts.append(text)
    return "".join(parts)


def to_remote_block(block: Block) -> Dict[str, Any]:
    """Build the remote JSON object for one block."""
    if isinstance(block, Heading):
        kind = f"heading_{block.level}"
        return {"object": "block", "type": kind, kind: {"rich_text": to_rich_text(block.text)}}
    if isinstance(block, BulletedItem):
        return {
            "object": "block",
            "type": "bulleted_list_item",
            "bulleted_list_item": {"rich_text": to_rich_text(block.text)},
        }
    if isinstance(block, Code):
        return {
            "object": "block",
            "type": "code",
            "code": {"rich_text": to_rich_text(block.text), "language": block.language},
        }
    if isinstance(block, Divider):
        return {"object": "block", "type": "divider", "divider": {}}
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": to_rich_text(block.text)},
    }


def from_remote_block(data: Dict[str, Any]) -> Optional[Block]:
    """Parse one remote JSON block. Unsupported types return None."""
    kind = data.get("type", "")
    payload = data.get(kind) or {}
    if kind in ("heading_1", "heading_2", "heading_3"):
        return Heading(level=int(kind[-1]), text=read_plain_text(payload.get("rich_text")))
    if kind == "paragraph":
        return Paragraph(read_plain_text(payload.get("rich_text")))
    if kind == "bulleted_list_item":
        return BulletedItem(read_plain_text(payload.get("rich_text")))
    if kind == "code":
        return Code(
            language=normalize_language(payload.get("language")),
            text=read_plain_text(payload.get("rich_text")),
        )
    if kind == "divider":
        return Divider()
    return None


def to_remote_blocks(body: str) -> List[Dict[str, Any]]:
    """Encode a note body straight to remote JSON blocks."""
    return [to_remote_block(b) for b in encode(body)]


def from_remote_blocks(items: Iterable[Dict[str, Any]]) -> str:
    """Decode remote JSON blocks straight to a note body."""
    blocks = []
    for item in items:
        block = from_remote_block(item)
        if block is None:
            logger.debug("Dropping unsupported block type %r", item.get("type"))
            continue
        blocks.append(block)
    return decode(blocks)
