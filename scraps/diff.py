"""Edit marking for the AI transform.

Diffs the last-synced body against the current body on word tokens and
wraps the changed spans of the new text in ``[EDITED]...[/EDITED]``.
Edit runs separated only by whitespace or a short equality are merged
into one span first, so a sentence with three touched words becomes one
marked region instead of three.

A run that only deletes text leaves an empty marker pair where the text
used to be, so the model still sees that the spot changed.
"""

import re
from difflib import SequenceMatcher
from typing import List, NamedTuple

EDIT_OPEN = "[EDITED]"
EDIT_CLOSE = "[/EDITED]"

# Equalities this short (in characters) between two edits are absorbed
SMALL_EQUALITY = 8

_TOKEN_RE = re.compile(r"\s+|\w+|[^\w\s]+")


class DiffOp(NamedTuple):
    kind: str  # "equal" or "edit"
    old: str
    new: str


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(text or "")


def compute_diff(old: str, new: str) -> List[DiffOp]:
    """Token-level diff, with adjacent edits coalesced."""
    a = tokenize(old)
    b = tokenize(new)
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    ops: List[DiffOp] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        old_text = "".join(a[i1:i2])
        new_text = "".join(b[j1:j2])
        kind = "equal" if tag == "equal" else "edit"
        if ops and ops[-1].kind == kind == "edit":
            prev = ops.pop()
            ops.append(DiffOp("edit", prev.old + old_text, prev.new + new_text))
        else:
            ops.append(DiffOp(kind, old_text, new_text))
    return ops


def _is_small(text: str) -> bool:
    return not text.strip() or len(text) <= SMALL_EQUALITY


def cleanup_semantic(ops: List[DiffOp]) -> List[DiffOp]:
    """Merge edit runs separated by small equalities into one run."""
    result: List[DiffOp] = []
    i = 0
    while i < len(ops):
        op = ops[i]
        if (
            op.kind == "equal"
            and result
            and result[-1].kind == "edit"
            and i + 1 < len(ops)
            and ops[i + 1].kind == "edit"
            and _is_small(op.new)
        ):
            prev = result.pop()
            nxt = ops[i + 1]
            result.append(DiffOp("edit", prev.old + op.old + nxt.old, prev.new + op.new + nxt.new))
            i += 2
            continue
        result.append(op)
        i += 1
    return result


def _wrap(text: str) -> str:
    core = text.strip()
    if not core:
        return text
    start = text.index(core)
    end = start + len(core)
    return f"{text[:start]}{EDIT_OPEN}{core}{EDIT_CLOSE}{text[end:]}"


def _mark(op: DiffOp) -> str:
    if op.new.strip():
        return _wrap(op.new)
    if op.old.strip():
        return f"{op.new}{EDIT_OPEN}{EDIT_CLOSE}"
    return op.new


def mark_edits(previous: str, current: str) -> str:
    """Return ``current`` with its changed spans wrapped in edit markers."""
    if not previous:
        return _wrap(current) if current else ""
    parts = []
    for op in cleanup_semantic(compute_diff(previous, current)):
        parts.append(op.new if op.kind == "equal" else _mark(op))
    return "".join(parts)


def strip_markers(text: str) -> str:
    return text.replace(EDIT_OPEN, "").replace(EDIT_CLOSE, "")
