"""
Scraps - quick local notes, mirrored to Notion.

Notes live in a local SQLite store and are synchronized with a Notion
database, optionally tidied up by an AI model on the way out.
"""

from .core import Scraps

try:
    from importlib.metadata import version

    __version__ = version("scraps")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Scraps"]
