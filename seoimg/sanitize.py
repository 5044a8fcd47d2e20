"""Text cleanup for webhook prompts and export filenames."""

from __future__ import annotations

import re
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9\s_-]")


def sanitize_text(text: str | None) -> str:
    """
    Make free text safe to embed in a JSON prompt string.
    Double quotes become single quotes, backslashes are dropped, and all
    whitespace runs (newlines, tabs) collapse to one space.
    """
    if not text:
        return ""
    text = text.replace('"', "'").replace("\\", "")
    return _WHITESPACE_RE.sub(" ", text).strip()


def sanitize_fields(data: Any) -> Any:
    """Recursively sanitize every string in a dict/list structure."""
    if isinstance(data, str):
        return sanitize_text(data)
    if isinstance(data, list):
        return [sanitize_fields(v) for v in data]
    if isinstance(data, dict):
        return {k: sanitize_fields(v) for k, v in data.items()}
    return data


def safe_filename(text: str, max_length: int = 50) -> str:
    """Slug for download filenames: alnum, '_' and '-' only, lowercased."""
    slug = _UNSAFE_FILENAME_RE.sub("", text or "")
    slug = _WHITESPACE_RE.sub("-", slug).lower()
    return slug[:max_length].rstrip("-")
