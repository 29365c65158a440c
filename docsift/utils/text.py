"""Text processing helpers."""

from __future__ import annotations

import re

FRONT_MATTER_RE = re.compile(r"\A---\n.*?\n---\n?", re.DOTALL)


def normalize_newlines(text: str) -> str:
    """Convert CRLF line endings to LF."""
    return text.replace("\r\n", "\n")


def strip_front_matter(text: str) -> str:
    """Drop a leading YAML front matter block, if any."""
    if not text.startswith("---\n"):
        return text
    match = FRONT_MATTER_RE.match(text)
    return text[match.end() :] if match else text
