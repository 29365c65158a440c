"""Path helpers."""

from __future__ import annotations

from pathlib import Path


def resolve_path(value: str | Path) -> Path:
    """Expand ``~`` and return an absolute path."""
    return Path(value).expanduser().resolve()
