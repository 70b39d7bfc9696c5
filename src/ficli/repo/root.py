"""Repository root discovery."""

from __future__ import annotations

from pathlib import Path


def find_repo_root(start: str | Path) -> Path:
    """Walk up from ``start`` to the nearest directory holding ``.git``.

    Falls back to the absolute ``start`` directory when no ``.git`` is found.
    """
    current = Path(start).expanduser().absolute()
    if current.is_file():
        current = current.parent

    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    return current
