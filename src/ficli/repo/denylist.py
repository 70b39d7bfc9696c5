"""Paths that must never be read or searched."""

from __future__ import annotations

from pathlib import PurePath

DENYLIST_GLOBS: tuple[str, ...] = (
    ".env*",
    "*.pem",
    "*.key",
    "*.p12",
    "*.pfx",
    "id_rsa*",
    ".aws/credentials",
    ".npmrc",
    ".docker/config.json",
)

_SECRET_SUFFIXES = (".pem", ".key", ".p12", ".pfx")
_SECRET_SEGMENTS = (".aws/credentials", ".docker/config.json")


def is_denylisted(path: str | PurePath) -> bool:
    """Return True if the file at ``path`` likely holds credentials."""
    normalized = PurePath(path).as_posix().lower()
    base = normalized.rsplit("/", 1)[-1]

    if base.startswith(".env") or base.startswith("id_rsa"):
        return True
    if base.endswith(_SECRET_SUFFIXES):
        return True
    if base == ".npmrc":
        return True
    return any(normalized == segment or normalized.endswith("/" + segment) for segment in _SECRET_SEGMENTS)


def ripgrep_exclude_globs() -> list[str]:
    """Return the denylist as negated ripgrep ``--glob`` values."""
    return [f"!{glob}" for glob in DENYLIST_GLOBS]
