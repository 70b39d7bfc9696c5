"""Byte and line budgets for tool output."""

from __future__ import annotations

from collections.abc import Iterable


def byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def truncate_bytes(text: str, max_bytes: int) -> tuple[str, bool]:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes.

    A non-positive limit disables the cut. A multi-byte character that
    straddles the limit is dropped rather than split.
    """
    if max_bytes <= 0:
        return text, False
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[:max_bytes].decode("utf-8", errors="ignore"), True


def truncate_lines_and_bytes(lines: Iterable[str], max_lines: int, max_bytes: int) -> tuple[list[str], bool, int]:
    """Keep leading lines until either the line or the byte budget is hit.

    The byte count includes one separator byte between joined lines. Either
    limit is disabled by passing zero (or a negative number).

    Returns:
        The kept lines, whether anything was dropped, and their joined byte count.
    """
    items = list(lines)
    if max_lines <= 0 and max_bytes <= 0:
        return items, False, byte_len("\n".join(items))

    kept: list[str] = []
    truncated = False
    byte_count = 0
    for line in items:
        if max_lines > 0 and len(kept) >= max_lines:
            truncated = True
            break
        separator = 1 if kept else 0
        size = byte_len(line)
        if max_bytes > 0 and byte_count + separator + size > max_bytes:
            truncated = True
            break
        byte_count += separator + size
        kept.append(line)
    return kept, truncated, byte_count


def preview(text: str, max_lines: int = 12, max_bytes: int = 2000) -> str:
    """Return a short display preview of ``text``; never used for model payloads."""
    if not text:
        return ""
    kept, _, _ = truncate_lines_and_bytes(text.split("\n"), max_lines, max_bytes)
    return "\n".join(kept)
