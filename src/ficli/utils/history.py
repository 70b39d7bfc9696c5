"""Recent shell history as extra prompt context."""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path

from loguru import logger

from ficli.utils.redact import redact_secrets

_HISTORY_CANDIDATES = (
    Path(".zsh_history"),
    Path(".bash_history"),
    Path(".config") / "fish" / "fish_history",
)


def history_path() -> Path | None:
    explicit = os.getenv("HISTFILE")
    if explicit:
        return Path(explicit)
    try:
        home = Path.home()
    except RuntimeError:
        return None
    for candidate in _HISTORY_CANDIDATES:
        path = home / candidate
        if path.is_file():
            return path
    return None


def normalize_history_line(line: str) -> str:
    # zsh extended history: ": 1680000000:0;command"
    if line.startswith(": ") and ";" in line:
        return line.split(";", 1)[1].strip()
    # fish history: "- cmd: command"
    if line.startswith("- cmd: "):
        return line.removeprefix("- cmd: ").strip()
    if line.startswith(("when: ", "paths:")):
        return ""
    return line


def load_shell_history(max_lines: int) -> list[str]:
    """Return the last ``max_lines`` history commands, redacted, oldest first."""
    if max_lines <= 0:
        return []
    path = history_path()
    if path is None:
        return []

    recent: deque[str] = deque(maxlen=max_lines)
    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            for raw in handle:
                line = normalize_history_line(raw.strip())
                if line:
                    recent.append(line)
    except OSError as exc:
        logger.debug("history.read.skip path={} error={}", path, exc)
        return []
    return [redact_secrets(line) for line in recent if line]
