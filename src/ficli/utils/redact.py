"""Secret redaction for text that reaches the model or the terminal."""

from __future__ import annotations

import re

REDACTED = "[REDACTED]"
REDACTED_PRIVATE_KEY = "[REDACTED PRIVATE KEY]"
REDACTED_JWT = "[REDACTED JWT]"
REDACTED_KEY = "[REDACTED KEY]"

# groups: key, separator (may include the key's closing quote), opening quote, value
_KEY_VALUE_PATTERN = re.compile(
    r"(?i)(api[_-]?key|secret|token|password|passwd|access[_-]?key|private[_-]?key)"
    r"([\"']?\s*[:=]\s*)([\"']?)([^\s\"']+)"
)
_PRIVATE_KEY_BLOCK = re.compile(r"(?is)-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----")
_JWT_PATTERN = re.compile(r"\beyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.?[a-zA-Z0-9_-]*")
_SK_PATTERN = re.compile(r"(?i)\bsk-[a-z0-9_-]{20,}")


def _mask_value(match: re.Match[str]) -> str:
    key, separator, quote, value = match.group(1, 2, 3, 4)
    if value.startswith("[REDACTED"):
        return match.group(0)
    return f"{key}{separator}{quote}{REDACTED}"


def redact_secrets(text: str) -> str:
    """Replace secret-shaped substrings with fixed placeholders.

    Covers ``key=value`` assignments for a small credential vocabulary,
    PEM private-key blocks, JWT-shaped triplets and ``sk-`` API keys.
    Applying it twice yields the same text as applying it once.
    """
    if not text:
        return text
    out = _PRIVATE_KEY_BLOCK.sub(REDACTED_PRIVATE_KEY, text)
    out = _KEY_VALUE_PATTERN.sub(_mask_value, out)
    out = _JWT_PATTERN.sub(REDACTED_JWT, out)
    out = _SK_PATTERN.sub(REDACTED_KEY, out)
    return out


def redact_lines(lines: list[str]) -> list[str]:
    return [redact_secrets(line) for line in lines]
