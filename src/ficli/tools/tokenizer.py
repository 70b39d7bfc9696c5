"""Shell-like word splitting that never invokes a shell.

The same word list is used for allowlist matching and as the argument
vector handed to the process launcher.
"""

from __future__ import annotations

from ficli.errors import CommandParseError

_WHITESPACE = frozenset(" \t\n")


def split_command(command: str) -> list[str]:
    """Split ``command`` into words.

    Single quotes suppress all escaping. Inside double quotes a backslash
    escapes the next character. Outside quotes a backslash escapes the next
    character and unquoted space, tab or newline separates words.

    Raises:
        CommandParseError: the string ends inside a quote or after a backslash.
    """
    words: list[str] = []
    buf: list[str] = []
    in_word = False
    in_single = False
    in_double = False
    escape = False

    for char in command:
        if escape:
            buf.append(char)
            escape = False
            continue
        if char == "\\" and not in_single:
            escape = True
            in_word = True
            continue
        if char == "'" and not in_double:
            in_single = not in_single
            in_word = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
            in_word = True
            continue
        if char in _WHITESPACE and not in_single and not in_double:
            if in_word:
                words.append("".join(buf))
                buf.clear()
                in_word = False
            continue
        buf.append(char)
        in_word = True

    if escape or in_single or in_double:
        raise CommandParseError("unterminated quote or escape in command")
    if in_word:
        words.append("".join(buf))
    return words
