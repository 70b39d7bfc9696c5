"""Name-to-tool lookup table built once per run."""

from __future__ import annotations

import json
import time
from collections.abc import Iterable
from types import MappingProxyType
from typing import Any

from loguru import logger

from ficli.tools.base import Meta, Tool, ToolResult
from ficli.utils.redact import redact_secrets


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


class ToolRegistry:
    """Registry of the tools exposed to the model for one run.

    The mapping is read-only after construction, so it can be shared by
    concurrent readers.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        table: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in table:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            table[tool.name] = tool
        self._tools = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def definitions(self) -> list[dict[str, Any]]:
        """Return tool definitions for the model, sorted by name."""
        return [self._tools[name].definition() for name in self.names()]

    def _log_tool_call(self, name: str, arguments: str | dict[str, Any] | None) -> None:
        if isinstance(arguments, dict):
            rendered = json.dumps(arguments, ensure_ascii=False, sort_keys=True)
        else:
            rendered = arguments or "{}"
        logger.info(
            "tool.call.start name={} {{ {} }}",
            name,
            _shorten_text(redact_secrets(rendered), width=80),
        )

    def execute(self, name: str, arguments: str | dict[str, Any] | None, meta: Meta) -> ToolResult:
        tool = self.get(name)
        if tool is None:
            raise KeyError(name)

        self._log_tool_call(name, arguments)
        start = time.monotonic()
        try:
            return tool.execute(arguments, meta)
        except Exception:
            logger.debug("tool.call.error name={}", name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)
