"""Model transport contract used by the agent."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from openai.types.chat import ChatCompletionMessageParam

DeltaSink = Callable[[str], None]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"


@dataclass
class ModelRequest:
    """A chat completion request.

    ``tool_choice`` is ``None`` when no tools are offered.
    """

    model: str
    messages: list[ChatCompletionMessageParam]
    tools: list[dict[str, Any]] = field(default_factory=list)
    tool_choice: str | None = None


@dataclass
class ModelResponse:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


@runtime_checkable
class Client(Protocol):
    """Chat completion capability.

    ``stream`` calls ``on_delta`` zero or more times and returns the
    aggregated response; the aggregate is the same with or without a sink.
    Implementations raise :class:`ficli.errors.ModelTransportError` on
    request failures.
    """

    def create(self, request: ModelRequest, *, timeout: float | None = None) -> ModelResponse: ...

    def stream(
        self,
        request: ModelRequest,
        on_delta: DeltaSink | None = None,
        *,
        timeout: float | None = None,
    ) -> ModelResponse: ...
