"""Tool contract shared by every model-callable tool."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from ficli.errors import ToolValidationError

InputT = TypeVar("InputT", bound=BaseModel)


@dataclass(frozen=True)
class Meta:
    """Execution context handed fresh to each tool invocation.

    Tools must not keep a reference to it after ``execute`` returns.
    ``max_bytes`` and ``max_results`` of zero mean unlimited.
    """

    repo_root: Path
    unsafe_shell: bool = False
    timeout_seconds: float = 10.0
    max_bytes: int = 0
    max_results: int = 0


@dataclass
class ToolResult:
    """Structured tool output.

    ``payload`` is what the model sees; ``preview`` is for display only.
    ``truncated`` is set whenever the payload was cut to fit a budget.
    """

    tool_name: str
    payload: dict[str, Any]
    preview: str = ""
    line_count: int = 0
    byte_count: int = 0
    truncated: bool = False
    duration_ms: int = 0


class Tool(ABC, Generic[InputT]):
    """A named, schema-described capability the model may invoke."""

    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]

    def schema(self) -> dict[str, Any]:
        schema = deepcopy(self.input_model.model_json_schema())
        schema.pop("title", None)
        schema.pop("description", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema

    def definition(self) -> dict[str, Any]:
        """Return the OpenAI-style function definition for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.schema(),
            },
        }

    def parse_arguments(self, arguments: str | dict[str, Any] | None) -> InputT:
        try:
            if isinstance(arguments, dict):
                return self.input_model.model_validate(arguments)  # type: ignore[return-value]
            raw = (arguments or "").strip() or "{}"
            return self.input_model.model_validate_json(raw)  # type: ignore[return-value]
        except ValidationError as exc:
            raise ToolValidationError(f"invalid arguments for {self.name}: {_summarize(exc)}") from exc

    def execute(self, arguments: str | dict[str, Any] | None, meta: Meta) -> ToolResult:
        """Validate raw model arguments and run the tool."""
        return self.run(self.parse_arguments(arguments), meta)

    @abstractmethod
    def run(self, params: InputT, meta: Meta) -> ToolResult:
        """Run the tool with validated parameters."""


def _summarize(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts) or json.dumps(exc.errors(), default=str)
