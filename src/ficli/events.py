"""Run events emitted by the agent for renderers and run logs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Event types, named ``domain.action``."""

    RUN_STARTED = "run.started"
    PLAN_GENERATED = "plan.generated"
    TOOL_STARTED = "tool.started"
    TOOL_FINISHED = "tool.finished"
    TOOL_FAILED = "tool.failed"
    MODEL_DELTA = "model.delta"
    ANSWER_READY = "answer.ready"
    RUN_FINISHED = "run.finished"
    RUN_ERROR = "run.error"

    @property
    def domain(self) -> str:
        return self.value.split(".")[0]

    @property
    def action(self) -> str:
        return self.value.split(".")[1]


def utc_now() -> datetime:
    return datetime.now(UTC)


class BaseEvent(BaseModel):
    """Base class for run events.

    Subclasses set ``event_type`` and declare their payload as fields.
    """

    event_type: ClassVar[EventType]

    timestamp: datetime = Field(default_factory=utc_now)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"timestamp"})

    def to_record(self) -> dict[str, Any]:
        """Return the ``{type, timestamp, payload}`` envelope stored in run results."""
        return {
            "type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload(),
        }


class RunStarted(BaseEvent):
    event_type = EventType.RUN_STARTED

    version: str
    repo_root: str
    model: str
    run_id: str
    started_at: datetime


class PlanGenerated(BaseEvent):
    event_type = EventType.PLAN_GENERATED

    plan: list[str]


class ToolCallStarted(BaseEvent):
    event_type = EventType.TOOL_STARTED

    tool_name: str
    input: Any = None
    started_at: datetime


class ToolCallFinished(BaseEvent):
    event_type = EventType.TOOL_FINISHED

    tool_name: str
    status: str = "success"
    output: Any = None
    preview: str = ""
    line_count: int = 0
    byte_count: int = 0
    truncated: bool = False
    duration_ms: int = 0


class ToolCallFailed(ToolCallFinished):
    event_type = EventType.TOOL_FAILED

    status: str = "error"


class ModelDelta(BaseEvent):
    event_type = EventType.MODEL_DELTA

    delta: str


class FinalAnswerReady(BaseEvent):
    event_type = EventType.ANSWER_READY

    answer: str


class RunFinished(BaseEvent):
    event_type = EventType.RUN_FINISHED

    status: str
    finished_at: datetime


class RunError(BaseEvent):
    event_type = EventType.RUN_ERROR

    message: str


EventSink = Callable[[BaseEvent], None]
