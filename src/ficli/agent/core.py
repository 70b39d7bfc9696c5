"""Core agent loop: plan, call tools, answer."""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger
from openai.types.chat import ChatCompletionMessageParam
from pydantic import BaseModel, ConfigDict

from ficli import __version__
from ficli.agent import prompts
from ficli.config import Settings
from ficli.deadline import Deadline
from ficli.errors import (
    DeadlineExceededError,
    MaxStepsReachedError,
    ModelTransportError,
    RunFailedError,
    ToolError,
)
from ficli.events import (
    BaseEvent,
    EventSink,
    FinalAnswerReady,
    ModelDelta,
    PlanGenerated,
    RunError,
    RunFinished,
    RunStarted,
    ToolCallFailed,
    ToolCallFinished,
    ToolCallStarted,
    utc_now,
)
from ficli.llm.client import Client, ModelRequest, ToolCall
from ficli.tools.base import Meta
from ficli.tools.registry import ToolRegistry
from ficli.utils.history import load_shell_history
from ficli.utils.redact import redact_secrets

MAX_PLAN_ITEMS = 8
MIN_PLAN_ITEMS = 3
FALLBACK_PLAN = ("Review repository context", "Run focused searches", "Summarize evidence with citations")
DEFAULT_PARTIAL_ANSWER = "Max steps reached; unable to complete."
MAX_STEPS_PREFIX = "Max steps reached. "


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class ToolCallRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    input: Any = None
    output: Any = None
    status: str
    started_at: datetime
    duration_ms: int = 0


class RunResult(BaseModel):
    """Outcome of one run; immutable once returned."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    question: str
    model: str
    repo_root: str
    started_at: datetime
    finished_at: datetime | None = None
    steps_used: int = 0
    status: RunStatus = RunStatus.FAILURE
    final_answer: str = ""
    error: str | None = None
    tool_calls: tuple[ToolCallRecord, ...] = ()
    events: tuple[dict[str, Any], ...] = ()


@dataclass
class _RunState:
    run_id: str
    question: str
    model: str
    repo_root: Path
    started_at: datetime
    steps_used: int = 0
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    events: list[dict[str, Any]] = field(default_factory=list)

    def freeze(
        self,
        status: RunStatus,
        *,
        final_answer: str = "",
        error: str | None = None,
        finished_at: datetime | None = None,
    ) -> RunResult:
        return RunResult(
            run_id=self.run_id,
            question=self.question,
            model=self.model,
            repo_root=str(self.repo_root),
            started_at=self.started_at,
            finished_at=finished_at or utc_now(),
            steps_used=self.steps_used,
            status=status,
            final_answer=final_answer,
            error=error,
            tool_calls=tuple(self.tool_calls),
            events=tuple(self.events),
        )


def parse_plan(text: str) -> list[str]:
    """Turn a bulleted model reply into plan items.

    Falls back to a fixed plan when fewer than three usable lines remain.
    """
    plan: list[str] = []
    for raw in text.splitlines():
        line = raw.strip().lstrip("-*").strip()
        if not line:
            continue
        if len(plan) < MAX_PLAN_ITEMS:
            plan.append(line)
    if len(plan) < MIN_PLAN_ITEMS:
        return list(FALLBACK_PLAN)
    return plan


def format_plan(plan: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in plan)


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_secrets(value)
    if isinstance(value, dict):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    return value


def sanitize_input(arguments: str | None) -> Any:
    """Decode tool arguments for events and history with secrets redacted."""
    if not arguments or not arguments.strip():
        return {}
    try:
        data = json.loads(arguments)
    except json.JSONDecodeError:
        return {"raw": redact_secrets(arguments)}
    return _redact_value(data)


def _assistant_message(calls: list[ToolCall], content: str) -> ChatCompletionMessageParam:
    return {
        "role": "assistant",
        "content": content or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments or "{}"},
            }
            for call in calls
        ],
    }


def _tool_message(call_id: str, payload: Any) -> ChatCompletionMessageParam:
    return {
        "role": "tool",
        "tool_call_id": call_id,
        "content": json.dumps(payload, ensure_ascii=False, default=str),
    }


class Agent:
    """Drives one question through the model and the registered tools.

    Each step is one model round-trip. Every tool call the model requests
    gets exactly one tool-result message before the next request, even when
    the tool fails or does not exist.
    """

    def __init__(
        self,
        client: Client,
        tools: ToolRegistry,
        settings: Settings,
        *,
        on_event: Iterable[EventSink] = (),
        history_loader: Callable[[int], list[str]] = load_shell_history,
    ) -> None:
        self.client = client
        self.tools = tools
        self.settings = settings
        self._sinks = list(on_event)
        self._history_loader = history_loader

    @property
    def streaming(self) -> bool:
        """Whether final answers are requested as a stream (interactive mode)."""
        return not self.settings.json_output

    def run(
        self,
        question: str,
        *,
        repo_root: Path,
        repo_context: str = "",
        deadline: Deadline | None = None,
    ) -> RunResult:
        """Answer ``question`` about the repository at ``repo_root``.

        Raises:
            MaxStepsReachedError: the step budget ran out; the partial result is attached.
            RunFailedError: a model request failed, the deadline expired or the
                run was interrupted.
        """
        deadline = deadline or Deadline(self.settings.timeout_seconds)
        state = _RunState(
            run_id=str(uuid.uuid4()),
            question=question,
            model=self.settings.model,
            repo_root=Path(repo_root),
            started_at=utc_now(),
        )
        logger.info("run.start id={} model={} repo={}", state.run_id, state.model, state.repo_root)
        self._emit(
            state,
            RunStarted(
                version=__version__,
                repo_root=str(state.repo_root),
                model=state.model,
                run_id=state.run_id,
                started_at=state.started_at,
            ),
        )
        try:
            return self._run(state, repo_context, deadline)
        except KeyboardInterrupt:
            deadline.cancel()
            raise self._fail(state, "run interrupted") from None

    def _run(self, state: _RunState, repo_context: str, deadline: Deadline) -> RunResult:
        plan: list[str] = []
        if not self.settings.no_plan:
            plan = self._generate_plan(state.question, repo_context, deadline)
            self._emit(state, PlanGenerated(plan=plan))

        messages = self._initial_messages(state.question, repo_context, plan)
        definitions = self.tools.definitions()
        tool_choice = "auto" if definitions else None

        def request() -> ModelRequest:
            return ModelRequest(
                model=self.settings.model,
                messages=list(messages),
                tools=definitions,
                tool_choice=tool_choice,
            )

        while state.steps_used < self.settings.max_steps:
            state.steps_used += 1
            try:
                deadline.check()
                response = self.client.create(request(), timeout=deadline.remaining())
            except (ModelTransportError, DeadlineExceededError) as exc:
                logger.error("model.request.error step={} error={}", state.steps_used, exc)
                raise self._fail(state, str(exc)) from exc

            if not response.tool_calls:
                answer = response.content.strip()
                if self.streaming:
                    streamed = self._stream_final(state, request(), deadline)
                    if streamed.strip():
                        answer = streamed.strip()
                return self._finish(state, RunStatus.SUCCESS, answer)

            messages.append(_assistant_message(response.tool_calls, response.content))
            for call in response.tool_calls:
                messages.append(self._dispatch(state, call, deadline))

        logger.warning("run.max_steps id={} steps={}", state.run_id, state.steps_used)
        messages.append({"role": "developer", "content": prompts.MAX_STEPS_PROMPT})
        answer = self._partial_answer(state, request(), deadline)
        result = self._finish(state, RunStatus.PARTIAL, answer, error="max steps reached")
        raise MaxStepsReachedError("max steps reached", result)

    def _initial_messages(self, question: str, repo_context: str, plan: list[str]) -> list[ChatCompletionMessageParam]:
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": prompts.SYSTEM_PROMPT},
            {
                "role": "developer",
                "content": prompts.developer_prompt(self.tools.names(), web_enabled="exa_search" in self.tools),
            },
            {"role": "developer", "content": prompts.repo_context_message(repo_context)},
        ]
        if plan:
            messages.append({"role": "developer", "content": "Plan:\n" + format_plan(plan)})
        if not self.settings.no_history and self.settings.history_lines > 0:
            history = self._history_loader(self.settings.history_lines)
            if history:
                messages.append({"role": "developer", "content": prompts.history_message(history)})
        messages.append({"role": "user", "content": question})
        return messages

    def _generate_plan(self, question: str, repo_context: str, deadline: Deadline) -> list[str]:
        request = ModelRequest(
            model=self.settings.model,
            messages=[
                {"role": "system", "content": prompts.SYSTEM_PROMPT},
                {"role": "developer", "content": prompts.PLAN_PROMPT},
                {"role": "developer", "content": prompts.repo_context_message(repo_context)},
                {"role": "user", "content": question},
            ],
        )
        try:
            deadline.check()
            response = self.client.create(request, timeout=deadline.remaining())
        except (ModelTransportError, DeadlineExceededError) as exc:
            logger.warning("plan.request.error error={}", exc)
            return list(FALLBACK_PLAN)
        return parse_plan(response.content)

    def _meta_for(self, tool_name: str, repo_root: Path, deadline: Deadline) -> Meta:
        limits = self.settings.tool_limits
        max_bytes = 0
        max_results = 0
        if tool_name == "grep":
            max_bytes, max_results = limits.grep_max_bytes, limits.grep_max_results
        elif tool_name == "shell":
            max_bytes = limits.shell_max_bytes
        elif tool_name == "exa_search":
            max_bytes = limits.web_max_bytes
        timeout = deadline.bound(self.settings.tool_timeout_seconds)
        return Meta(
            repo_root=repo_root,
            unsafe_shell=self.settings.unsafe_shell,
            timeout_seconds=self.settings.tool_timeout_seconds if timeout is None else timeout,
            max_bytes=max_bytes,
            max_results=max_results,
        )

    def _dispatch(self, state: _RunState, call: ToolCall, deadline: Deadline) -> ChatCompletionMessageParam:
        """Run one tool call and return its tool-result message."""
        started_at = utc_now()
        tool_input = sanitize_input(call.arguments)

        if call.name not in self.tools:
            message = f"unknown tool: {call.name}"
            logger.warning("tool.call.unknown name={}", call.name)
            payload = {"error": message}
            state.tool_calls.append(
                ToolCallRecord(tool_name=call.name, input=tool_input, output=payload, status="error", started_at=started_at)
            )
            self._emit(
                state,
                ToolCallFailed(tool_name=call.name, preview=message, line_count=1, byte_count=len(message.encode())),
            )
            return _tool_message(call.id, payload)

        self._emit(state, ToolCallStarted(tool_name=call.name, input=tool_input, started_at=started_at))
        start = time.monotonic()
        error: str | None = None
        try:
            deadline.check()
            result = self.tools.execute(call.name, call.arguments, self._meta_for(call.name, state.repo_root, deadline))
        except (ToolError, DeadlineExceededError) as exc:
            error = str(exc)
        except Exception as exc:
            logger.exception("tool.call.crash name={}", call.name)
            error = f"{type(exc).__name__}: {exc}"
        duration_ms = int((time.monotonic() - start) * 1000)

        if error is not None:
            payload = {"error": error, "duration_ms": duration_ms}
            state.tool_calls.append(
                ToolCallRecord(
                    tool_name=call.name,
                    input=tool_input,
                    output=payload,
                    status="error",
                    started_at=started_at,
                    duration_ms=duration_ms,
                )
            )
            self._emit(
                state,
                ToolCallFailed(
                    tool_name=call.name,
                    output=payload,
                    preview=error,
                    line_count=1,
                    byte_count=len(error.encode()),
                    duration_ms=duration_ms,
                ),
            )
            return _tool_message(call.id, payload)

        result.duration_ms = duration_ms
        state.tool_calls.append(
            ToolCallRecord(
                tool_name=call.name,
                input=tool_input,
                output=result.payload,
                status="success",
                started_at=started_at,
                duration_ms=duration_ms,
            )
        )
        self._emit(
            state,
            ToolCallFinished(
                tool_name=call.name,
                output=result.payload,
                preview=result.preview,
                line_count=result.line_count,
                byte_count=result.byte_count,
                truncated=result.truncated,
                duration_ms=duration_ms,
            ),
        )
        return _tool_message(call.id, result.payload)

    def _stream_final(self, state: _RunState, request: ModelRequest, deadline: Deadline) -> str:
        """Stream the final answer; a failed stream yields "" so callers keep their fallback."""
        parts: list[str] = []

        def on_delta(delta: str) -> None:
            parts.append(delta)
            self._emit(state, ModelDelta(delta=delta))

        try:
            deadline.check()
            response = self.client.stream(request, on_delta, timeout=deadline.remaining())
        except (ModelTransportError, DeadlineExceededError) as exc:
            logger.warning("model.stream.error error={}", exc)
            return ""
        return response.content or "".join(parts)

    def _partial_answer(self, state: _RunState, request: ModelRequest, deadline: Deadline) -> str:
        answer = DEFAULT_PARTIAL_ANSWER
        if self.streaming:
            text = self._stream_final(state, request, deadline)
        else:
            try:
                deadline.check()
                text = self.client.create(request, timeout=deadline.remaining()).content
            except (ModelTransportError, DeadlineExceededError) as exc:
                logger.warning("model.partial.error error={}", exc)
                text = ""
        if text.strip():
            answer = text.strip()
        if "max steps" not in answer.lower():
            answer = MAX_STEPS_PREFIX + answer
        return answer

    def _finish(self, state: _RunState, status: RunStatus, answer: str, *, error: str | None = None) -> RunResult:
        self._emit(state, FinalAnswerReady(answer=answer))
        finished_at = utc_now()
        self._emit(state, RunFinished(status=status.value, finished_at=finished_at))
        logger.info("run.finish id={} status={} steps={}", state.run_id, status.value, state.steps_used)
        return state.freeze(status, final_answer=answer, error=error, finished_at=finished_at)

    def _fail(self, state: _RunState, message: str) -> RunFailedError:
        self._emit(state, RunError(message=message))
        self._emit(state, RunFinished(status=RunStatus.FAILURE.value, finished_at=utc_now()))
        logger.info("run.finish id={} status=failure steps={}", state.run_id, state.steps_used)
        return RunFailedError(message, state.freeze(RunStatus.FAILURE, error=message))

    def _emit(self, state: _RunState, event: BaseEvent) -> None:
        state.events.append(event.to_record())
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception("event.sink.error type={}", event.event_type.value)
