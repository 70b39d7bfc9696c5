"""Deterministic client for tests and offline demos."""

from __future__ import annotations

import json
import threading

from ficli.llm.client import DeltaSink, ModelRequest, ModelResponse, ToolCall

MOCK_PLAN = "- Review repository context\n- Use grep to find signals\n- Summarize findings with citations"
MOCK_ANSWER = (
    "Summary: Mock response based on tool results. [tool:grep]\n"
    "Next steps: Review the referenced files for details."
)
MOCK_GREP_ARGUMENTS = {"pattern": "FICLI", "case_sensitive": False, "max_results": 20}


class MockClient:
    """Plan, then one grep call, then a fixed cited answer.

    Requests without tool definitions are planning requests and always get
    the plan. The first tool-bearing request asks for ``grep``; every later
    one gets the answer.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls = 0
        self.stream_calls = 0
        self._tool_requests = 0

    def create(self, request: ModelRequest, *, timeout: float | None = None) -> ModelResponse:
        with self._lock:
            self.calls += 1
            if not request.tools:
                return ModelResponse(content=MOCK_PLAN)
            self._tool_requests += 1
            if self._tool_requests == 1:
                call = ToolCall(id="call_1", name="grep", arguments=json.dumps(MOCK_GREP_ARGUMENTS))
                return ModelResponse(tool_calls=[call])
            return ModelResponse(content=MOCK_ANSWER)

    def stream(
        self,
        request: ModelRequest,
        on_delta: DeltaSink | None = None,
        *,
        timeout: float | None = None,
    ) -> ModelResponse:
        with self._lock:
            self.stream_calls += 1
        if on_delta is not None:
            on_delta(MOCK_ANSWER)
        return ModelResponse(content=MOCK_ANSWER)
