"""OpenAI-compatible chat transport (OpenRouter by default)."""

from __future__ import annotations

from typing import Any

import openai
from loguru import logger
from openai.types.chat import ChatCompletion

from ficli.errors import ModelTransportError
from ficli.llm.client import DeltaSink, ModelRequest, ModelResponse, ToolCall

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
TEMPERATURE = 0.2


class OpenAIClient:
    """Client backed by the ``openai`` SDK."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = DEFAULT_BASE_URL,
        http_referer: str | None = None,
        title: str | None = None,
        sdk_client: Any | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if http_referer:
            headers["HTTP-Referer"] = http_referer
        if title:
            headers["X-Title"] = title
        self._client = sdk_client or openai.OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            default_headers=headers or None,
            max_retries=0,
        )

    def _params(self, request: ModelRequest) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": request.model,
            "messages": request.messages,
            "temperature": TEMPERATURE,
        }
        if request.tools:
            params["tools"] = request.tools
            if request.tool_choice:
                params["tool_choice"] = request.tool_choice
        return params

    def create(self, request: ModelRequest, *, timeout: float | None = None) -> ModelResponse:
        try:
            completion = self._client.chat.completions.create(**self._params(request), timeout=timeout)
        except openai.OpenAIError as exc:
            logger.warning("model.request.error model={} error={}", request.model, exc)
            raise ModelTransportError(f"model request failed: {exc}") from exc
        return parse_chat_completion(completion)

    def stream(
        self,
        request: ModelRequest,
        on_delta: DeltaSink | None = None,
        *,
        timeout: float | None = None,
    ) -> ModelResponse:
        parts: list[str] = []
        try:
            chunks = self._client.chat.completions.create(**self._params(request), stream=True, timeout=timeout)
            for chunk in chunks:
                for choice in chunk.choices:
                    delta = choice.delta.content if choice.delta else None
                    if not delta:
                        continue
                    parts.append(delta)
                    if on_delta is not None:
                        on_delta(delta)
        except openai.OpenAIError as exc:
            logger.warning("model.stream.error model={} error={}", request.model, exc)
            raise ModelTransportError(f"model stream failed: {exc}") from exc
        return ModelResponse(content="".join(parts))


def parse_chat_completion(completion: ChatCompletion) -> ModelResponse:
    if completion is None or not completion.choices:
        raise ModelTransportError("empty response")
    message = completion.choices[0].message
    calls: list[ToolCall] = []
    for item in message.tool_calls or []:
        if item.type != "function":
            continue
        calls.append(ToolCall(id=item.id, name=item.function.name, arguments=item.function.arguments or "{}"))
    return ModelResponse(content=message.content or "", tool_calls=calls)
