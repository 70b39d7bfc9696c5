from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest
from openai.types.chat import ChatCompletion

from ficli.errors import ModelTransportError
from ficli.llm import MockClient, OpenAIClient
from ficli.llm.client import Client, ModelRequest
from ficli.llm.mock import MOCK_ANSWER, MOCK_PLAN
from ficli.llm.openai_client import parse_chat_completion


def _completion(message: dict[str, Any]) -> ChatCompletion:
    return ChatCompletion.model_validate(
        {
            "id": "cmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "test-model",
            "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", **message}}],
        }
    )


def _chunk(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    def __init__(self, result: Any) -> None:
        self.result = result
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def _client(result: Any) -> tuple[OpenAIClient, FakeCompletions]:
    completions = FakeCompletions(result)
    sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIClient("sk-test", sdk_client=sdk), completions


def _request(**overrides: Any) -> ModelRequest:
    values: dict[str, Any] = {"model": "test-model", "messages": [{"role": "user", "content": "hi"}]}
    values.update(overrides)
    return ModelRequest(**values)


def test_parse_tool_calls() -> None:
    completion = _completion(
        {
            "content": None,
            "tool_calls": [
                {"id": "call_1", "type": "function", "function": {"name": "grep", "arguments": '{"pattern": "x"}'}}
            ],
        }
    )
    response = parse_chat_completion(completion)
    assert response.content == ""
    assert [(call.id, call.name, call.arguments) for call in response.tool_calls] == [
        ("call_1", "grep", '{"pattern": "x"}')
    ]


def test_empty_choices_is_transport_error() -> None:
    completion = _completion({"content": "x"}).model_copy(update={"choices": []})
    with pytest.raises(ModelTransportError, match="empty response"):
        parse_chat_completion(completion)


def test_request_parameters() -> None:
    client, completions = _client(_completion({"content": "answer"}))

    assert client.create(_request(), timeout=3.0).content == "answer"
    first = completions.calls[0]
    assert first["temperature"] == 0.2
    assert first["timeout"] == 3.0
    assert "tools" not in first
    assert "tool_choice" not in first

    tools = [{"type": "function", "function": {"name": "grep", "parameters": {}}}]
    client.create(_request(tools=tools, tool_choice="auto"))
    assert completions.calls[1]["tools"] == tools
    assert completions.calls[1]["tool_choice"] == "auto"


def test_sdk_errors_become_transport_errors() -> None:
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    client, _ = _client(openai.APIConnectionError(request=request))
    with pytest.raises(ModelTransportError, match="model request failed"):
        client.create(_request())
    with pytest.raises(ModelTransportError, match="model stream failed"):
        client.stream(_request())


def test_stream_aggregates_deltas() -> None:
    client, completions = _client([_chunk("Hel"), _chunk(None), _chunk("lo")])
    seen: list[str] = []

    response = client.stream(_request(), seen.append)
    assert response.content == "Hello"
    assert seen == ["Hel", "lo"]
    assert completions.calls[0]["stream"] is True

    client, _ = _client([_chunk("Hel"), _chunk("lo")])
    assert client.stream(_request()).content == "Hello"


def test_mock_client_script() -> None:
    client = MockClient()
    assert isinstance(client, Client)
    tools = [{"type": "function", "function": {"name": "grep", "parameters": {}}}]

    assert client.create(_request()).content == MOCK_PLAN
    first = client.create(_request(tools=tools, tool_choice="auto"))
    assert [call.name for call in first.tool_calls] == ["grep"]
    assert client.create(_request(tools=tools, tool_choice="auto")).content == MOCK_ANSWER
    assert client.create(_request()).content == MOCK_PLAN

    deltas: list[str] = []
    assert client.stream(_request(), deltas.append).content == MOCK_ANSWER
    assert deltas == [MOCK_ANSWER]
    assert client.calls == 4
    assert client.stream_calls == 1
