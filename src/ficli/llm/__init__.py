"""Model transports."""

from ficli.llm.client import Client, ModelRequest, ModelResponse, ToolCall
from ficli.llm.mock import MockClient
from ficli.llm.openai_client import OpenAIClient

__all__ = [
    "Client",
    "MockClient",
    "ModelRequest",
    "ModelResponse",
    "OpenAIClient",
    "ToolCall",
]
