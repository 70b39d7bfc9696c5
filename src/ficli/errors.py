"""Application-level exception types for fi."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ficli.agent.core import RunResult


class FiError(Exception):
    """Base exception for fi."""


class ConfigurationError(FiError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class ToolError(FiError):
    """Base exception for tool failures that are reported back to the model."""


class ToolValidationError(ToolError):
    """Raised for bad tool arguments, disallowed commands and path escapes."""


class CommandParseError(ToolValidationError):
    """Raised when a command string cannot be split into words."""


class ToolExecutionError(ToolError):
    """Raised when a validated tool invocation fails to run."""


class ModelTransportError(FiError):
    """Raised when a model request fails at the transport level."""


class DeadlineExceededError(FiError):
    """Raised when the run deadline expires or the run is cancelled."""


class AgentRunError(FiError):
    """Raised when a run does not finish successfully.

    The frozen run result is attached so callers can still render or persist it.
    """

    def __init__(self, message: str, result: RunResult) -> None:
        super().__init__(message)
        self.result = result


class RunFailedError(AgentRunError):
    """Raised for runs that end with status ``failure``."""


class MaxStepsReachedError(AgentRunError):
    """Raised for runs that exhaust the step budget (status ``partial``)."""
