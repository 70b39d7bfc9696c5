"""Agent orchestration loop."""

from ficli.agent.core import Agent, RunResult, RunStatus, ToolCallRecord, format_plan, parse_plan, sanitize_input

__all__ = [
    "Agent",
    "RunResult",
    "RunStatus",
    "ToolCallRecord",
    "format_plan",
    "parse_plan",
    "sanitize_input",
]
