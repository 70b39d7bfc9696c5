"""Tools exposed to the model."""

from ficli.tools.base import Meta, Tool, ToolResult
from ficli.tools.grep import GrepTool
from ficli.tools.registry import ToolRegistry
from ficli.tools.shell import Allowlist, CommandPolicy, ShellTool
from ficli.tools.web import ExaSearchTool


def build_tools(
    *,
    allowlist: Allowlist | None = None,
    unsafe_shell: bool = False,
    exa_api_key: str | None = None,
    use_ripgrep: bool = True,
) -> ToolRegistry:
    """Build the tool set for one run.

    ``grep`` is always present. ``shell`` is registered only when commands
    are allowlisted or the unsafe override is set, and ``exa_search`` only
    with an Exa key.
    """
    tools: list[Tool] = [GrepTool(use_ripgrep=use_ripgrep)]
    if unsafe_shell or allowlist:
        tools.append(ShellTool(allowlist))
    if exa_api_key:
        tools.append(ExaSearchTool(exa_api_key))
    return ToolRegistry(tools)


__all__ = [
    "Allowlist",
    "CommandPolicy",
    "ExaSearchTool",
    "GrepTool",
    "Meta",
    "ShellTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "build_tools",
]
