"""Built-in tools exposed over MCP."""

from __future__ import annotations

from bashmcp.core import BashMCP
from bashmcp.tool.base import BaseTool
from bashmcp.tool.builtin.command import ExecuteCommandTool, format_result
from bashmcp.tool.builtin.session import (
    CloseSessionTool,
    CreateSessionTool,
    ListSessionsTool,
    SendSessionInputTool,
)
from bashmcp.tool.registry import ToolRegistry


def builtin_tools(bash: BashMCP) -> list[BaseTool]:
    return [
        ExecuteCommandTool(bash),
        CreateSessionTool(bash),
        SendSessionInputTool(bash),
        CloseSessionTool(bash),
        ListSessionsTool(bash),
    ]


def build_registry(bash: BashMCP) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_many(builtin_tools(bash))
    return registry


__all__ = [
    "CloseSessionTool",
    "CreateSessionTool",
    "ExecuteCommandTool",
    "ListSessionsTool",
    "SendSessionInputTool",
    "build_registry",
    "builtin_tools",
    "format_result",
]
