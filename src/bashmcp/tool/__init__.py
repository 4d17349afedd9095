"""Tool layer: validated tool classes and their registry."""

from bashmcp.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from bashmcp.tool.registry import ToolRegistry

__all__ = ["BaseTool", "ToolError", "ToolOk", "ToolRegistry", "ToolResult"]
