"""execute_command: run a command stateless or in a session."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from bashmcp.core import BashMCP
from bashmcp.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from bashmcp.types import ExecutionResult


class ExecuteCommandParams(BaseModel):
    command: str = Field(description="The bash command to execute")
    cwd: str | None = Field(
        default=None,
        description="Working directory for the command (must be in an allowed directory)",
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Timeout in seconds (defaults to config setting)"
    )
    session_id: str | None = Field(
        default=None,
        description="Session ID for stateful commands (if omitted, a stateless command is executed)",
    )


def format_result(result: ExecutionResult) -> ToolResult:
    """Render an execution result as tool output text."""
    output = result.output
    if result.waiting_for_input:
        output = f"{output}\n[Waiting for input]" if output else "[Waiting for input]"

    if result.success:
        return ToolOk(output=output)

    if result.exit_code is not None:
        return ToolError(output=f"[Exit code: {result.exit_code}]\n{output}".rstrip())
    if result.error and result.error != output:
        return ToolError(output=f"{result.error}\n{output}" if output else result.error)
    return ToolError(output=output)


class ExecuteCommandTool(BaseTool[ExecuteCommandParams]):
    name: ClassVar[str] = "execute_command"
    description: ClassVar[str] = (
        "Execute a Bash command with security safeguards. "
        "Without session_id the command runs in a fresh process and must pass "
        "the command allow-list. With session_id it runs in that session's "
        "shell, inside a subshell: to change the session's own directory or "
        "environment, send the cd or export through send_session_input."
    )
    param_model: ClassVar[type[BaseModel]] = ExecuteCommandParams

    def __init__(self, bash: BashMCP) -> None:
        self._bash = bash

    async def execute(self, params: ExecuteCommandParams) -> ToolResult:
        result = await self._bash.execute_command(
            params.command,
            session_id=params.session_id,
            cwd=params.cwd,
            timeout=params.timeout,
        )
        return format_result(result)
