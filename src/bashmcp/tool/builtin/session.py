"""Session tools: create, feed, close and list interactive sessions."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from bashmcp.core import BashMCP
from bashmcp.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from bashmcp.tool.builtin.command import format_result


class CreateSessionParams(BaseModel):
    cwd: str = Field(
        description="Working directory for the session (must be in an allowed directory)"
    )
    interactive: bool = Field(
        default=False,
        description="Keep terminal echo and line editing on, for driving interactive programs",
    )


class CreateSessionTool(BaseTool[CreateSessionParams]):
    name: ClassVar[str] = "create_session"
    description: ClassVar[str] = "Create a new bash session"
    param_model: ClassVar[type[BaseModel]] = CreateSessionParams

    def __init__(self, bash: BashMCP) -> None:
        self._bash = bash

    async def execute(self, params: CreateSessionParams) -> ToolResult:
        result = await self._bash.create_session(params.cwd, params.interactive)
        if not result["success"]:
            return ToolError(output=f"Failed to create session: {result['error']}")
        return ToolOk(output=f"Created new session with ID: {result['session_id']}")


class SendSessionInputParams(BaseModel):
    session_id: str = Field(description="Session ID of the interactive session")
    input: str = Field(description="The input to send to the session (a newline is appended)")
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Timeout in seconds for output collection (defaults to config setting)",
    )


class SendSessionInputTool(BaseTool[SendSessionInputParams]):
    name: ClassVar[str] = "send_session_input"
    description: ClassVar[str] = (
        "Send input to a program running in a bash session and return the output "
        "it prints in response. Returns early when the output looks like a prompt."
    )
    param_model: ClassVar[type[BaseModel]] = SendSessionInputParams

    def __init__(self, bash: BashMCP) -> None:
        self._bash = bash

    async def execute(self, params: SendSessionInputParams) -> ToolResult:
        result = await self._bash.send_input(params.session_id, params.input, params.timeout)
        return format_result(result)


class CloseSessionParams(BaseModel):
    session_id: str = Field(description="Session ID of the session to close")


class CloseSessionTool(BaseTool[CloseSessionParams]):
    name: ClassVar[str] = "close_session"
    description: ClassVar[str] = "Close a bash session and kill its shell"
    param_model: ClassVar[type[BaseModel]] = CloseSessionParams

    def __init__(self, bash: BashMCP) -> None:
        self._bash = bash

    async def execute(self, params: CloseSessionParams) -> ToolResult:
        result = self._bash.close_session(params.session_id)
        if not result["success"]:
            return ToolError(output=f"Failed to close session: {result['error']}")
        return ToolOk(output=f"Session {params.session_id} closed successfully")


class ListSessionsParams(BaseModel):
    pass


class ListSessionsTool(BaseTool[ListSessionsParams]):
    name: ClassVar[str] = "list_sessions"
    description: ClassVar[str] = "List all active bash sessions"
    param_model: ClassVar[type[BaseModel]] = ListSessionsParams

    def __init__(self, bash: BashMCP) -> None:
        self._bash = bash

    async def execute(self, params: ListSessionsParams) -> ToolResult:
        sessions = self._bash.list_sessions()
        if not sessions:
            return ToolOk(output="No active sessions")

        blocks = [
            f"ID: {s.id}\n"
            f"Created: {s.created_at.isoformat()}\n"
            f"Last Activity: {s.last_activity.isoformat()}\n"
            f"Directory: {s.cwd}\n"
            f"State: {s.state}"
            for s in sessions
        ]
        return ToolOk(output="Active sessions:\n\n" + "\n\n".join(blocks))
