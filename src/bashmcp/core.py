"""BashMCP: the public surface over both execution paths.

Everything here answers with result values. Errors raised by the session
engine are caught and reported as ``success=False``; nothing below is
expected to escape to the transport.
"""

from __future__ import annotations

import logging
from typing import Any

from bashmcp.config import BashMCPConfig
from bashmcp.errors import BashMCPError, SessionNotFoundError
from bashmcp.executor import CommandExecutor
from bashmcp.security import sanitize_output, validate_command
from bashmcp.session import SessionManager
from bashmcp.types import ExecutionResult, SessionInfo

logger = logging.getLogger(__name__)


class BashMCP:
    """Routes commands to a session or to the stateless executor."""

    def __init__(
        self,
        config: BashMCPConfig,
        manager: SessionManager | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config
        self.manager = manager if manager is not None else SessionManager(config)
        self.executor = executor if executor is not None else CommandExecutor(config)

    async def __aenter__(self) -> BashMCP:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def execute_command(
        self,
        command: str,
        session_id: str | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run ``command``.

        With ``session_id`` the command goes to that session. Without one, a
        ``cwd`` in stateful default mode gets a fresh session; anything else
        runs stateless.
        """
        try:
            if session_id:
                return await self._execute_in_session(session_id, command, timeout)

            if cwd and self.config.session.default_mode == "stateful":
                created = await self.create_session(cwd)
                if not created["success"]:
                    return ExecutionResult.failure(command, created["error"])
                return await self._execute_in_session(created["session_id"], command, timeout)

            result = await self.executor.execute(command, timeout=timeout, cwd=cwd)
            return result
        except Exception as e:
            logger.error("Unexpected error executing %r: %s", command, e, exc_info=True)
            return ExecutionResult.failure(command, e, session_id=session_id)

    async def _execute_in_session(
        self, session_id: str, command: str, timeout: float | None
    ) -> ExecutionResult:
        if self.config.security.validate_session_commands:
            validation = validate_command(command, self.config)
            if not validation.valid:
                return ExecutionResult.failure(
                    command, validation.reason or "Command rejected", session_id=session_id
                )

        result = await self.manager.execute_in_session(session_id, command, timeout)
        result.output = sanitize_output(result.output, self.config)
        return result

    async def send_input(
        self, session_id: str, text: str, timeout: float | None = None
    ) -> ExecutionResult:
        """Push raw ``text`` into a session and collect what comes back."""
        if self.manager.get_session(session_id) is None:
            return ExecutionResult.failure(
                text, SessionNotFoundError(session_id), session_id=session_id
            )

        wait_for = timeout or self.config.security.command_timeout
        try:
            result = await self.manager.collect_output_after_input(session_id, text, wait_for)
        except Exception as e:
            logger.error("Unexpected error sending input to %s: %s", session_id, e, exc_info=True)
            return ExecutionResult.failure(text, e, session_id=session_id)

        result.output = sanitize_output(result.output, self.config)
        return result

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, cwd: str, interactive: bool = False) -> dict[str, Any]:
        try:
            session = await self.manager.create_session(cwd, interactive)
        except BashMCPError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.error("Unexpected error creating session in %s: %s", cwd, e, exc_info=True)
            return {"success": False, "error": f"Failed to create session: {e}"}
        return {"success": True, "session_id": session.id}

    def close_session(self, session_id: str) -> dict[str, Any]:
        if self.manager.close_session(session_id):
            return {"success": True}
        return {"success": False, "error": str(SessionNotFoundError(session_id))}

    def list_sessions(self) -> list[SessionInfo]:
        return self.manager.list_sessions()

    async def shutdown(self) -> None:
        await self.manager.shutdown()
