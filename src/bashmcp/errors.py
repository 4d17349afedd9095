"""Error taxonomy for bashmcp.

The session engine raises these internally; the public surface (``BashMCP``,
tools, MCP server) reports them as ``success=False`` results instead of
letting them escape.
"""

from __future__ import annotations


class BashMCPError(Exception):
    """Base class for all bashmcp errors."""


class ConfigError(BashMCPError):
    """Configuration is missing or invalid."""


class ValidationError(BashMCPError):
    """A command or directory was rejected by the allow-list."""


class SessionNotFoundError(BashMCPError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionBusyError(BashMCPError):
    """The session already has an operation in flight."""

    def __init__(self, session_id: str, state: str) -> None:
        super().__init__(f"Session {session_id} is busy ({state})")
        self.session_id = session_id
        self.state = state


class SessionLimitError(BashMCPError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum number of sessions reached ({limit})")
        self.limit = limit


class SessionTimeoutError(BashMCPError):
    """Initialization, command or input collection exceeded its bound."""


class SpawnError(BashMCPError):
    """The pseudo-terminal shell could not be started."""
