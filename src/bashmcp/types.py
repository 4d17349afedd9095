"""Result and snapshot types shared by both execution paths."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


@dataclass
class ExecutionResult:
    """Outcome of a command or an input injection."""

    success: bool
    output: str
    command: str
    exit_code: int | None = None
    error: str | None = None
    session_id: str | None = None
    is_interactive: bool = False
    waiting_for_input: bool = False
    duration: float | None = None  # seconds

    @classmethod
    def failure(
        cls,
        command: str,
        error: str | BaseException,
        *,
        output: str = "",
        session_id: str | None = None,
    ) -> ExecutionResult:
        return cls(
            success=False,
            output=output,
            command=command,
            error=str(error),
            session_id=session_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class SessionInfo:
    """Read-only snapshot of a session for listings."""

    id: str
    created_at: datetime
    last_activity: datetime
    cwd: str
    state: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "cwd": self.cwd,
            "state": self.state,
        }
