"""Session: one PTY-backed shell plus its protocol state."""

from __future__ import annotations

import asyncio
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from bashmcp.pty.process import PTYProcess, Subscription
from bashmcp.shell.parser import CommandOutputParser
from bashmcp.types import SessionInfo


class SessionState(enum.Enum):
    IDLE = "IDLE"
    RUNNING_COMMAND = "RUNNING_COMMAND"
    INTERACTIVE_PROGRAM = "INTERACTIVE_PROGRAM"


class InputCollector:
    """Accumulates raw output for one input injection (or for init)."""

    def __init__(self) -> None:
        self.text = ""
        self._event = asyncio.Event()

    def feed(self, chunk: str) -> None:
        self.text += chunk
        self._event.set()

    def wake(self) -> None:
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """Wait for new output. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        self._event.clear()
        return True


@dataclass
class Session:
    """A long-lived shell reachable across calls.

    The session holds at most one subscription on its PTY, and only while
    work is pending (a command parser, an input collection, or both). Each
    chunk is dispatched to whichever of the two is active.

    Owned and mutated only by :class:`~bashmcp.session.manager.SessionManager`.
    """

    process: PTYProcess
    cwd: str
    is_interactive: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)
    state: SessionState = SessionState.IDLE
    initialized: bool = False
    parser: CommandOutputParser | None = None
    collector: InputCollector | None = None

    _subscription: Subscription | None = field(default=None, init=False, repr=False)
    _command_done: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)

    def touch(self) -> None:
        self.last_activity = datetime.now()

    @property
    def busy(self) -> bool:
        """True while a command or an input collection is in flight."""
        return self.parser is not None or self.collector is not None

    # ------------------------------------------------------------------
    # Pending work
    # ------------------------------------------------------------------

    def begin_command(self, parser: CommandOutputParser) -> None:
        self.parser = parser
        self._command_done.clear()
        self._listen()

    def end_command(self) -> None:
        self.parser = None
        self._release()

    async def wait_for_command(self, timeout: float) -> bool:
        """Wait until the in-flight parser completes or the shell dies.

        Returns False if ``timeout`` elapsed first.
        """
        try:
            await asyncio.wait_for(self._command_done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def begin_collect(self) -> InputCollector:
        self.collector = InputCollector()
        self._listen()
        return self.collector

    def end_collect(self) -> None:
        self.collector = None
        self._release()

    def mark_exited(self) -> None:
        """Wake every waiter after the shell went away."""
        self._command_done.set()
        if self.collector is not None:
            self.collector.wake()

    # ------------------------------------------------------------------
    # PTY subscription
    # ------------------------------------------------------------------

    def _listen(self) -> None:
        if self._subscription is None:
            self._subscription = self.process.subscribe(self._dispatch)

    def _release(self) -> None:
        if self._subscription is not None and not self.busy:
            self._subscription.dispose()
            self._subscription = None

    def _dispatch(self, chunk: str) -> None:
        parser = self.parser
        if parser is not None and not parser.is_complete():
            parser.process_output(chunk)
            if parser.is_complete():
                self._command_done.set()
        if self.collector is not None:
            self.collector.feed(chunk)

    def close(self) -> None:
        """Kill the shell and drop any pending work."""
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        self.process.kill()
        self.mark_exited()

    def info(self) -> SessionInfo:
        return SessionInfo(
            id=self.id,
            created_at=self.created_at,
            last_activity=self.last_activity,
            cwd=self.cwd,
            state=self.state.value,
        )
