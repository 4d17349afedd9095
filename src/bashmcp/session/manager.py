"""Session Manager: registry and lifecycle of PTY-backed shell sessions."""

from __future__ import annotations

import asyncio
import logging
import subprocess
from datetime import datetime
from typing import Callable

from bashmcp.config import BashMCPConfig
from bashmcp.errors import (
    SessionBusyError,
    SessionLimitError,
    SessionNotFoundError,
    SessionTimeoutError,
    SpawnError,
    ValidationError,
)
from bashmcp.output import clean_terminal_text
from bashmcp.pty.process import PTYProcess
from bashmcp.security import is_directory_allowed
from bashmcp.session.session import InputCollector, Session, SessionState
from bashmcp.shell.heuristics import (
    PromptDetector,
    is_interactive_command,
    strip_input_echo,
)
from bashmcp.shell.markers import (
    PROMPT_RE,
    build_init_script,
    is_initialization_complete,
    strip_prompts,
    wrap_command,
)
from bashmcp.shell.parser import CommandOutputParser
from bashmcp.types import ExecutionResult, SessionInfo

logger = logging.getLogger(__name__)

ProcessFactory = Callable[..., PTYProcess]


class SessionManager:
    """Owns every live session.

    The manager ensures:
    - Sessions are tracked and can be looked up by ID
    - At most one command runs per session (others are rejected as busy)
    - A command resolves on its END marker or its timeout, whichever first
    - Idle sessions are evicted periodically
    - All sessions are killed on shutdown (no orphan processes)

    All methods must run on the same event loop; that loop is the single
    owner of the registry.
    """

    def __init__(
        self,
        config: BashMCPConfig,
        process_factory: ProcessFactory = PTYProcess,
    ) -> None:
        self._config = config
        self._process_factory = process_factory
        self._sessions: dict[str, Session] = {}
        self._prompts = PromptDetector(config.interaction.prompt_patterns)
        self._cleanup_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the idle-eviction task. Idempotent; needs a running loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(
                self._cleanup_loop()
            )

    async def create_session(self, cwd: str, interactive: bool = False) -> Session:
        """Spawn a shell in ``cwd``, inject the init script and wait for it.

        Raises:
            ValidationError: ``cwd`` is outside the allowed directories.
            SessionLimitError: the registry is full.
            SpawnError: the shell could not be started or died during init.
            SessionTimeoutError: the init sentinel did not show up in time.
        """
        self.start()

        if not is_directory_allowed(cwd, self._config.allowed_directories):
            logger.error("Cannot create session: directory %s is not allowed", cwd)
            raise ValidationError(f"Directory not allowed: {cwd}")

        limit = self._config.session.max_active_sessions
        if len(self._sessions) >= limit:
            logger.error("Cannot create session: maximum number of sessions reached")
            raise SessionLimitError(limit)

        process = self._process_factory(command=list(self._config.session.shell), cwd=cwd)
        try:
            process.start()
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("Failed to spawn shell in %s: %s", cwd, e)
            raise SpawnError(f"Failed to start shell in {cwd}: {e}") from e

        session = Session(process=process, cwd=cwd, is_interactive=interactive)
        process.set_on_exit(lambda _proc, code: self._on_shell_exit(session.id, code))
        self._sessions[session.id] = session
        logger.debug("Creating session %s in %s (interactive=%s)", session.id, cwd, interactive)

        init_timeout = self._config.session.init_timeout
        collector = session.begin_collect()
        try:
            await process.write(build_init_script(interactive))
            ready = await self._wait_for_init(session, collector, init_timeout)
        except (OSError, RuntimeError) as e:
            self.close_session(session.id)
            raise SpawnError(f"Failed to initialize shell: {e}") from e
        finally:
            session.end_collect()

        if not ready:
            alive = process.alive
            self.close_session(session.id)
            if not alive:
                raise SpawnError("Shell exited during initialization")
            logger.error("Session initialization timeout: %s", session.id)
            raise SessionTimeoutError(
                f"Session initialization timed out after {init_timeout} seconds"
            )

        session.initialized = True
        session.state = SessionState.IDLE
        logger.info("Session %s ready (cwd=%s, pid=%d)", session.id, cwd, process.pid)
        return session

    async def _wait_for_init(
        self, session: Session, collector: InputCollector, timeout: float
    ) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not is_initialization_complete(collector.text):
            remaining = deadline - loop.time()
            if remaining <= 0 or not session.process.alive:
                return False
            await collector.wait(min(remaining, self._config.interaction.poll_interval))
        return True

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        """Kill the session's shell and forget it. False if the id is unknown."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Closed session %s", session_id)
        return True

    def list_sessions(self) -> list[SessionInfo]:
        return [s.info() for s in list(self._sessions.values())]

    def _on_shell_exit(self, session_id: str, exit_code: int | None) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        logger.warning("Session %s shell exited (code=%s)", session_id, exit_code)
        session.close()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def execute_in_session(
        self, session_id: str, command: str, timeout: float | None = None
    ) -> ExecutionResult:
        """Run one marker-framed command in an idle session.

        Never raises for unknown, uninitialized or busy sessions, nor on
        timeout; those come back as failed results. On timeout the shell is
        kept and the abandoned job gets SIGINT (see ``interrupt_on_timeout``).
        """
        session = self._sessions.get(session_id)
        if session is None:
            return ExecutionResult.failure(
                command, SessionNotFoundError(session_id), session_id=session_id
            )

        if not session.initialized:
            return ExecutionResult.failure(
                command, f"Session {session_id} is not initialized", session_id=session_id
            )

        session.touch()

        if session.state is not SessionState.IDLE or session.parser is not None:
            return ExecutionResult.failure(
                command,
                SessionBusyError(session_id, session.state.value),
                session_id=session_id,
            )

        if not command.strip():
            return ExecutionResult.failure(
                command, "Command cannot be empty", session_id=session_id
            )

        interactive = is_interactive_command(
            command, self._config.interaction.interactive_programs
        )
        session.state = (
            SessionState.INTERACTIVE_PROGRAM if interactive else SessionState.RUNNING_COMMAND
        )

        parser = CommandOutputParser(command)
        session.begin_command(parser)
        wait_for = timeout or self._config.security.command_timeout
        logger.debug(
            "Executing in session %s: %s (id=%s)", session_id, command, parser.command_id
        )

        try:
            await session.process.write(wrap_command(command, parser.command_id))
            await session.wait_for_command(wait_for)
        except (OSError, RuntimeError) as e:
            session.state = SessionState.IDLE
            return ExecutionResult.failure(command, e, session_id=session_id)
        except asyncio.CancelledError:
            session.state = SessionState.IDLE
            raise
        finally:
            session.end_command()

        if parser.is_complete():
            result = parser.get_result()
            session.state = (
                SessionState.INTERACTIVE_PROGRAM if interactive else SessionState.IDLE
            )
            logger.debug(
                "Command completed in session %s (id=%s, exit=%s)",
                session_id,
                parser.command_id,
                result.exit_code,
            )
            return ExecutionResult(
                success=result.exit_code == 0,
                output=result.output,
                command=command,
                exit_code=result.exit_code,
                error=(
                    None
                    if result.exit_code == 0
                    else f"Command exited with code {result.exit_code}"
                ),
                session_id=session_id,
                is_interactive=interactive,
                waiting_for_input=self._prompts.is_waiting_for_input(result.output),
                duration=result.duration,
            )

        if not session.process.alive:
            return ExecutionResult.failure(
                command, f"Session {session_id} shell exited", session_id=session_id
            )

        session.state = SessionState.IDLE
        message = f"Command timed out after {wait_for:g} seconds"
        logger.warning(
            "Command timed out in session %s: %s (id=%s)",
            session_id,
            command,
            parser.command_id,
        )
        if self._config.session.interrupt_on_timeout and not interactive:
            # Only the abandoned job; the shell and the session survive
            session.process.interrupt_foreground()
        partial = parser.get_result().output
        return ExecutionResult.failure(
            command, message, output=partial or message, session_id=session_id
        )

    # ------------------------------------------------------------------
    # Raw input
    # ------------------------------------------------------------------

    async def send_input(self, session_id: str, text: str) -> bool:
        """Write ``text`` plus a newline to the session, unwrapped."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.error("Cannot send input: session %s not found", session_id)
            return False

        session.touch()
        try:
            await session.process.write(f"{text}\n")
        except (OSError, RuntimeError) as e:
            logger.error("Cannot send input to session %s: %s", session_id, e)
            return False
        logger.debug("Sent input to session %s: %r", session_id, text)
        return True

    async def collect_output_after_input(
        self, session_id: str, text: str, timeout: float | None = None
    ) -> ExecutionResult:
        """Send raw input and collect what the program prints in response.

        Returns early once the output tail looks like a prompt (after a short
        settle delay for trailing bytes), otherwise after ``timeout``.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return ExecutionResult.failure(
                text, SessionNotFoundError(session_id), session_id=session_id
            )

        session.touch()

        if session.collector is not None:
            return ExecutionResult.failure(
                text, SessionBusyError(session_id, "collecting input"), session_id=session_id
            )
        if not session.process.alive:
            return ExecutionResult.failure(
                text, f"Session {session_id} shell exited", session_id=session_id
            )

        wait_for = timeout if timeout is not None else self._config.interaction.input_timeout
        collector = session.begin_collect()
        logger.debug("Collecting output after input in session %s: %r", session_id, text)
        try:
            await session.process.write(f"{text}\n")
            await self._collect(session, collector, text, wait_for)
        except (OSError, RuntimeError) as e:
            return ExecutionResult.failure(text, e, session_id=session_id)
        finally:
            session.end_collect()

        output = clean_terminal_text(collector.text)
        waiting = self._awaits_input(session, text, output)

        if (
            session.state is SessionState.INTERACTIVE_PROGRAM
            and session.parser is None
            and PROMPT_RE.search(output)
        ):
            # The shell printed its own prompt: the program is gone
            session.state = SessionState.IDLE
            logger.debug("Session %s back at the shell prompt", session_id)

        return ExecutionResult(
            success=True,
            output=strip_prompts(output).strip(),
            command=text,
            session_id=session_id,
            is_interactive=True,
            waiting_for_input=waiting,
        )

    async def _collect(
        self, session: Session, collector: InputCollector, text: str, timeout: float
    ) -> None:
        interaction = self._config.interaction
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug(
                    "Input collection timed out in session %s (%d chars)",
                    session.id,
                    len(collector.text),
                )
                return
            if collector.text and self._awaits_input(
                session, text, clean_terminal_text(collector.text)
            ):
                await asyncio.sleep(min(interaction.settle_delay, remaining))
                return
            if not session.process.alive:
                return
            await collector.wait(min(remaining, interaction.poll_interval))

    def _awaits_input(self, session: Session, text: str, output: str) -> bool:
        if session.is_interactive:
            # Echo is on: the input line itself must not count as a prompt
            output = strip_input_echo(output, text)
        return self._prompts.is_waiting_for_input(output)

    # ------------------------------------------------------------------
    # Eviction and shutdown
    # ------------------------------------------------------------------

    def cleanup_expired_sessions(self, now: datetime | None = None) -> list[str]:
        """Close sessions idle for longer than the configured timeout."""
        now = now or datetime.now()
        limit = self._config.session.timeout
        expired = [
            s.id
            for s in self._sessions.values()
            if not s.busy and (now - s.last_activity).total_seconds() > limit
        ]
        for session_id in expired:
            logger.info("Session %s has expired and will be closed", session_id)
            self.close_session(session_id)
        return expired

    async def _cleanup_loop(self) -> None:
        interval = self._config.session.cleanup_interval
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup_expired_sessions()
            except Exception:
                logger.exception("Idle session sweep failed")

    async def shutdown(self) -> None:
        """Stop eviction and close every session."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

        for session_id in list(self._sessions.keys()):
            self.close_session(session_id)
        logger.info("Session manager shut down")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
