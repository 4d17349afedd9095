"""PTY process: a shell running on a pseudo-terminal."""

from __future__ import annotations

import asyncio
import codecs
import enum
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import termios
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]


class PTYStatus(enum.Enum):
    """Lifecycle states for a PTY process."""

    CREATED = "created"
    RUNNING = "running"
    KILLING = "killing"  # Kill requested, waiting for process to die
    KILLED = "killed"  # Killed by us (SIGKILL)
    EXITED = "exited"  # Process exited on its own


class Subscription:
    """Handle for the single output listener of a :class:`PTYProcess`."""

    def __init__(self, process: PTYProcess, callback: OutputCallback) -> None:
        self._process = process
        self.callback = callback
        self.active = True

    def dispose(self) -> None:
        """Detach the listener. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._process._drop_subscription(self)


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(); fd 0 is the slave end.
    try:
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)
    except OSError:
        pass


@dataclass
class PTYProcess:
    """A process attached to a pseudo-terminal.

    - Process group isolation (start_new_session) for safe tree-killing
    - Non-blocking reads driven by the event loop (``loop.add_reader``)
    - At most one output subscriber at a time; output arriving with no
      subscriber is dropped
    - Exit notification callback

    Spawned with subprocess.Popen rather than a bare fork, which is not
    safe to call from a thread-running asyncio process.
    """

    command: list[str] = field(default_factory=lambda: ["bash"])
    cwd: str = field(default_factory=os.getcwd)
    env: dict[str, str] = field(default_factory=dict)
    cols: int = 200
    rows: int = 50

    _master_fd: int = field(default=-1, init=False)
    _proc: subprocess.Popen | None = field(default=None, init=False)
    _pid: int = field(default=0, init=False)
    _pgid: int = field(default=0, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace"),
        init=False,
    )
    _subscription: Subscription | None = field(default=None, init=False)
    _status: PTYStatus = field(default=PTYStatus.CREATED, init=False)
    _on_exit: Callable[[PTYProcess, int | None], None] | None = field(
        default=None, init=False
    )

    def set_on_exit(self, callback: Callable[[PTYProcess, int | None], None]) -> None:
        """Set a callback invoked when the process exits on its own.

        It is NOT called when the process is killed via :meth:`kill`.
        """
        self._on_exit = callback

    def start(self) -> None:
        """Spawn the process in a new PTY with its own session.

        Must be called from a running event loop.
        """
        self._loop = asyncio.get_running_loop()
        master_fd, slave_fd = pty.openpty()
        _set_window_size(slave_fd, self.rows, self.cols)

        env = {**os.environ, **self.env}
        env["TERM"] = "dumb"  # Minimize ANSI escape sequences
        env.pop("PROMPT_COMMAND", None)

        try:
            self._proc = subprocess.Popen(
                self.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,  # Creates new session + process group
                preexec_fn=_acquire_controlling_tty,
                env=env,
                cwd=self.cwd,
            )
        except BaseException:
            os.close(master_fd)
            raise
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        self._master_fd = master_fd
        self._pid = self._proc.pid
        self._pgid = os.getpgid(self._pid)
        self._status = PTYStatus.RUNNING

        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._on_readable)

        logger.info(
            "PTY started: pid=%d pgid=%d cmd=%s cwd=%s",
            self._pid,
            self._pgid,
            " ".join(self.command),
            self.cwd,
        )

    # ------------------------------------------------------------------
    # Output stream
    # ------------------------------------------------------------------

    def subscribe(self, callback: OutputCallback) -> Subscription:
        """Attach the output listener.

        Raises:
            RuntimeError: if a listener is already attached.
        """
        if self._subscription is not None:
            raise RuntimeError("PTY output already has a subscriber")
        self._subscription = Subscription(self, callback)
        return self._subscription

    def _drop_subscription(self, subscription: Subscription) -> None:
        if self._subscription is subscription:
            self._subscription = None

    @property
    def has_subscriber(self) -> bool:
        return self._subscription is not None

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, 65536)
        except BlockingIOError:
            return
        except OSError:
            # EIO: the slave side is gone
            data = b""

        if not data:
            self._handle_eof()
            return

        text = self._decoder.decode(data)
        if text and self._subscription is not None:
            try:
                self._subscription.callback(text)
            except Exception:
                logger.exception("PTY output listener failed (pid=%d)", self._pid)

    def _handle_eof(self) -> None:
        self._stop_reading()
        if self._status != PTYStatus.RUNNING:
            return
        exit_code = self._proc.poll() if self._proc else None
        self._status = PTYStatus.EXITED
        logger.info("PTY process %d exited (code=%s)", self._pid, exit_code)
        if self._on_exit:
            try:
                self._on_exit(self, exit_code)
            except Exception:
                logger.exception("Error in on_exit callback for pid %d", self._pid)

    def _stop_reading(self) -> None:
        if self._loop is not None and self._master_fd >= 0:
            try:
                self._loop.remove_reader(self._master_fd)
            except (ValueError, RuntimeError):
                pass

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def write(self, text: str) -> None:
        """Write ``text`` to the terminal, waiting out a full input queue."""
        if self._status != PTYStatus.RUNNING:
            raise RuntimeError(f"PTY process {self._pid} is not running")

        data = text.encode("utf-8")
        while data:
            try:
                written = os.write(self._master_fd, data)
            except BlockingIOError:
                await asyncio.sleep(0.01)
                continue
            data = data[written:]

    def interrupt_foreground(self) -> bool:
        """Send SIGINT to the terminal's foreground job, leaving the shell alone.

        Returns False when the shell itself holds the terminal, i.e. nothing
        is running in the foreground.
        """
        if self._status != PTYStatus.RUNNING:
            return False
        try:
            pgid = os.tcgetpgrp(self._master_fd)
        except OSError as e:
            logger.debug("Cannot read foreground group of pid %d: %s", self._pid, e)
            return False
        if pgid <= 0 or pgid == self._pgid:
            return False
        try:
            os.killpg(pgid, signal.SIGINT)
        except ProcessLookupError:
            return False
        logger.info("Interrupted foreground process group %d (shell pid=%d)", pgid, self._pid)
        return True

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def kill(self) -> None:
        """Kill the entire process group and release the terminal."""
        if self._status not in (PTYStatus.RUNNING, PTYStatus.KILLING, PTYStatus.EXITED):
            return

        was_running = self._status in (PTYStatus.RUNNING, PTYStatus.KILLING)
        self._status = PTYStatus.KILLING
        self._stop_reading()
        if self._subscription is not None:
            self._subscription.dispose()

        if was_running:
            try:
                os.killpg(self._pgid, signal.SIGKILL)
                logger.info("Killed PTY process group %d", self._pgid)
            except ProcessLookupError:
                logger.debug("Process group already gone: %d", self._pgid)
            except OSError as e:
                logger.warning("Error killing PTY process %d: %s", self._pid, e)

        # Wait for process to be reaped (avoids zombies)
        if self._proc is not None:
            try:
                self._proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning("PTY process %d did not exit after SIGKILL", self._pid)

        if self._master_fd >= 0:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
            self._master_fd = -1

        self._status = PTYStatus.KILLED

    @property
    def alive(self) -> bool:
        return self._status == PTYStatus.RUNNING

    @property
    def status(self) -> PTYStatus:
        return self._status

    @property
    def pid(self) -> int:
        return self._pid

    def __del__(self) -> None:
        """Ensure cleanup on garbage collection."""
        if self._status in (PTYStatus.RUNNING, PTYStatus.KILLING):
            self.kill()


def _set_window_size(fd: int, rows: int, cols: int) -> None:
    try:
        fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))
    except OSError:
        pass
