"""Shared fixtures: a scripted stand-in for the PTY shell."""

from __future__ import annotations

import asyncio
import re
import shlex
from pathlib import Path
from typing import Callable

import pytest

from bashmcp.config import (
    BashMCPConfig,
    InteractionSettings,
    SecuritySettings,
    SessionSettings,
)
from bashmcp.pty.process import OutputCallback, Subscription
from bashmcp.session.manager import SessionManager

_WRAPPED_RE = re.compile(r"^ __mcp_cmd_start (\w+); \( eval (.*) \); __mcp_cmd_end \1\n$", re.S)

CommandReply = tuple[str, int] | None


def default_reply(command: str) -> CommandReply:
    """echo prints its arguments, exit N exits, sleep never finishes."""
    word, _, rest = command.partition(" ")
    if word == "echo":
        return rest, 0
    if word == "exit":
        return "", int(rest or 0)
    if word == "sleep":
        return None
    return "", 0


class FakePTY:
    """Answers the init script and wrapped commands the way bash would."""

    def __init__(self, shell: FakeShell, command: list[str], cwd: str) -> None:
        self.shell = shell
        self.command = command
        self.cwd = cwd
        self.writes: list[str] = []
        self.running = False
        self.killed = False
        self.interrupts = 0
        self._subscription: Subscription | None = None
        self._on_exit: Callable[[FakePTY, int | None], None] | None = None

    def set_on_exit(self, callback: Callable[[FakePTY, int | None], None]) -> None:
        self._on_exit = callback

    def start(self) -> None:
        if self.shell.fail_spawn:
            raise OSError("no such shell")
        self.running = True

    def subscribe(self, callback: OutputCallback) -> Subscription:
        if self._subscription is not None:
            raise RuntimeError("PTY output already has a subscriber")
        self._subscription = Subscription(self, callback)  # type: ignore[arg-type]
        return self._subscription

    def _drop_subscription(self, subscription: Subscription) -> None:
        if self._subscription is subscription:
            self._subscription = None

    @property
    def has_subscriber(self) -> bool:
        return self._subscription is not None

    async def write(self, text: str) -> None:
        if not self.running:
            raise RuntimeError("PTY process is not running")
        self.writes.append(text)

        if "MCP_INIT_" in text:
            if self.shell.init_ok:
                self.emit_soon("MCP_INIT_COMPLETE\r\nMCP_PROMPT|0|# ")
            return

        match = _WRAPPED_RE.match(text)
        if match is not None:
            command_id, command = match.group(1), shlex.split(match.group(2))[0]
            reply = self.shell.reply(command)
            if reply is None:
                return
            output, code = reply
            if output and not output.endswith("\n"):
                output += "\n"
            self.emit_soon(
                f"MCP_CMD_START|1000.25|{command_id}\r\n"
                f"{output.replace(chr(10), chr(13) + chr(10))}"
                f"MCP_CMD_END|1001.75|{command_id}|{code}\r\n"
                f"MCP_PROMPT|{code}|# "
            )
            return

        answer = self.shell.input_replies.get(text.rstrip("\n"))
        if answer is not None:
            self.emit_soon(answer)

    def emit(self, text: str) -> None:
        if self._subscription is not None:
            self._subscription.callback(text)

    def emit_soon(self, text: str) -> None:
        asyncio.get_running_loop().call_soon(self.emit, text)

    def exit(self, code: int = 0) -> None:
        """Simulate the shell dying on its own."""
        self.running = False
        if self._on_exit is not None:
            self._on_exit(self, code)

    def interrupt_foreground(self) -> bool:
        self.interrupts += 1
        return self.running

    def kill(self) -> None:
        self.running = False
        self.killed = True
        if self._subscription is not None:
            self._subscription.dispose()

    @property
    def alive(self) -> bool:
        return self.running

    @property
    def pid(self) -> int:
        return 4242


class FakeShell:
    """Process factory handing out :class:`FakePTY` instances."""

    def __init__(self) -> None:
        self.spawned: list[FakePTY] = []
        self.replies: dict[str, CommandReply] = {}
        self.input_replies: dict[str, str] = {}
        self.fail_spawn = False
        self.init_ok = True

    def reply(self, command: str) -> CommandReply:
        if command in self.replies:
            return self.replies[command]
        return default_reply(command)

    def __call__(self, command: list[str], cwd: str, **kwargs: object) -> FakePTY:
        process = FakePTY(self, command, cwd)
        self.spawned.append(process)
        return process


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def config(workdir: Path) -> BashMCPConfig:
    return BashMCPConfig(
        allowed_directories=[str(workdir)],
        session=SessionSettings(init_timeout=0.5, max_active_sessions=3),
        security=SecuritySettings(command_timeout=0.5),
        interaction=InteractionSettings(input_timeout=0.3, settle_delay=0, poll_interval=0.02),
    )


@pytest.fixture
def fake_shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
async def manager(config: BashMCPConfig, fake_shell: FakeShell):
    mgr = SessionManager(config, process_factory=fake_shell)
    yield mgr
    await mgr.shutdown()
