"""End-to-end tests against a real bash on a real PTY."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from bashmcp.config import (
    BashMCPConfig,
    InteractionSettings,
    SecuritySettings,
    SessionSettings,
)
from bashmcp.core import BashMCP
from bashmcp.session import SessionState

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")


@pytest.fixture
async def bash(tmp_path: Path):
    config = BashMCPConfig(
        allowed_directories=[str(tmp_path)],
        session=SessionSettings(init_timeout=10),
        security=SecuritySettings(command_timeout=5),
        interaction=InteractionSettings(poll_interval=0.05),
    )
    facade = BashMCP(config)
    yield facade
    await facade.shutdown()


async def new_session(bash: BashMCP, cwd: Path, interactive: bool = False) -> str:
    created = await bash.create_session(str(cwd), interactive=interactive)
    assert created["success"] is True, created
    return created["session_id"]


class TestBashSession:
    async def test_echo_exit_and_close(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)

        result = await bash.execute_command("echo hello", session_id=session_id)
        assert result.success is True
        assert result.output == "hello"
        assert result.exit_code == 0
        assert result.duration is not None and result.duration >= 0

        result = await bash.execute_command("exit 7", session_id=session_id)
        assert result.success is False
        assert result.exit_code == 7

        assert bash.close_session(session_id) == {"success": True}
        assert bash.list_sessions() == []

    async def test_runs_in_session_directory(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)
        result = await bash.execute_command("pwd", session_id=session_id)
        assert Path(result.output).resolve() == tmp_path.resolve()

    async def test_multiline_output_and_stderr(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)
        result = await bash.execute_command(
            "printf 'a\\nb\\n'; echo err >&2", session_id=session_id
        )
        assert result.output == "a\nb\nerr"

    async def test_marker_text_in_output(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)
        result = await bash.execute_command(
            "echo 'MCP_CMD_END|1.0|someoneelse|0'; echo after", session_id=session_id
        )
        assert result.success is True
        assert result.output == "MCP_CMD_END|1.0|someoneelse|0\nafter"

    async def test_timeout_then_reuse(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)

        result = await bash.execute_command("sleep 2", session_id=session_id, timeout=0.5)
        assert result.success is False
        assert "timed out" in result.error

        result = await bash.execute_command("echo ok", session_id=session_id, timeout=5)
        assert result.success is True
        assert result.output == "ok"

    async def test_unclosed_quote_does_not_break_session(
        self, bash: BashMCP, tmp_path: Path
    ) -> None:
        session_id = await new_session(bash, tmp_path)

        result = await bash.execute_command('echo "abc', session_id=session_id, timeout=3)
        assert result.success is False
        assert result.exit_code == 2

        result = await bash.execute_command("echo ok", session_id=session_id, timeout=3)
        assert result.success is True
        assert result.output == "ok"

    async def test_stray_parenthesis_still_ends(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)

        result = await bash.execute_command("echo )", session_id=session_id, timeout=3)
        assert result.success is False
        assert result.exit_code == 2
        assert "syntax error" in result.output

        result = await bash.execute_command("echo ok", session_id=session_id, timeout=3)
        assert result.output == "ok"

    async def test_next_command_after_timeout_uses_same_timeout(self, tmp_path: Path) -> None:
        config = BashMCPConfig(
            allowed_directories=[str(tmp_path)],
            session=SessionSettings(init_timeout=10),
            security=SecuritySettings(command_timeout=1),
            interaction=InteractionSettings(poll_interval=0.05),
        )
        async with BashMCP(config) as bash:
            session_id = await new_session(bash, tmp_path)

            result = await bash.execute_command("sleep 5", session_id=session_id)
            assert result.success is False
            assert "timed out" in result.error

            result = await bash.execute_command("echo ok", session_id=session_id)
            assert result.success is True
            assert result.output == "ok"

    async def test_shell_state_persists_via_input(self, bash: BashMCP, tmp_path: Path) -> None:
        (tmp_path / "sub").mkdir()
        session_id = await new_session(bash, tmp_path)

        await bash.send_input(session_id, "cd sub", timeout=2)
        result = await bash.execute_command("pwd", session_id=session_id)
        assert Path(result.output).resolve() == (tmp_path / "sub").resolve()

    async def test_interactive_read(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path, interactive=True)
        session = bash.manager.get_session(session_id)

        result = await bash.send_input(session_id, "read -p 'Name: ' name", timeout=3)
        assert result.waiting_for_input is True
        assert result.output.endswith("Name:")

        result = await bash.send_input(session_id, "bob", timeout=3)
        assert session.state is SessionState.IDLE

        result = await bash.send_input(session_id, 'echo "hi $name"', timeout=3)
        assert "hi bob" in result.output

    async def test_shell_exit_removes_session(self, bash: BashMCP, tmp_path: Path) -> None:
        session_id = await new_session(bash, tmp_path)
        await bash.send_input(session_id, "exit", timeout=2)
        assert bash.list_sessions() == []

    async def test_outside_allowed_directory(self, bash: BashMCP) -> None:
        created = await bash.create_session("/")
        assert created["success"] is False
