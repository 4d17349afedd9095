"""Tests for bashmcp.executor (runs real /bin/sh)."""

from __future__ import annotations

from pathlib import Path

import pytest

from bashmcp.config import BashMCPConfig, SecuritySettings
from bashmcp.executor import CommandExecutor
from bashmcp.output import TRUNCATION_NOTICE


@pytest.fixture
def executor(tmp_path: Path) -> CommandExecutor:
    config = BashMCPConfig(
        allowed_commands=["echo", "pwd", "sleep", "sh", "cat"],
        allowed_directories=[str(tmp_path)],
        security=SecuritySettings(command_timeout=5, max_output_size=1000),
    )
    return CommandExecutor(config)


class TestCommandExecutor:
    async def test_echo(self, executor: CommandExecutor) -> None:
        result = await executor.execute("echo hello")
        assert result.success is True
        assert result.output == "hello"
        assert result.exit_code == 0
        assert result.error is None
        assert result.session_id is None

    async def test_cwd(self, executor: CommandExecutor, tmp_path: Path) -> None:
        result = await executor.execute("pwd", cwd=str(tmp_path))
        assert result.output == str(tmp_path)

    async def test_nonzero_exit(self, executor: CommandExecutor) -> None:
        result = await executor.execute("sh -c 'exit 3'")
        assert result.success is False
        assert result.exit_code == 3
        assert result.error == "Command exited with code 3"

    async def test_stderr_merged(self, executor: CommandExecutor) -> None:
        result = await executor.execute("cat /definitely/missing")
        assert result.success is False
        assert "No such file" in result.output

    async def test_rejected_command(self, executor: CommandExecutor) -> None:
        result = await executor.execute("rm -rf /")
        assert result.success is False
        assert result.error == "Command is not in the allowed list"
        assert result.output == ""

    async def test_strict_mode(self, executor: CommandExecutor) -> None:
        result = await executor.execute("echo hi; echo there")
        assert result.success is False
        assert "forbidden pattern" in result.error

    async def test_rejected_directory(self, executor: CommandExecutor) -> None:
        result = await executor.execute("pwd", cwd="/")
        assert result.success is False
        assert result.error == "Directory not allowed: /"

    async def test_timeout(self, executor: CommandExecutor) -> None:
        result = await executor.execute("sleep 5", timeout=0.2)
        assert result.success is False
        assert result.error == "Command execution timed out"

    async def test_env(self, executor: CommandExecutor) -> None:
        result = await executor.execute("sh -c 'echo $GREETING'", env={"GREETING": "hey"})
        assert result.output == "hey"

    async def test_output_truncated(self, executor: CommandExecutor) -> None:
        result = await executor.execute("sh -c 'seq 2000'")
        assert result.output.endswith(TRUNCATION_NOTICE)
        assert len(result.output) == 1000 + 1 + len(TRUNCATION_NOTICE)
