"""Stateless executor: one command, one fresh process, no shared state."""

from __future__ import annotations

import asyncio
import logging
import os
import signal

from bashmcp.config import BashMCPConfig
from bashmcp.output import clean_terminal_text
from bashmcp.security import is_directory_allowed, sanitize_output, validate_command
from bashmcp.types import ExecutionResult

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Run a single allow-listed command through ``sh -c`` and wait for it.

    stdout and stderr are merged. The child gets its own process group so a
    timeout can take down everything it spawned.
    """

    def __init__(self, config: BashMCPConfig) -> None:
        self._config = config

    async def execute(
        self,
        command: str,
        timeout: float | None = None,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> ExecutionResult:
        validation = validate_command(command, self._config)
        if not validation.valid:
            logger.warning("Command rejected: %s (%s)", command, validation.reason)
            return ExecutionResult.failure(command, validation.reason or "Command rejected")

        if cwd is not None and not is_directory_allowed(cwd, self._config.allowed_directories):
            logger.warning("Directory rejected: %s", cwd)
            return ExecutionResult.failure(command, f"Directory not allowed: {cwd}")

        workdir = cwd or os.getcwd()
        if not os.path.isdir(workdir):
            return ExecutionResult.failure(command, f"Directory does not exist: {workdir}")

        wait_for = timeout or self._config.security.command_timeout
        logger.debug("Executing stateless command in %s: %s", workdir, command)

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=workdir,
                start_new_session=True,  # New process group
                env={**os.environ, **(env or {}), "TERM": "dumb"},
            )
        except OSError as e:
            logger.error("Failed to start command %s: %s", command, e)
            return ExecutionResult.failure(command, f"Failed to execute command: {e}")

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=wait_for)
        except asyncio.TimeoutError:
            _kill_group(process.pid)
            await process.wait()
            logger.warning("Command timed out after %ss: %s", wait_for, command)
            return ExecutionResult.failure(command, "Command execution timed out")

        output = clean_terminal_text(stdout.decode("utf-8", errors="replace") if stdout else "")
        output = sanitize_output(output.rstrip("\n"), self._config)
        exit_code = process.returncode if process.returncode is not None else 0

        return ExecutionResult(
            success=exit_code == 0,
            output=output,
            command=command,
            exit_code=exit_code,
            error=None if exit_code == 0 else f"Command exited with code {exit_code}",
            duration=loop.time() - started,
        )


def _kill_group(pid: int | None) -> None:
    if not pid:
        return
    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
