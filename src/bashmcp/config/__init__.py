"""Configuration: Pydantic models for bashmcp settings."""

from __future__ import annotations

import json
import os
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from bashmcp.errors import ConfigError
from bashmcp.shell.heuristics import DEFAULT_INTERACTIVE_PROGRAMS, DEFAULT_PROMPT_PATTERNS

DEFAULT_ALLOWED_COMMANDS = [
    "ls",
    "cat",
    "echo",
    "pwd",
    "cd",
    "grep",
    "find",
    "head",
    "tail",
    "wc",
    "sort",
    "uniq",
    "date",
    "env",
    "which",
    "whoami",
    "git",
]


class SessionSettings(BaseModel):
    """Stateful session configuration."""

    timeout: float = Field(
        default=3600, gt=0, description="Idle seconds before a session is evicted"
    )
    max_active_sessions: int = Field(default=5, gt=0)
    default_mode: Literal["stateless", "stateful"] = Field(
        default="stateless",
        description="Where commands without a session id run when a cwd is given",
    )
    init_timeout: float = Field(
        default=5.0, gt=0, description="Seconds to wait for the init sentinel"
    )
    cleanup_interval: float = Field(
        default=60.0, gt=0, description="Seconds between idle-eviction sweeps"
    )
    shell: list[str] = Field(
        default_factory=lambda: ["bash", "--norc", "--noprofile", "--noediting", "-i"],
        min_length=1,
    )
    interrupt_on_timeout: bool = Field(
        default=True,
        description="Send SIGINT to a timed-out command's foreground job",
    )


class SecuritySettings(BaseModel):
    validate_commands_strictly: bool = Field(
        default=True, description="Reject shell metacharacters in stateless commands"
    )
    sanitize_output: bool = Field(default=True)
    max_output_size: int = Field(default=100 * 1024, gt=0, description="Characters")
    command_timeout: float = Field(default=30.0, gt=0, description="Seconds")
    validate_session_commands: bool = Field(
        default=False,
        description=(
            "Also run allow-list checks on commands sent to sessions. "
            "Raw input to interactive programs is never checked."
        ),
    )


class InteractionSettings(BaseModel):
    """Tuning for input injection into running programs."""

    prompt_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PROMPT_PATTERNS),
        description="Regexes matched against the tail of collected output",
    )
    interactive_programs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INTERACTIVE_PROGRAMS)
    )
    input_timeout: float = Field(
        default=1.0, gt=0, description="Default seconds to collect output after input"
    )
    settle_delay: float = Field(
        default=0.1, ge=0, description="Extra wait for trailing bytes after a prompt"
    )
    poll_interval: float = Field(default=0.1, gt=0)


class LoggingSettings(BaseModel):
    level: Literal["debug", "info", "warning", "error"] = Field(default="info")
    file: str | None = Field(default=None, description="Optional rotating log file")
    max_size: int = Field(default=10 * 1024 * 1024, gt=0, description="Bytes")
    max_files: int = Field(default=3, ge=0)


class BashMCPConfig(BaseModel):
    """Top-level bashmcp configuration."""

    allowed_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))
    allowed_directories: list[str] = Field(default_factory=list)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def require_ready(self) -> None:
        """Fail fast when settings the server cannot run without are missing."""
        if not self.allowed_directories:
            raise ConfigError(
                "Config error: allowed_directories must list at least one directory "
                "(set it in the config file or BASHMCP_ALLOWED_DIRECTORIES)"
            )

    @classmethod
    def load(cls, config_path: str | None = None) -> BashMCPConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            BASHMCP_ALLOWED_DIRECTORIES  - Allowed roots, separated by os.pathsep
            BASHMCP_ALLOWED_COMMANDS     - Allowed base commands, comma separated
            BASHMCP_COMMAND_TIMEOUT      - Command timeout in seconds
            BASHMCP_MAX_SESSIONS         - Maximum concurrent sessions
            BASHMCP_SESSION_TIMEOUT      - Idle eviction timeout in seconds
            BASHMCP_DEFAULT_MODE         - "stateless" or "stateful"
            BASHMCP_STRICT               - Strict command validation (1/0, true/false)
            BASHMCP_LOG_LEVEL            - debug/info/warning/error
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path:
            if not os.path.exists(config_path):
                raise ConfigError(f"Config file not found at {config_path}")
            try:
                with open(config_path) as f:
                    config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Config file {config_path} is not valid JSON: {e}") from e
            if not isinstance(config_data, dict):
                raise ConfigError(f"Config file {config_path} must contain a JSON object")

        _apply_env_overrides(config_data)

        try:
            return cls.model_validate(config_data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config_data: dict[str, Any]) -> None:
    env_dirs = os.environ.get("BASHMCP_ALLOWED_DIRECTORIES")
    if env_dirs:
        config_data["allowed_directories"] = [d for d in env_dirs.split(os.pathsep) if d]

    env_cmds = os.environ.get("BASHMCP_ALLOWED_COMMANDS")
    if env_cmds:
        config_data["allowed_commands"] = [c.strip() for c in env_cmds.split(",") if c.strip()]

    session = config_data.setdefault("session", {})
    security = config_data.setdefault("security", {})
    logging_ = config_data.setdefault("logging", {})

    env_timeout = os.environ.get("BASHMCP_COMMAND_TIMEOUT")
    if env_timeout:
        security["command_timeout"] = env_timeout

    env_strict = os.environ.get("BASHMCP_STRICT")
    if env_strict:
        security["validate_commands_strictly"] = env_strict.lower() in ("1", "true", "yes")

    env_max = os.environ.get("BASHMCP_MAX_SESSIONS")
    if env_max:
        session["max_active_sessions"] = env_max

    env_idle = os.environ.get("BASHMCP_SESSION_TIMEOUT")
    if env_idle:
        session["timeout"] = env_idle

    env_mode = os.environ.get("BASHMCP_DEFAULT_MODE")
    if env_mode:
        session["default_mode"] = env_mode.lower()

    env_level = os.environ.get("BASHMCP_LOG_LEVEL")
    if env_level:
        logging_["level"] = env_level.lower()
