"""Allow-list validation for commands and working directories."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from bashmcp.output import truncate_output

if TYPE_CHECKING:
    from bashmcp.config import BashMCPConfig

logger = logging.getLogger(__name__)

# Chaining, substitution, redirection, piping, escaping, long options.
DANGEROUS_PATTERNS: tuple[str, ...] = (
    ";",
    "&&",
    "||",
    "`",
    "$(",
    ">",
    ">>",
    "<",
    "<<",
    "|",
    "\\",
    "--",
)


@dataclass
class CommandValidation:
    valid: bool
    reason: str | None = None


def _base_command(command: str) -> str:
    parts = command.strip().split()
    return parts[0] if parts else ""


def is_command_allowed(command: str, allowed_commands: Iterable[str]) -> bool:
    """True if the first word of ``command`` is in the allow-list."""
    if not command:
        return False
    return _base_command(command) in set(allowed_commands)


def is_directory_allowed(directory: str, allowed_directories: Iterable[str]) -> bool:
    """True if ``directory`` equals or lies below one of the allowed roots.

    Paths are normalized lexically (``..`` collapsed) before comparison, so
    ``/tmp/../etc`` is not mistaken for a child of ``/tmp``.
    """
    if not directory:
        return False

    normalized = os.path.normpath(os.path.abspath(directory))
    for root in allowed_directories:
        allowed = os.path.normpath(os.path.abspath(root))
        if normalized == allowed:
            return True
        prefix = allowed if allowed.endswith(os.sep) else allowed + os.sep
        if normalized.startswith(prefix):
            return True

    logger.debug("Directory %s is outside the allowed roots", directory)
    return False


def validate_command(command: str, config: BashMCPConfig) -> CommandValidation:
    """Check ``command`` against strict-mode patterns and the allow-list."""
    if not command or not command.strip():
        return CommandValidation(False, "Command cannot be empty")

    if config.security.validate_commands_strictly:
        for pattern in DANGEROUS_PATTERNS:
            if pattern in command:
                return CommandValidation(
                    False, f"Command contains forbidden pattern: {pattern}"
                )

    if not is_command_allowed(command, config.allowed_commands):
        return CommandValidation(False, "Command is not in the allowed list")

    return CommandValidation(True)


def sanitize_output(output: str, config: BashMCPConfig) -> str:
    """Apply the configured output cap (identity when sanitizing is off)."""
    if not config.security.sanitize_output:
        return output
    return truncate_output(output, config.security.max_output_size)
