"""Allow-list checks and output sanitizing."""

from bashmcp.security.validator import (
    DANGEROUS_PATTERNS,
    CommandValidation,
    is_command_allowed,
    is_directory_allowed,
    sanitize_output,
    validate_command,
)

__all__ = [
    "DANGEROUS_PATTERNS",
    "CommandValidation",
    "is_command_allowed",
    "is_directory_allowed",
    "sanitize_output",
    "validate_command",
]
