"""Shell-side protocol: markers, output parsing, and prompt heuristics."""

from bashmcp.shell.heuristics import (
    PromptDetector,
    is_interactive_command,
    is_waiting_for_input,
    strip_input_echo,
)
from bashmcp.shell.markers import (
    build_init_script,
    is_initialization_complete,
    new_command_id,
    wrap_command,
)
from bashmcp.shell.parser import CommandOutputParser, ParserState, ParseResult

__all__ = [
    "CommandOutputParser",
    "ParserState",
    "ParseResult",
    "PromptDetector",
    "build_init_script",
    "is_initialization_complete",
    "is_interactive_command",
    "is_waiting_for_input",
    "new_command_id",
    "strip_input_echo",
    "wrap_command",
]
