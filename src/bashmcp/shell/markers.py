"""Marker protocol: sentinel lines that frame commands in the PTY stream.

Wire format (must stay byte-compatible with the shell side)::

    MCP_CMD_START|<unix-seconds.fraction>|<command-id>
    MCP_CMD_END|<unix-seconds.fraction>|<command-id>|<exit-code>
    MCP_INIT_COMPLETE
    MCP_PROMPT|<exit-code>|#<space>

Every wrapped command carries a fresh command id so that marker-looking
text printed by the command itself (or left over from an abandoned
command) is never mistaken for a real boundary.
"""

from __future__ import annotations

import re
import shlex
import uuid

START_MARKER = "MCP_CMD_START"
END_MARKER = "MCP_CMD_END"
INIT_COMPLETE = "MCP_INIT_COMPLETE"
PROMPT_PREFIX = "MCP_PROMPT"

# Matches the custom PS1 wherever it lands in the stream.
PROMPT_RE = re.compile(r"MCP_PROMPT\|-?\d+\|# ?")

_INIT_COMPLETE_RE = re.compile(re.escape(INIT_COMPLETE) + r"[ \t\r]*\n")

# The sentinel is echoed split in two so the terminal echo of this very
# script can never satisfy the completion check.
_INIT_SCRIPT = """\
 if [ -z "$MCP_ORIGINAL_PS1" ]; then export MCP_ORIGINAL_PS1="$PS1"; fi
 export PS1='MCP_PROMPT|$?|# '
 export PS2=''
 unset PROMPT_COMMAND
 export HISTCONTROL=ignorespace
 __mcp_cmd_start() { echo "MCP_CMD_START|$(date +%s.%N)|$1"; }
 __mcp_cmd_end() { local rc=$?; echo "MCP_CMD_END|$(date +%s.%N)|$1|$rc"; return $rc; }
 set +o verbose
 set +o xtrace
{terminal_setup} echo "MCP_INIT_""COMPLETE"
"""

_NONINTERACTIVE_TERMINAL_SETUP = " stty -echo -icanon\n"


def new_command_id() -> str:
    """Return a fresh, unguessable command id."""
    return uuid.uuid4().hex


def build_init_script(interactive: bool = False) -> str:
    """Build the snippet injected once into every new session.

    Interactive sessions keep terminal echo and canonical line editing so
    that programs like editors and REPLs behave normally; command sessions
    turn both off to keep the stream free of echoed input.

    Every line starts with a space so ``HISTCONTROL=ignorespace`` keeps the
    control commands out of the shell history.
    """
    setup = "" if interactive else _NONINTERACTIVE_TERMINAL_SETUP
    return _INIT_SCRIPT.replace("{terminal_setup}", setup)


def wrap_command(command: str, command_id: str) -> str:
    """Frame ``command`` with START/END markers tagged with ``command_id``.

    The command is handed to ``eval`` as one quoted word inside a subshell.
    A syntax error in it (an unclosed quote, a stray parenthesis) is then
    reported by ``eval`` with status 2 instead of breaking the frame, and its
    own ``exit``, redirections or backgrounding cannot swallow the END
    marker. ``__mcp_cmd_end`` picks up the subshell status from ``$?`` and
    returns it again, so the next prompt shows the command's exit code.
    """
    if not command_id:
        raise ValueError("command_id is required")
    return (
        f" __mcp_cmd_start {command_id}; ( eval {shlex.quote(command)} );"
        f" __mcp_cmd_end {command_id}\n"
    )


def is_initialization_complete(output: str) -> bool:
    """True once the standalone init sentinel line has been printed."""
    return _INIT_COMPLETE_RE.search(output) is not None


def strip_prompts(text: str) -> str:
    """Remove embedded custom prompt strings from captured output."""
    return PROMPT_RE.sub("", text)
