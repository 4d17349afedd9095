"""Command output parser: extracts one command's result from the PTY stream."""

from __future__ import annotations

import enum
import logging
import re
import time
from dataclasses import dataclass

from bashmcp.output import clean_terminal_text
from bashmcp.shell.markers import END_MARKER, START_MARKER, new_command_id, strip_prompts

logger = logging.getLogger(__name__)

# Bytes kept while waiting for the START marker; anything older can't be
# part of a marker line that hasn't arrived yet.
_PRESTART_KEEP = 4096


class ParserState(enum.Enum):
    """Lifecycle of a single command's output."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPLETED = "completed"


@dataclass
class ParseResult:
    output: str
    exit_code: int | None
    command: str
    duration: float | None = None  # seconds, END timestamp minus START timestamp


class CommandOutputParser:
    """State machine for one marker-framed command.

    Feed raw PTY chunks to :meth:`process_output`. The parser ignores
    everything until it sees ``MCP_CMD_START|<ts>|<id>`` carrying its own
    command id, collects until ``MCP_CMD_END|<ts>|<id>|<code>`` with the same
    id, then freezes. Markers with a foreign id are treated as plain text.

    One parser serves exactly one command; create a new one per command.
    """

    def __init__(self, command: str, command_id: str | None = None) -> None:
        self.command = command
        self.command_id = command_id or new_command_id()
        self.state = ParserState.IDLE
        self.output = ""
        self.exit_code: int | None = None
        self.start_time: float | None = None
        self.end_time: float | None = None
        self._buffer = ""

        cid = re.escape(self.command_id)
        self._start_re = re.compile(
            re.escape(START_MARKER) + r"\|([^|\r\n]*)\|" + cid + r"[ \t\r]*\n"
        )
        self._end_re = re.compile(
            re.escape(END_MARKER) + r"\|([^|\r\n]*)\|" + cid + r"\|([^\r\n]*)\r?\n"
        )

    def process_output(self, chunk: str) -> None:
        """Consume a chunk of raw terminal output."""
        if self.state is ParserState.COMPLETED:
            return

        self._buffer += chunk

        if self.state is ParserState.IDLE:
            match = self._start_re.search(self._buffer)
            if match is None:
                if len(self._buffer) > _PRESTART_KEEP:
                    self._buffer = self._buffer[-_PRESTART_KEEP:]
                return
            self.start_time = _parse_timestamp(match.group(1), "start")
            self.state = ParserState.COLLECTING
            # Drop everything through the end of the START line
            self._buffer = self._buffer[match.end() :]

        if self.state is ParserState.COLLECTING:
            match = self._end_re.search(self._buffer)
            if match is None:
                return
            raw = self._buffer[: match.start()]
            self.exit_code = _parse_exit_code(match.group(2))
            self.end_time = _parse_timestamp(match.group(1), "end")
            self.output = _clean(raw)
            self._buffer = ""
            self.state = ParserState.COMPLETED

    def is_complete(self) -> bool:
        return self.state is ParserState.COMPLETED

    def get_result(self) -> ParseResult:
        """Return the parsed result; before completion this is a partial snapshot."""
        output = self.output
        if self.state is ParserState.COLLECTING:
            output = _clean(self._buffer)

        duration = None
        if self.start_time is not None and self.end_time is not None:
            duration = self.end_time - self.start_time

        return ParseResult(
            output=output,
            exit_code=self.exit_code,
            command=self.command,
            duration=duration,
        )


def _clean(raw: str) -> str:
    return strip_prompts(clean_terminal_text(raw)).strip()


def _parse_timestamp(value: str, which: str) -> float:
    try:
        return float(value.strip().replace(",", "."))
    except ValueError:
        logger.warning("Failed to parse command %s timestamp: %r", which, value)
        return time.time()


def _parse_exit_code(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        logger.warning("Failed to parse command exit code: %r", value)
        return 1
