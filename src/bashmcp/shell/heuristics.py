"""Heuristics for interactive programs.

Both checks are advisory. Prompt detection only decides when to hand
back collected input-response output early; it never decides whether a
marker-framed command has finished.
"""

from __future__ import annotations

import os
import re
import shlex
from typing import Iterable

# Ordered; the first match wins. Matched against the right-trimmed tail.
DEFAULT_PROMPT_PATTERNS: tuple[str, ...] = (
    r"[$#>] *$",  # shell prompts
    r"Password: *$",
    r"\(y/n\)[^\n]*$",
    r"\(Y/n\)[^\n]*$",
    r"\[y/N\][^\n]*$",
    r"Continue\?[^\n]*$",
    r"Press [Ee]nter[^\n]*$",
    r":\s*$",  # "Name:", "Enter value:"
    r"[Mm]ore[^\n]*$",  # pagers
    r"\? *$",
    r"[Pp]rompt[^\n]*: *$",
    r"(?:^|\n)\s*> *$",
    r"\([^)]*\) *$",  # (gdb), (Pdb), (y/n)
)

# Programs that take over the terminal: editors, pagers, REPLs,
# remote shells and monitors.
DEFAULT_INTERACTIVE_PROGRAMS: tuple[str, ...] = (
    "top",
    "htop",
    "vim",
    "vi",
    "nano",
    "emacs",
    "less",
    "more",
    "man",
    "ssh",
    "telnet",
    "ftp",
    "sftp",
    "python",
    "node",
    "mysql",
    "psql",
    "gdb",
    "debug",
    "screen",
    "tmux",
    "watch",
)

# Otherwise one-shot programs that become interactive with a flag.
_INTERACTIVE_PREFIXES: tuple[tuple[str, ...], ...] = (
    ("tail", "-f"),
    ("grep", "--line-buffered"),
)


class PromptDetector:
    """Compiled prompt pattern set."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        self.patterns = tuple(patterns) if patterns is not None else DEFAULT_PROMPT_PATTERNS
        self._compiled = [re.compile(p) for p in self.patterns]

    def is_waiting_for_input(self, output: str) -> bool:
        """True if the tail of ``output`` looks like a prompt."""
        tail = output.rstrip()
        if not tail:
            return False
        return any(p.search(tail) for p in self._compiled)


_default_detector = PromptDetector()


def is_waiting_for_input(output: str) -> bool:
    """Check ``output`` against the default prompt patterns."""
    return _default_detector.is_waiting_for_input(output)


def is_interactive_command(
    command: str, programs: Iterable[str] | None = None
) -> bool:
    """Guess whether ``command`` starts a program that waits on the terminal.

    Only the first word is considered (``sudo``/``env`` prefixes are not
    unwrapped); a path like ``/usr/bin/vim`` counts as ``vim``.
    """
    try:
        words = shlex.split(command.strip())
    except ValueError:
        words = command.split()
    if not words:
        return False

    program = os.path.basename(words[0])
    names = set(programs) if programs is not None else set(DEFAULT_INTERACTIVE_PROGRAMS)
    if program in names:
        return True

    for prefix in _INTERACTIVE_PREFIXES:
        if tuple(words[: len(prefix)]) == prefix:
            return True
    return False


def strip_input_echo(output: str, text: str) -> str:
    """Drop the terminal's echo of ``text`` from the front of ``output``.

    A partial echo (no newline yet) counts as echo too, so ``why?`` never
    looks like a question the program is asking.
    """
    first, newline, rest = output.partition("\n")
    if first.rstrip() == text.rstrip():
        return rest
    if not newline and first and text.startswith(first):
        return ""
    return output
