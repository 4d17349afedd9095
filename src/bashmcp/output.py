"""Output cleanup: terminal noise removal and size capping."""

from __future__ import annotations

import re

TRUNCATION_NOTICE = "[Output truncated due to size limits]"

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]|\x1b\][^\x07]*\x07|\x1b[()][A-Za-z0-9]")


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences (CSI, OSC titles, charset selects)."""
    return _ANSI_RE.sub("", text)


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to \\n."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def sanitize_binary_output(text: str) -> str:
    """Remove binary garbage from output.

    Keeps printable chars, tabs, newlines, and carriage returns.
    Strips everything else (control chars, undefined code points, format chars).
    """
    cleaned = []
    for ch in text:
        cp = ord(ch)
        if ch in ("\t", "\n", "\r"):
            cleaned.append(ch)
        elif cp >= 32 and cp not in range(0x7F, 0xA0):
            if cp not in range(0xFFF9, 0xFFFC):
                cleaned.append(ch)
    return "".join(cleaned)


def clean_terminal_text(text: str) -> str:
    """Make raw PTY text readable: newlines, escapes, control bytes."""
    return sanitize_binary_output(strip_ansi(normalize_newlines(text)))


def truncate_output(text: str, max_size: int) -> str:
    """Cap ``text`` at ``max_size`` characters, appending a notice if cut.

    The head is kept: for command output the first lines usually carry
    the answer, and the notice tells the caller the rest was dropped.
    """
    if not text or len(text) <= max_size:
        return text
    return f"{text[:max_size]}\n{TRUNCATION_NOTICE}"
