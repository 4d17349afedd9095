"""PTY process management: shells on pseudo-terminals.

Each session's shell runs in its own PTY with process group isolation,
a single output subscriber, and kill-on-close cleanup.
"""

from bashmcp.pty.process import PTYProcess, PTYStatus, Subscription

__all__ = [
    "PTYProcess",
    "PTYStatus",
    "Subscription",
]
