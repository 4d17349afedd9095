"""Stateful shell sessions."""

from bashmcp.session.manager import SessionManager
from bashmcp.session.session import InputCollector, Session, SessionState

__all__ = ["InputCollector", "Session", "SessionManager", "SessionState"]
