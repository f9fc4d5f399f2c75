"""Session lifecycle."""

from .listener import BrowserOpener, RedirectListener, open_system_browser
from .machine import SessionStateMachine
from .state import AuthOutcome, SessionSnapshot, SessionState

__all__ = [
    "AuthOutcome",
    "BrowserOpener",
    "RedirectListener",
    "SessionSnapshot",
    "SessionState",
    "SessionStateMachine",
    "open_system_browser",
]
