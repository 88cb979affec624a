"""Session state, registry and the cursor-agent turn runner."""

from cursoracp.session.registry import SessionRegistry
from cursoracp.session.state import MODE_DEFAULT, MODE_PLAN, SESSION_MODE_IDS, Session
from cursoracp.session.turn import StopReason, Turn, TurnState, resolve_stop_reason

__all__ = [
    "MODE_DEFAULT",
    "MODE_PLAN",
    "SESSION_MODE_IDS",
    "Session",
    "SessionRegistry",
    "StopReason",
    "Turn",
    "TurnState",
    "resolve_stop_reason",
]
