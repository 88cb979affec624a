"""cursor-acp: Agent Client Protocol adapter for the cursor-agent CLI."""

__version__ = "0.1.0"

from cursoracp.config import Config, get_config, load_config
from cursoracp.events import map_event, parse_event
from cursoracp.session import Session, SessionRegistry, Turn
from cursoracp.transport.acp import CursorAcpAgent, create_agent

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "map_event",
    "parse_event",
    "Session",
    "SessionRegistry",
    "Turn",
    "CursorAcpAgent",
    "create_agent",
]
