"""cursor-agent event parsing and ACP notification mapping."""

from cursoracp.events.mapper import map_event, text_delta
from cursoracp.events.schema import (
    AssistantEvent,
    CursorStreamEvent,
    ResultEvent,
    SystemEvent,
    ToolCallEvent,
    UnknownEvent,
    UserEvent,
    parse_event,
)

__all__ = [
    "map_event",
    "text_delta",
    "parse_event",
    "CursorStreamEvent",
    "AssistantEvent",
    "ResultEvent",
    "SystemEvent",
    "ToolCallEvent",
    "UnknownEvent",
    "UserEvent",
]
