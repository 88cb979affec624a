"""Translate cursor-agent stream events into ACP session notifications."""

from __future__ import annotations

from typing import Any

from acp.helpers import (
    session_notification,
    start_tool_call,
    update_agent_message_text,
    update_tool_call,
)
from acp.schema import SessionNotification

from cursoracp.events.schema import (
    AssistantEvent,
    CursorStreamEvent,
    ToolCallEvent,
    UserEvent,
)
from cursoracp.events.tools import (
    locations_from_args,
    tool_category,
    tool_locations,
    tool_result_content,
    tool_title,
)

FALLBACK_KIND = "Other"


def text_delta(previous: str, current: str) -> str:
    """The part of ``current`` not yet sent, given ``previous`` was.

    When ``current`` does not extend ``previous`` the stream was reset and
    the whole of ``current`` is new.
    """
    if current == previous:
        return ""
    if current.startswith(previous):
        return current[len(previous):]
    return current


def unwrap_result(raw: Any) -> tuple[Any, bool]:
    """Split a tool result envelope into (payload, failed)."""
    if not isinstance(raw, dict):
        return raw, False
    failed = raw.get("error") is not None
    for key in ("success", "error"):
        if raw.get(key) is not None:
            return raw[key], failed
    return raw, failed


def map_event(
    session_id: str,
    event: CursorStreamEvent,
    last_assistant_text: str = "",
) -> list[SessionNotification]:
    """Map one event to zero, one or two ACP notifications.

    The caller owns ``last_assistant_text`` across calls and is expected to
    advance it to ``event.text`` after every non-empty assistant event.
    """
    match event:
        case UserEvent():
            # The client already has the prompt it sent
            return []
        case AssistantEvent():
            delta = text_delta(last_assistant_text, event.text) if event.text else ""
            if not delta:
                return []
            return [session_notification(session_id, update_agent_message_text(delta))]
        case ToolCallEvent(subtype="started"):
            return _tool_started(session_id, event)
        case ToolCallEvent(subtype="completed"):
            return [_tool_completed(session_id, event)]
        case _:
            # Other tool subtypes, result, system and unknown events
            return []


def _tool_started(session_id: str, event: ToolCallEvent) -> list[SessionNotification]:
    kind = event.kind_key or FALLBACK_KIND
    args = event.args
    start = start_tool_call(
        event.id,
        tool_title(kind, args),
        kind=tool_category(kind),
        status="pending",
        locations=locations_from_args(args),
        raw_input=dict(args),
    )
    progress = update_tool_call(event.id, status="in_progress")
    return [
        session_notification(session_id, start),
        session_notification(session_id, progress),
    ]


def _tool_completed(session_id: str, event: ToolCallEvent) -> SessionNotification:
    kind = event.kind_key
    args = event.args
    result, failed = unwrap_result(event.raw_result)
    update = update_tool_call(
        event.id,
        status="failed" if failed else "completed",
        raw_output=result,
        locations=tool_locations(args, result),
        content=tool_result_content(kind, args, result),
    )
    return session_notification(session_id, update)
