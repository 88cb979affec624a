"""Typed model of the cursor-agent ``stream-json`` output.

Each stdout line is one JSON object with a ``type`` discriminator. Known
types validate into their own model; anything else (or a known type with
an unusable shape) becomes an UnknownEvent so a ``session_id`` riding on it
is still visible to the turn runner.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class CursorModel(BaseModel):
    """Base model for cursor-agent events; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class CursorEvent(CursorModel):
    """Fields shared by every event."""

    session_id: str | None = None


class UserEvent(CursorEvent):
    """Echo of the prompt the agent received."""

    type: Literal["user"]


class AssistantMessage(CursorModel):
    content: list[Any] = Field(default_factory=list)


class AssistantEvent(CursorEvent):
    """Assistant output; with partial output on, ``text`` is cumulative."""

    type: Literal["assistant"]
    message: AssistantMessage | None = None

    @property
    def text(self) -> str:
        if self.message is None or not self.message.content:
            return ""
        first = self.message.content[0]
        if isinstance(first, dict) and isinstance(first.get("text"), str):
            return first["text"]
        return ""


class ToolCallEvent(CursorEvent):
    """Start or completion of a tool invocation.

    ``tool_call`` is a single-key object such as
    ``{"readToolCall": {"args": {...}, "result": {...}}}``.
    """

    type: Literal["tool_call"]
    subtype: str | None = None
    call_id: str | None = None
    tool_call_id: str | None = None
    tool_call: dict[str, Any] | None = None

    @property
    def id(self) -> str:
        return self.call_id or self.tool_call_id or ""

    @property
    def kind_key(self) -> str | None:
        if not self.tool_call:
            return None
        return next(iter(self.tool_call))

    @property
    def invocation(self) -> dict[str, Any]:
        key = self.kind_key
        if key is None:
            return {}
        tool = self.tool_call[key] if self.tool_call else None
        return tool if isinstance(tool, dict) else {}

    @property
    def args(self) -> dict[str, Any]:
        args = self.invocation.get("args")
        return args if isinstance(args, dict) else {}

    @property
    def raw_result(self) -> Any:
        return self.invocation.get("result")


class ResultEvent(CursorEvent):
    """Terminal event for a turn."""

    type: Literal["result"]
    subtype: str | None = None


class SystemEvent(CursorEvent):
    """Initialization and housekeeping messages."""

    type: Literal["system"]
    subtype: str | None = None


class UnknownEvent(CursorEvent):
    """Any object that is not one of the known event shapes."""

    type: str | None = None


KnownEvent = Annotated[
    Union[UserEvent, AssistantEvent, ToolCallEvent, ResultEvent, SystemEvent],
    Field(discriminator="type"),
]

CursorStreamEvent = Union[
    UserEvent, AssistantEvent, ToolCallEvent, ResultEvent, SystemEvent, UnknownEvent
]

_known_adapter: TypeAdapter[Any] = TypeAdapter(KnownEvent)


def parse_event(line: str) -> CursorStreamEvent | None:
    """Parse one stdout line into an event, or None for noise.

    Never raises: blank lines, non-JSON and non-object JSON all return None.
    """
    line = line.strip()
    if not line:
        return None

    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    try:
        return _known_adapter.validate_python(data)
    except ValidationError:
        pass

    kind = data.get("type")
    session_id = data.get("session_id")
    return UnknownEvent(
        type=kind if isinstance(kind, str) else None,
        session_id=session_id if isinstance(session_id, str) else None,
    )
