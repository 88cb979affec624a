"""In-memory session registry.

Sessions are only ever added. There is no close verb, so a long-lived
adapter accumulates one entry per session it has served.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator

from cursoracp.config.schema import AgentConfig
from cursoracp.session.state import Session


class SessionRegistry:
    """Owns every Session, keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create(self, cwd: str | None = None, agent_config: AgentConfig | None = None) -> Session:
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex

        session = Session(
            session_id=session_id,
            cwd=cwd,
            agent_config=agent_config or AgentConfig(),
        )
        self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))
