"""ACP Agent implementation backed by the cursor-agent CLI.

Each prompt runs one cursor-agent process in print/stream-json mode and
streams its events back to the editor as session updates.
"""

from __future__ import annotations

import asyncio
import traceback
from typing import TYPE_CHECKING, Any

import acp
from acp.helpers import session_notification, update_agent_message_text
from acp.schema import (
    AgentCapabilities,
    AuthMethod,
    AvailableCommandsUpdate,
    ClientCapabilities,
    CurrentModeUpdate,
    Implementation,
    ModelInfo,
    PromptCapabilities,
    SessionMode,
    SessionModelState,
    SessionModeState,
    SessionNotification,
    SetSessionModelResponse,
    SetSessionModeResponse,
)

from cursoracp import __version__
from cursoracp.config import Config, get_config, load_config
from cursoracp.logging import get_logger
from cursoracp.session.registry import SessionRegistry
from cursoracp.session.state import MODE_DEFAULT, SESSION_MODE_IDS, Session
from cursoracp.session.turn import Turn

log = get_logger("acp")

if TYPE_CHECKING:
    from acp.interfaces import Client

SESSION_MODES = [
    SessionMode(id="default", name="Always Ask", description="Normal behavior"),
    SessionMode(id="plan", name="Plan Mode", description="Analyze only; avoid edits and commands"),
]

DEFAULT_MODEL_ID = "default"
AVAILABLE_MODELS = [
    ModelInfo(model_id=DEFAULT_MODEL_ID, name="Default", description="Cursor default"),
]

AUTH_METHODS = [
    AuthMethod(
        id="cursor-login",
        name="Log in with Cursor Agent",
        description="Run `cursor-agent login` in your terminal",
    ),
]


class CursorAcpAgent:
    """ACP Agent adapter for cursor-agent.

    Holds the session registry and delegates each prompt to a Turn.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or get_config()
        self._sessions = SessionRegistry()
        self._conn: Client | None = None
        self._background: set[asyncio.Task[Any]] = set()

    def on_connect(self, conn: Client) -> None:
        """Called when a client connects."""
        self._conn = conn

    def _require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise acp.RequestError(
                code=-32600,
                message=f"Session not found: {session_id}",
            )
        return session

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send(self, note: SessionNotification) -> None:
        if not self._conn:
            return
        await self._conn.session_update(session_id=note.session_id, update=note.update)

    async def _announce_commands(self, session_id: str) -> None:
        await self._send(
            session_notification(
                session_id,
                AvailableCommandsUpdate(
                    session_update="available_commands_update",
                    available_commands=[],
                ),
            )
        )

    async def initialize(
        self,
        protocol_version: int,
        client_capabilities: ClientCapabilities | None = None,
        client_info: Implementation | None = None,
        **kwargs: Any,
    ) -> acp.InitializeResponse:
        """Handle initialization request from client."""
        log.info("Initialize (client protocol version %s)", protocol_version)
        return acp.InitializeResponse(
            protocol_version=acp.PROTOCOL_VERSION,
            agent_info=Implementation(name="cursor-acp", version=__version__),
            agent_capabilities=AgentCapabilities(
                prompt_capabilities=PromptCapabilities(
                    image=False,
                    embedded_context=True,
                ),
            ),
            auth_methods=AUTH_METHODS,
        )

    async def authenticate(
        self,
        method_id: str,
        **kwargs: Any,
    ) -> acp.AuthenticateResponse | None:
        """Authentication happens out of band via `cursor-agent login`."""
        raise acp.RequestError(
            code=-32601,
            message="Not implemented: authentication is handled via cursor-agent login",
        )

    async def new_session(
        self,
        cwd: str,
        mcp_servers: list[Any] | None = None,
        **kwargs: Any,
    ) -> acp.NewSessionResponse:
        """Create a new session."""
        config = load_config(session_root=cwd) if cwd else self._config
        session = self._sessions.create(cwd=cwd or None, agent_config=config.agent)

        self._track(asyncio.create_task(self._announce_commands(session.session_id)))

        log.info("Created session %s (cwd=%s)", session.session_id, cwd or "-")

        return acp.NewSessionResponse(
            session_id=session.session_id,
            models=SessionModelState(
                available_models=AVAILABLE_MODELS,
                current_model_id=DEFAULT_MODEL_ID,
            ),
            modes=SessionModeState(
                available_modes=SESSION_MODES,
                current_mode_id=MODE_DEFAULT,
            ),
        )

    async def prompt(
        self,
        prompt: list[Any],
        session_id: str,
        **kwargs: Any,
    ) -> acp.PromptResponse:
        """Run one cursor-agent turn, streaming updates until it exits."""
        session = self._require_session(session_id)
        if session.turn_active:
            raise acp.RequestError(
                code=-32600,
                message=f"A prompt is already running in session {session_id}",
            )

        session.turn_active = True
        try:
            stop_reason = await Turn(session, self._send).run(prompt)
        except Exception as e:
            log.error("Error in prompt: %s", e)
            log.error("%s", traceback.format_exc())
            await self._send(
                session_notification(session_id, update_agent_message_text(f"\n\nError: {e}"))
            )
            stop_reason = "cancelled" if session.cancelled else "refusal"
        finally:
            session.turn_active = False

        return acp.PromptResponse(stop_reason=stop_reason)

    async def cancel(self, session_id: str, **kwargs: Any) -> None:
        """Cancel the running turn; the prompt resolves as cancelled."""
        session = self._require_session(session_id)
        task = session.request_cancel()
        if task is not None:
            log.info("Session %s: cancelling cursor-agent", session_id)
            self._track(task)

    async def set_session_mode(
        self,
        mode_id: str,
        session_id: str,
        **kwargs: Any,
    ) -> SetSessionModeResponse | None:
        """Switch between default and plan mode."""
        session = self._require_session(session_id)
        if mode_id not in SESSION_MODE_IDS:
            raise acp.RequestError(
                code=-32602,
                message=f"Invalid mode: {mode_id}. Valid modes: {', '.join(SESSION_MODE_IDS)}",
            )

        session.mode_id = mode_id
        await self._send(
            session_notification(
                session_id,
                CurrentModeUpdate(session_update="current_mode_update", current_mode_id=mode_id),
            )
        )
        return SetSessionModeResponse()

    async def set_session_model(
        self,
        model_id: str,
        session_id: str,
        **kwargs: Any,
    ) -> SetSessionModelResponse | None:
        """Accepted for compatibility; cursor-agent runs its default model."""
        log.debug("Ignoring model switch to %s for session %s", model_id, session_id)
        return SetSessionModelResponse()

    async def ext_method(
        self,
        method: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Handle extension methods."""
        return {}

    async def ext_notification(
        self,
        method: str,
        params: dict[str, Any],
    ) -> None:
        """Handle extension notifications."""


def create_agent(config: Config | None = None) -> CursorAcpAgent:
    """Create a new cursor-agent ACP agent."""
    return CursorAcpAgent(config)
