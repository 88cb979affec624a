"""Per-session state shared by the ACP facade and the turn runner."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from cursoracp.config.schema import AgentConfig
from cursoracp.session.process import terminate_process

MODE_DEFAULT = "default"
MODE_PLAN = "plan"
SESSION_MODE_IDS = (MODE_DEFAULT, MODE_PLAN)


@dataclass
class Session:
    """One client conversation.

    Attributes:
        session_id: Opaque id handed to the client, never reused.
        cwd: Working directory for every turn, fixed at creation.
        agent_config: Launch settings resolved for this session's project.
        mode_id: "default" or "plan"; shapes the next turn's prompt.
        resume_id: cursor-agent's own session id, set once and then reused.
        cancelled: Set by cancel(), cleared when a turn starts.
        process: The running cursor-agent child, at most one at a time.
        turn_active: True from the start of a prompt until it resolves.
    """

    session_id: str
    cwd: str | None = None
    agent_config: AgentConfig = field(default_factory=AgentConfig)
    mode_id: str = MODE_DEFAULT
    resume_id: str | None = None
    cancelled: bool = False
    process: asyncio.subprocess.Process | None = None
    turn_active: bool = False

    def capture_resume_id(self, resume_id: str | None) -> bool:
        """Remember the first resume token seen; later ones are ignored."""
        if not resume_id or self.resume_id:
            return False
        self.resume_id = resume_id
        return True

    def request_cancel(self) -> asyncio.Task[None] | None:
        """Flag the turn as cancelled and start stopping the child.

        Returns the termination task when a live process was signalled.
        """
        self.cancelled = True
        process = self.process
        if process is None or process.returncode is not None:
            return None
        return asyncio.create_task(
            terminate_process(process, self.agent_config.kill_timeout)
        )
