"""One prompt turn: spawn cursor-agent, stream its events, resolve a stop reason.

A turn moves idle -> running -> draining -> resolved:

- running: stdout lines are parsed and mapped to ACP notifications, which
  are forwarded as soon as they are produced. stderr is watched for a
  login prompt.
- draining: the process has exited; wait (bounded) for the stdout reader
  to deliver what it already buffered.
- resolved: the stop reason is computed and the child is released.
"""

from __future__ import annotations

import asyncio
import codecs
import re
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any, Literal

from acp.helpers import session_notification, update_agent_message_text
from acp.schema import (
    EmbeddedResourceContentBlock,
    ResourceContentBlock,
    SessionNotification,
    TextContentBlock,
    TextResourceContents,
)

from cursoracp.config.schema import AgentConfig
from cursoracp.events.mapper import map_event
from cursoracp.events.schema import AssistantEvent, ResultEvent, parse_event
from cursoracp.logging import TRACE, get_logger
from cursoracp.session.process import CHUNK_SIZE, ExitJoin, iter_lines
from cursoracp.session.state import MODE_PLAN, Session

log = get_logger("turn")

StopReason = Literal["end_turn", "cancelled", "refusal"]
Emit = Callable[[SessionNotification], Awaitable[None]]

PLAN_MODE_PREFIX = "[PLAN MODE] Do not edit files or run commands. Analyze only.\n\n"
AUTH_HINT = (
    "Authentication required. Please run `cursor-agent login` in your terminal, "
    "then retry the prompt."
)
STREAM_FLAGS = ("--print", "--output-format", "stream-json", "--stream-partial-output")

STOP_REASON_BY_SUBTYPE: dict[str, StopReason] = {
    "success": "end_turn",
    "cancelled": "cancelled",
    "error": "refusal",
    "failure": "refusal",
    "refused": "refusal",
}


class TurnState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    RESOLVED = "resolved"


def prompt_segment(block: Any) -> str | None:
    """Text contributed by one ACP prompt block, if any."""
    if isinstance(block, TextContentBlock):
        return block.text
    if isinstance(block, EmbeddedResourceContentBlock):
        if isinstance(block.resource, TextResourceContents):
            return block.resource.text
        return None
    if isinstance(block, ResourceContentBlock):
        return block.uri
    return None


def build_prompt_text(blocks: Sequence[Any], mode_id: str) -> str:
    """Prompt text for cursor-agent: optional plan prefix plus the segments."""
    parts = [s for s in (prompt_segment(b) for b in blocks) if s is not None]
    prefix = PLAN_MODE_PREFIX if mode_id == MODE_PLAN else ""
    return prefix + "\n\n".join(parts)


def build_command(
    config: AgentConfig, prompt_text: str, resume_id: str | None = None
) -> list[str]:
    """argv for one cursor-agent run."""
    argv = [config.executable, *config.extra_args, *STREAM_FLAGS]
    if resume_id:
        argv += ["--resume", resume_id]
    if prompt_text:
        argv.append(prompt_text)
    return argv


def needs_login(text: str, agent_name: str) -> bool:
    """Heuristic for cursor-agent asking the user to log in."""
    return bool(
        re.search("login", text, re.IGNORECASE)
        and re.search(re.escape(agent_name), text, re.IGNORECASE)
    )


def resolve_stop_reason(
    cancelled: bool, reported: StopReason | None, exit_code: int | None
) -> StopReason:
    """Cancellation wins, then the agent's result event, then the exit code."""
    if cancelled:
        return "cancelled"
    if reported is not None:
        return reported
    return "end_turn" if exit_code == 0 else "refusal"


class Turn:
    """Runs a single prompt against cursor-agent for one session."""

    def __init__(self, session: Session, emit: Emit) -> None:
        self.session = session
        self.state = TurnState.IDLE
        self.last_assistant_text = ""
        self.reported_stop_reason: StopReason | None = None
        self.auth_hint_sent = False
        self._emit = emit
        self._stop_task: asyncio.Task[None] | None = None

    async def run(self, blocks: Sequence[Any]) -> StopReason:
        session = self.session
        config = session.agent_config

        session.cancelled = False
        prompt_text = build_prompt_text(blocks, session.mode_id)
        argv = build_command(config, prompt_text, session.resume_id)

        self.state = TurnState.RUNNING
        log.info(
            "Session %s: starting %s (resume=%s, mode=%s)",
            session.session_id,
            config.executable,
            session.resume_id or "-",
            session.mode_id,
        )
        log.debug("argv: %s", argv[:-1] if prompt_text else argv)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=session.cwd or None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            log.error("Failed to start %s: %s", config.executable, e)
            await self._emit_text(f"Failed to start `{config.executable}`: {e}")
            self.state = TurnState.RESOLVED
            return resolve_stop_reason(session.cancelled, None, None)

        if process.stdout is None or process.stderr is None:
            process.kill()
            raise RuntimeError("cursor-agent was started without stdout/stderr pipes")
        session.process = process
        if session.cancelled:
            # cancel() landed while the child was still being spawned
            self._stop_task = session.request_cancel()

        join = ExitJoin()
        reader = asyncio.create_task(self._read_stdout(process.stdout, join))
        watcher = asyncio.create_task(self._watch_stderr(process.stderr))

        try:
            exit_code = await process.wait()
            join.mark_exited(exit_code)
            self.state = TurnState.DRAINING
            if not await join.wait_reader(config.flush_grace):
                log.warning(
                    "Session %s: stdout still open %.2fs after exit, resolving anyway",
                    session.session_id,
                    config.flush_grace,
                )
            if not watcher.done():
                # stderr may still hold a login prompt written just before exit
                await asyncio.wait({watcher}, timeout=config.flush_grace)
        finally:
            for task in (reader, watcher):
                if not task.done():
                    task.cancel()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            session.process = None

        stop_reason = resolve_stop_reason(
            session.cancelled, self.reported_stop_reason, exit_code
        )
        self.state = TurnState.RESOLVED
        log.info(
            "Session %s: cursor-agent exited with %s, stop_reason=%s",
            session.session_id,
            exit_code,
            stop_reason,
        )
        return stop_reason

    async def _read_stdout(self, stream: asyncio.StreamReader, join: ExitJoin) -> None:
        try:
            async for line in iter_lines(stream):
                try:
                    await self.handle_line(line)
                except Exception:
                    log.exception("Failed to forward cursor-agent event")
        finally:
            join.mark_reader_closed()

    async def handle_line(self, line: str) -> None:
        """Parse one stdout line, forward its notifications, update turn state."""
        event = parse_event(line)
        if event is None:
            if line.strip():
                log.log(TRACE, "Skipping non-JSON output: %s", line[:200])
            return

        for note in map_event(self.session.session_id, event, self.last_assistant_text):
            await self._emit(note)

        if isinstance(event, AssistantEvent) and event.text:
            self.last_assistant_text = event.text
        elif isinstance(event, ResultEvent) and event.subtype in STOP_REASON_BY_SUBTYPE:
            self.reported_stop_reason = STOP_REASON_BY_SUBTYPE[event.subtype]

        if self.session.capture_resume_id(event.session_id):
            log.debug(
                "Session %s: resume id %s", self.session.session_id, event.session_id
            )

    async def _watch_stderr(self, stream: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        agent_name = self.session.agent_config.auth_hint_pattern
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                return
            text = decoder.decode(chunk)
            log.debug("cursor-agent stderr: %s", text.rstrip())
            if not self.auth_hint_sent and needs_login(text, agent_name):
                self.auth_hint_sent = True
                try:
                    await self._emit_text(AUTH_HINT)
                except Exception:
                    log.exception("Failed to send authentication hint")

    async def _emit_text(self, text: str) -> None:
        await self._emit(
            session_notification(self.session.session_id, update_agent_message_text(text))
        )
