"""Tests for the turn runner and its process plumbing.

The subprocess tests run tests/fixtures/fake_cursor_agent.py in place of
the real cursor-agent binary.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from acp.helpers import text_block
from acp.schema import (
    EmbeddedResourceContentBlock,
    ResourceContentBlock,
    TextResourceContents,
)

from cursoracp.config.schema import AgentConfig
from cursoracp.session.process import ExitJoin, LineBuffer, iter_lines, terminate_process
from cursoracp.session.state import MODE_PLAN, Session
from cursoracp.session.turn import (
    AUTH_HINT,
    PLAN_MODE_PREFIX,
    STREAM_FLAGS,
    Turn,
    TurnState,
    build_command,
    build_prompt_text,
    needs_login,
    resolve_stop_reason,
)


def texts(notes) -> list[str]:
    return [
        n.update.content.text
        for n in notes
        if n.update.session_update == "agent_message_chunk"
    ]


async def wait_for_output(notes, timeout: float = 10.0) -> None:
    async def poll() -> None:
        while not notes:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


class TestLineBuffer:
    """Incremental line splitting."""

    def test_splits_complete_lines(self) -> None:
        buf = LineBuffer()
        assert buf.feed(b"one\ntwo\nthr") == ["one", "two"]
        assert buf.feed(b"ee\n") == ["three"]
        assert buf.close() == []

    def test_multibyte_split_across_chunks(self) -> None:
        data = "café\n".encode()
        buf = LineBuffer()
        assert buf.feed(data[:4]) == []
        assert buf.feed(data[4:]) == ["café"]

    def test_trailing_line_without_newline(self) -> None:
        buf = LineBuffer()
        assert buf.feed(b"a\nlast") == ["a"]
        assert buf.close() == ["last"]

    def test_crlf_stripped(self) -> None:
        buf = LineBuffer()
        assert buf.feed(b"x\r\ny\r\n") == ["x", "y"]

    def test_invalid_bytes_replaced(self) -> None:
        buf = LineBuffer()
        assert buf.feed(b"\xff\n") == ["\ufffd"]

    @pytest.mark.asyncio
    async def test_iter_lines_small_chunks(self) -> None:
        reader = asyncio.StreamReader()
        reader.feed_data("über\nzwei".encode())
        reader.feed_eof()
        lines = [line async for line in iter_lines(reader, chunk_size=1)]
        assert lines == ["über", "zwei"]


class TestExitJoin:
    """Joining process exit with reader close."""

    @pytest.mark.asyncio
    async def test_complete_needs_both(self) -> None:
        join = ExitJoin()
        join.mark_exited(0)
        assert not join.complete
        join.mark_reader_closed()
        assert join.complete
        assert join.exit_code == 0

    @pytest.mark.asyncio
    async def test_wait_reader_times_out(self) -> None:
        join = ExitJoin()
        assert await join.wait_reader(0.01) is False

    @pytest.mark.asyncio
    async def test_wait_reader_wakes_on_close(self) -> None:
        join = ExitJoin()
        asyncio.get_running_loop().call_later(0.01, join.mark_reader_closed)
        assert await join.wait_reader(5.0) is True


class TestTerminateProcess:
    """Signalling a child that may already be gone."""

    @pytest.mark.asyncio
    async def test_exited_process_untouched(self) -> None:
        process = MagicMock(returncode=0)
        await terminate_process(process)
        process.terminate.assert_not_called()

    @pytest.mark.asyncio
    async def test_vanished_process_tolerated(self) -> None:
        process = MagicMock(returncode=None)
        process.terminate.side_effect = ProcessLookupError
        await terminate_process(process)
        process.kill.assert_not_called()


class TestStopReason:
    """Priority of cancellation, result event and exit code."""

    @pytest.mark.parametrize(
        ("cancelled", "reported", "exit_code", "expected"),
        [
            (True, "end_turn", 0, "cancelled"),
            (True, None, None, "cancelled"),
            (False, "refusal", 0, "refusal"),
            (False, "end_turn", 1, "end_turn"),
            (False, "cancelled", 0, "cancelled"),
            (False, None, 0, "end_turn"),
            (False, None, 3, "refusal"),
            (False, None, -15, "refusal"),
            (False, None, None, "refusal"),
        ],
    )
    def test_resolution(self, cancelled, reported, exit_code, expected) -> None:
        assert resolve_stop_reason(cancelled, reported, exit_code) == expected


class TestPromptAndCommand:
    """Prompt text and argv construction."""

    def test_text_blocks_joined(self) -> None:
        blocks = [text_block("first"), text_block("second")]
        assert build_prompt_text(blocks, "default") == "first\n\nsecond"

    def test_resources(self) -> None:
        blocks = [
            EmbeddedResourceContentBlock(
                type="resource",
                resource=TextResourceContents(uri="file:///a.py", text="print(1)"),
            ),
            ResourceContentBlock(type="resource_link", uri="file:///b.py", name="b.py"),
        ]
        assert build_prompt_text(blocks, "default") == "print(1)\n\nfile:///b.py"

    def test_unsupported_blocks_skipped(self) -> None:
        blocks = [text_block("keep"), object(), {"type": "image"}]
        assert build_prompt_text(blocks, "default") == "keep"

    def test_plan_prefix(self) -> None:
        text = build_prompt_text([text_block("look around")], MODE_PLAN)
        assert text == PLAN_MODE_PREFIX + "look around"

    def test_command_layout(self) -> None:
        config = AgentConfig(executable="cursor-agent", extra_args=["--model", "x"])
        argv = build_command(config, "hello")
        assert argv == ["cursor-agent", "--model", "x", *STREAM_FLAGS, "hello"]

    def test_command_with_resume(self) -> None:
        argv = build_command(AgentConfig(), "hello", "abc")
        assert argv[-3:] == ["--resume", "abc", "hello"]

    def test_empty_prompt_not_passed(self) -> None:
        argv = build_command(AgentConfig(), "")
        assert argv == ["cursor-agent", *STREAM_FLAGS]

    def test_needs_login(self) -> None:
        assert needs_login("Please run cursor-agent LOGIN", "cursor-agent")
        assert not needs_login("login failed", "cursor-agent")
        assert not needs_login("cursor-agent crashed", "cursor-agent")


class TestTurnRun:
    """Full turns against the fake cursor-agent."""

    @pytest.fixture
    def session(self, fake_agent_config: AgentConfig, tmp_path: Path) -> Session:
        return Session(session_id="s1", cwd=str(tmp_path), agent_config=fake_agent_config)

    @pytest.mark.asyncio
    async def test_streaming_turn(self, session, scenario, emitted) -> None:
        scenario("stream")
        turn = Turn(session, emitted)

        stop = await turn.run([text_block("hi")])

        assert stop == "end_turn"
        assert turn.state is TurnState.RESOLVED
        assert session.process is None
        assert all(n.session_id == "s1" for n in emitted)

        kinds = [n.update.session_update for n in emitted]
        assert kinds == [
            "agent_message_chunk",
            "agent_message_chunk",
            "agent_message_chunk",
            "tool_call",
            "tool_call_update",
            "tool_call_update",
        ]
        assert "".join(texts(emitted)) == "Hello world"
        assert emitted[3].update.status == "pending"
        assert emitted[4].update.status == "in_progress"
        assert emitted[5].update.status == "completed"
        assert {n.update.tool_call_id for n in emitted[3:]} == {"call-1"}

    @pytest.mark.asyncio
    async def test_first_resume_id_kept(self, session, scenario, argv_file, emitted) -> None:
        scenario("stream")
        await Turn(session, emitted).run([text_block("hi")])
        assert session.resume_id == "cursor-sess-1"

        await Turn(session, emitted).run([text_block("again")])
        argv = json.loads(argv_file.read_text())["argv"]
        assert argv == [*STREAM_FLAGS, "--resume", "cursor-sess-1", "again"]
        assert session.resume_id == "cursor-sess-1"

    @pytest.mark.asyncio
    async def test_runs_in_session_cwd(self, session, scenario, argv_file, emitted, tmp_path) -> None:
        scenario("no_result_ok")
        session.mode_id = MODE_PLAN
        await Turn(session, emitted).run([text_block("plan it")])

        recorded = json.loads(argv_file.read_text())
        assert Path(recorded["cwd"]).resolve() == tmp_path.resolve()
        assert recorded["argv"][-1] == PLAN_MODE_PREFIX + "plan it"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("no_result_ok", "end_turn"),
            ("no_result_fail", "refusal"),
            ("result_error", "refusal"),
            ("result_cancelled", "cancelled"),
        ],
    )
    async def test_exit_and_result(self, session, scenario, emitted, name, expected) -> None:
        scenario(name)
        assert await Turn(session, emitted).run([text_block("hi")]) == expected

    @pytest.mark.asyncio
    async def test_noise_and_unterminated_line(self, session, scenario, emitted) -> None:
        scenario("noise")
        stop = await Turn(session, emitted).run([text_block("hi")])
        assert stop == "end_turn"
        assert texts(emitted) == ["ok", " then"]

    @pytest.mark.asyncio
    async def test_login_hint_sent_once(self, session, scenario, emitted) -> None:
        scenario("login")
        turn = Turn(session, emitted)
        stop = await turn.run([text_block("hi")])
        assert stop == "refusal"
        assert turn.auth_hint_sent
        assert texts(emitted) == [AUTH_HINT]

    @pytest.mark.asyncio
    async def test_cancel_stops_process(self, session, scenario, emitted) -> None:
        scenario("hang")
        task = asyncio.create_task(Turn(session, emitted).run([text_block("hi")]))
        await wait_for_output(emitted)

        term = session.request_cancel()
        assert term is not None
        stop = await asyncio.wait_for(task, timeout=10.0)
        await term

        assert stop == "cancelled"
        assert session.process is None

    @pytest.mark.asyncio
    async def test_cancel_escalates_to_kill(self, session, scenario, emitted) -> None:
        scenario("ignore_term")
        task = asyncio.create_task(Turn(session, emitted).run([text_block("hi")]))
        await wait_for_output(emitted)

        term = session.request_cancel()
        stop = await asyncio.wait_for(task, timeout=10.0)
        await term

        assert stop == "cancelled"
        assert texts(emitted) == ["stubborn"]

    @pytest.mark.asyncio
    async def test_new_turn_clears_cancel_flag(self, session, scenario, emitted) -> None:
        scenario("no_result_ok")
        session.cancelled = True
        assert await Turn(session, emitted).run([text_block("hi")]) == "end_turn"

    @pytest.mark.asyncio
    async def test_spawn_failure(self, tmp_path, emitted) -> None:
        config = AgentConfig(executable=str(tmp_path / "missing" / "cursor-agent"))
        session = Session(session_id="s2", cwd=str(tmp_path), agent_config=config)

        turn = Turn(session, emitted)
        stop = await turn.run([text_block("hi")])

        assert stop == "refusal"
        assert turn.state is TurnState.RESOLVED
        assert session.process is None
        [message] = texts(emitted)
        assert message.startswith("Failed to start `")

    @pytest.mark.asyncio
    async def test_missing_pipes_rejected(self, session, emitted) -> None:
        process = MagicMock(stdout=None, stderr=None, returncode=None)
        with patch(
            "cursoracp.session.turn.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(RuntimeError, match="without stdout/stderr"):
                await Turn(session, emitted).run([text_block("hi")])

        process.kill.assert_called_once()
        assert session.process is None
