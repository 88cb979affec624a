"""Entry point for running cursor-acp as an ACP agent.

Usage:
    python -m cursoracp

This starts the ACP agent listening on stdin/stdout for JSON-RPC
messages from an ACP client (Zed, Rider, etc.). Each prompt is run by
the cursor-agent CLI (override with CURSOR_AGENT_EXECUTABLE).
"""

from __future__ import annotations

import asyncio
import json

from acp.agent.connection import AgentSideConnection
from acp.connection import StreamDirection, StreamEvent
from acp.stdio import stdio_streams

from cursoracp.config import load_config
from cursoracp.logging import get_logger, setup_logging
from cursoracp.transport.acp.agent import create_agent

log = get_logger()

# Tool results can be large single lines
STREAM_LIMIT = 16 * 1024 * 1024


def log_message(event: StreamEvent) -> None:
    """Log every ACP message at debug level."""
    direction = "<<" if event.direction == StreamDirection.INCOMING else ">>"
    method = event.message.get("method", "response")
    msg_id = event.message.get("id", "-")
    msg_str = json.dumps(event.message, default=str)

    if method == "response":
        # ACP uses camelCase "stopReason" in JSON
        result = event.message.get("result", {})
        stop_reason = (
            result.get("stopReason", "n/a") if isinstance(result, dict) else "n/a"
        )
        error = event.message.get("error")
        if error:
            log.debug("%s response (id=%s) ERROR: %s", direction, msg_id, error)
        else:
            log.debug(
                "%s response (id=%s) stop_reason=%s len=%d",
                direction, msg_id, stop_reason, len(msg_str),
            )
    elif method == "session/update":
        update = event.message.get("params", {}).get("update", {})
        log.debug(
            "%s %s type=%s len=%d",
            direction, method, update.get("sessionUpdate", "unknown"), len(msg_str),
        )
    else:
        preview = msg_str[:200] + "..." if len(msg_str) > 200 else msg_str
        log.debug("%s %s (id=%s) %s", direction, method, msg_id, preview)


async def _main() -> None:
    """Async entry point with proper cleanup."""
    agent = create_agent()

    output_stream, input_stream = await stdio_streams(limit=STREAM_LIMIT)
    conn = AgentSideConnection(
        agent,
        input_stream,
        output_stream,
        listening=False,
        use_unstable_protocol=True,
    )
    conn._conn.add_observer(log_message)

    log.info("Ready to accept ACP requests")

    try:
        await conn.listen()
    except (BrokenPipeError, ConnectionResetError):
        log.info("Pipe closed, shutting down...")
    finally:
        log.info("Connection closed, cleaning up...")
        try:
            await asyncio.wait_for(conn.close(), timeout=2.0)
        except asyncio.TimeoutError:
            log.warning("Connection close timed out")
        except Exception as e:
            log.warning("Error during cleanup: %s", e)


def main() -> None:
    """Run the cursor-acp agent."""
    config = load_config()
    setup_logging(config.logging)

    log.info("Starting cursor-acp (executable=%s)", config.agent.executable)
    asyncio.run(_main())


if __name__ == "__main__":
    main()
