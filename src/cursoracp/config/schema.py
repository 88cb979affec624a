"""Configuration schema dataclasses for cursor-acp.

All fields have defaults so partial configs at any level merge cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_EXECUTABLE = "cursor-agent"


@dataclass
class AgentConfig:
    """How the external cursor-agent process is launched and reaped.

    Example config.yaml:
        agent:
          executable: /opt/cursor/bin/cursor-agent
          extra_args: ["--model", "gpt-5"]
          flush_grace: 0.3
          kill_timeout: 1.0
    """

    executable: str = DEFAULT_EXECUTABLE  # Bare name is resolved on PATH
    extra_args: list[str] = field(default_factory=list)  # Inserted before the stream flags
    flush_grace: float = 0.3  # Seconds to wait for stdout to drain after exit
    kill_timeout: float = 1.0  # Seconds between SIGTERM and SIGKILL on cancel
    auth_hint_pattern: str = DEFAULT_EXECUTABLE  # Matched with "login" on stderr


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level keys, kept for forward compatibility
    extra: dict[str, Any] = field(default_factory=dict)
