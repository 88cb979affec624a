"""Root pytest configuration for all tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from cursoracp.config import reset_config
from cursoracp.config.schema import AgentConfig

pytest_plugins = ("pytest_asyncio",)

FAKE_AGENT = Path(__file__).parent / "fixtures" / "fake_cursor_agent.py"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep user config and env overrides out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("CURSOR_AGENT_EXECUTABLE", raising=False)
    monkeypatch.delenv("CURSOR_ACP_LOG", raising=False)
    monkeypatch.delenv("FAKE_CURSOR_SCENARIO", raising=False)
    monkeypatch.delenv("FAKE_CURSOR_ARGV_FILE", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_agent_config() -> AgentConfig:
    """AgentConfig that runs the fake cursor-agent with this interpreter."""
    return AgentConfig(
        executable=sys.executable,
        extra_args=[str(FAKE_AGENT)],
        flush_grace=0.5,
        kill_timeout=0.5,
    )


@pytest.fixture
def scenario(monkeypatch: pytest.MonkeyPatch):
    """Select the fake agent's behaviour."""

    def select(name: str) -> None:
        monkeypatch.setenv("FAKE_CURSOR_SCENARIO", name)

    return select


@pytest.fixture
def argv_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """File the fake agent writes its argv and cwd to."""
    path = tmp_path / "argv.json"
    monkeypatch.setenv("FAKE_CURSOR_ARGV_FILE", str(path))
    return path


@pytest.fixture
def emitted():
    """Collects notifications passed to an emit callback."""

    class Collector(list):
        async def __call__(self, note) -> None:
            self.append(note)

    return Collector()
