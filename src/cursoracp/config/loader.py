"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to the typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from cursoracp.config.merge import merge_configs
from cursoracp.config.paths import get_config_paths
from cursoracp.config.schema import AgentConfig, Config, LoggingConfig

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("cursoracp.config")

_cached_config: Config | None = None

EXECUTABLE_ENV = "CURSOR_AGENT_EXECUTABLE"
LOG_FILE_ENV = "CURSOR_ACP_LOG"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables (highest priority)."""
    overrides: dict[str, Any] = {}

    executable = os.environ.get(EXECUTABLE_ENV)
    if executable:
        overrides.setdefault("agent", {})["executable"] = executable

    log_path = os.environ.get(LOG_FILE_ENV)
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    return overrides


def _as_float(value: Any, default: float, name: str) -> float:
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        _log.warning("Ignoring non-numeric %s: %r", name, value)
        return default
    if result < 0:
        _log.warning("Ignoring negative %s: %r", name, value)
        return default
    return result


def _as_str(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    _log.warning("Ignoring %s: expected a string, got %r", name, value)
    return None


def _as_int(value: Any, name: str) -> int | None:
    # bool is an int subclass but never a verbosity
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    _log.warning("Ignoring %s: expected an integer, got %r", name, value)
    return None


def _as_section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        _log.warning("Ignoring config section %r: expected a mapping", key)
        return {}
    return section


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    defaults = AgentConfig()

    agent_data = _as_section(data, "agent")
    extra_args = agent_data.get("extra_args", [])
    if not isinstance(extra_args, list):
        _log.warning("Ignoring agent.extra_args: expected a list")
        extra_args = []
    executable = agent_data.get("executable")
    auth_hint = agent_data.get("auth_hint_pattern")

    agent = AgentConfig(
        executable=str(executable) if executable else defaults.executable,
        extra_args=[str(arg) for arg in extra_args],
        flush_grace=_as_float(
            agent_data.get("flush_grace"), defaults.flush_grace, "agent.flush_grace"
        ),
        kill_timeout=_as_float(
            agent_data.get("kill_timeout"), defaults.kill_timeout, "agent.kill_timeout"
        ),
        auth_hint_pattern=str(auth_hint) if auth_hint else defaults.auth_hint_pattern,
    )

    log_data = _as_section(data, "logging")
    logging_config = LoggingConfig(
        level=_as_str(log_data.get("level"), "logging.level"),
        verbose=_as_int(log_data.get("verbose"), "logging.verbose"),
        file=_as_str(log_data.get("file"), "logging.file"),
    )

    known_keys = {"agent", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(agent=agent, logging=logging_config, extra=extra)


def load_config(session_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($session_root/.cursor-acp/config.yaml)
    3. User config
    4. System config

    Only the global config (no session_root) is cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and session_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    if session_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None
