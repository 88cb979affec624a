"""Configuration management for cursor-acp.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/cursor-acp/ or %PROGRAMDATA%)
- User-level config (~/.config/cursor-acp/ or %APPDATA%)
- Project-level config ($session_root/.cursor-acp/)
- Environment variable overrides (highest priority)

Example usage:
    from cursoracp.config import load_config

    config = load_config(session_root="/path/to/project")
    print(config.agent.executable)
"""

from cursoracp.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from cursoracp.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from cursoracp.config.schema import (
    AgentConfig,
    Config,
    LoggingConfig,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "AgentConfig",
    "LoggingConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
