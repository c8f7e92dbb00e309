"""Core package - configuration, errors and logging.

Command resolution and execution live in baseline.core.resolution and
baseline.core.executor; they depend on the plugin system and are imported
from there directly.
"""

from .errors import BaselineError, ConfigError, PluginError, CommandError
from .logging import get_logger, setup_logging
from .workspace import WorkspaceConfigManager
from .project import ProjectConfigLoader

__all__ = [
    "BaselineError",
    "ConfigError",
    "PluginError",
    "CommandError",
    "get_logger",
    "setup_logging",
    "WorkspaceConfigManager",
    "ProjectConfigLoader",
]
