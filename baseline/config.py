"""Centralized settings for Baseline.

This module provides typed, validated settings loaded from
environment variables and .env files. Workspace configuration
(baseline.json) lives in baseline.core.workspace.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

DEFAULT_REGISTRY_URL = "https://registry.baseline.dev/plugins"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PluginSettings:
    """Plugin discovery and installation settings."""
    registry_url: str = DEFAULT_REGISTRY_URL
    install_timeout: float = 120.0
    registry_cache_ttl_hours: float = 24.0
    entry_points_enabled: bool = True

    def __post_init__(self):
        self.registry_url = os.getenv("BASELINE_PLUGIN_REGISTRY", self.registry_url)
        self.install_timeout = float(os.getenv("BASELINE_INSTALL_TIMEOUT", self.install_timeout))
        self.registry_cache_ttl_hours = float(
            os.getenv("BASELINE_REGISTRY_CACHE_TTL", self.registry_cache_ttl_hours)
        )
        self.entry_points_enabled = _env_bool("BASELINE_ENTRY_POINTS", self.entry_points_enabled)


@dataclass
class ExecutionSettings:
    """Settings for running commands across repositories."""
    concurrency: int = 4
    command_timeout: float = 0.0  # 0 disables the timeout

    def __post_init__(self):
        self.concurrency = int(os.getenv("BASELINE_CONCURRENCY", self.concurrency))
        self.command_timeout = float(os.getenv("BASELINE_COMMAND_TIMEOUT", self.command_timeout))


@dataclass
class LogSettings:
    """Logging configuration."""
    level: str = "WARNING"
    format: str = "text"  # "json" or "text"
    log_dir: Optional[Path] = None

    def __post_init__(self):
        self.level = os.getenv("BASELINE_LOG_LEVEL", self.level).upper()
        self.format = os.getenv("BASELINE_LOG_FORMAT", self.format).lower()
        log_dir = os.getenv("BASELINE_LOG_DIR")
        if log_dir:
            self.log_dir = Path(log_dir)


@dataclass
class Settings:
    """Main settings container."""
    plugins: PluginSettings = field(default_factory=PluginSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    log: LogSettings = field(default_factory=LogSettings)

    def validate(self) -> list[str]:
        """Validate settings and return list of issues."""
        issues = []

        if self.plugins.install_timeout <= 0:
            issues.append("BASELINE_INSTALL_TIMEOUT must be positive")

        if self.plugins.registry_cache_ttl_hours < 0:
            issues.append("BASELINE_REGISTRY_CACHE_TTL cannot be negative")

        if self.execution.concurrency < 1:
            issues.append("BASELINE_CONCURRENCY must be at least 1")

        if self.execution.command_timeout < 0:
            issues.append("BASELINE_COMMAND_TIMEOUT cannot be negative")

        if self.log.format not in ("json", "text"):
            issues.append(f"BASELINE_LOG_FORMAT must be 'json' or 'text', got '{self.log.format}'")

        return issues

    def is_valid(self) -> bool:
        """Check if settings are valid."""
        return len(self.validate()) == 0


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (useful for testing)."""
    global _settings
    _settings = None
