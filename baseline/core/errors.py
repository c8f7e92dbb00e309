"""Custom exceptions for Baseline.

Provides user-friendly error messages and structured error handling.
"""

from typing import Optional


class BaselineError(Exception):
    """Base exception for all Baseline errors.

    Provides:
    - User-friendly message
    - Technical details for debugging
    - Suggested fixes when applicable
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details
        self.suggestion = suggestion
        self.cause = cause
        super().__init__(message)

    def format_user_friendly(self) -> str:
        """Format error for display to user."""
        parts = [f"✗ {self.message}"]

        if self.details:
            parts.append(f"   Details: {self.details}")

        if self.suggestion:
            parts.append(f"   Try: {self.suggestion}")

        return "\n".join(parts)

    def __str__(self) -> str:
        return self.format_user_friendly()


class ConfigError(BaselineError):
    """Workspace configuration errors (baseline.json, baseline.project.json)."""

    def __init__(self, message: str, config_path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None)
        if not details and config_path:
            details = f"File: {config_path}"
        super().__init__(message, details=details, **kwargs)
        self.config_path = config_path


class PluginError(BaselineError):
    """Errors related to plugins."""

    def __init__(
        self,
        message: str,
        plugin_id: Optional[str] = None,
        source: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", None)
        if not details:
            parts = []
            if plugin_id:
                parts.append(f"Plugin: {plugin_id}")
            if source:
                parts.append(f"Source: {source}")
            if parts:
                details = ", ".join(parts)

        super().__init__(message, details=details, **kwargs)
        self.plugin_id = plugin_id
        self.source = source


class PluginShapeError(PluginError):
    """A loaded module does not export a recognizable plugin or plugin package."""


class PluginLoadError(PluginError):
    """A plugin module could not be read or evaluated."""


class InstallError(PluginError):
    """Fetching an external plugin failed (network, git, pip, filesystem)."""


class InstallTimeoutError(InstallError):
    """An installer step exceeded its time budget."""

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "Raise BASELINE_INSTALL_TIMEOUT or check your network connection"

        super().__init__(message, suggestion=suggestion, **kwargs)
        self.timeout_seconds = timeout_seconds


class PluginNotInstalledError(PluginError):
    """The plugin has no entry in the lock file."""

    def __init__(self, plugin_id: str, **kwargs):
        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = "Run 'baseline plugin list' to see installed plugins"
        super().__init__(
            f"Plugin {plugin_id} is not installed",
            plugin_id=plugin_id,
            suggestion=suggestion,
            **kwargs
        )


class LockFileError(PluginError):
    """The plugin lock file has an unsupported schema version or shape."""


class CommandError(BaselineError):
    """A resolved command failed to run."""

    def __init__(
        self,
        message: str,
        repo: Optional[str] = None,
        command: Optional[str] = None,
        exit_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", None)
        if not details:
            parts = []
            if repo:
                parts.append(f"Repository: {repo}")
            if command:
                parts.append(f"Command: {command}")
            if exit_code is not None:
                parts.append(f"Exit code: {exit_code}")
            if parts:
                details = ", ".join(parts)

        super().__init__(message, details=details, **kwargs)
        self.repo = repo
        self.command = command
        self.exit_code = exit_code


def format_exception_chain(error: Exception, max_depth: int = 5) -> str:
    """Format an exception chain for display.

    Handles nested exceptions and provides clean output.
    """
    lines = []
    current = error
    depth = 0

    while current and depth < max_depth:
        if isinstance(current, BaselineError):
            lines.append(current.format_user_friendly())
        else:
            lines.append(f"✗ {type(current).__name__}: {current}")

        current = getattr(current, "__cause__", None) or getattr(current, "cause", None)
        depth += 1

        if current:
            lines.append("   Caused by:")

    return "\n".join(lines)
