"""Plugin interfaces.

Every plugin is exactly one of five kinds, each with its own abstract base
class. A plugin declares what it is through its metadata; the class it
derives from must agree with that declaration.

Plugins run with full host privileges. Nothing here sandboxes them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional

from baseline.models.plugin import (
    CommandDiscovery,
    CommandRunner,
    DetectionCommand,
    LanguagePluginOptions,
    LanguageProfile,
    PackageMetadata,
    PluginMetadata,
    PluginRequirement,
    PluginType,
    ProjectFile,
)
from baseline.utils.process import ProcessTimeout, run_process


class Plugin(ABC):
    """Abstract base class for all plugins.

    Subclasses may provide ``metadata`` either as a property or as a plain
    class attribute holding a PluginMetadata.
    """

    expected_type: ClassVar[Optional[PluginType]] = None

    @property
    @abstractmethod
    def metadata(self) -> PluginMetadata:
        """Return the descriptor for this plugin."""
        pass

    @property
    def id(self) -> str:
        """Shortcut to get plugin id."""
        return self.metadata.id

    @property
    def type(self) -> PluginType:
        return self.metadata.type

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.metadata.id}@{self.metadata.version}>"


def _exists(repo_path: str | Path, *names: str) -> bool:
    root = Path(repo_path)
    return any((root / name).exists() for name in names)


class LanguagePlugin(Plugin):
    """A language: detection, command discovery and toolchain profile."""

    expected_type = PluginType.LANGUAGE

    @abstractmethod
    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        """Describe the toolchain and project markers of this language."""
        pass

    @abstractmethod
    async def detect_language(self, repo_path: str | Path) -> bool:
        """Return True when the repository at repo_path is of this language."""
        pass

    @abstractmethod
    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        """Find test/lint/start commands from the repository's project files."""
        pass

    async def get_command_runner(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandRunner]:
        """Tool that wraps this language's commands, or None to run them directly."""
        return None

    def get_project_files(self) -> list[ProjectFile]:
        return []

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        return None

    def has_marker(self, repo_path: str | Path) -> bool:
        """True when any project marker of this language exists in repo_path."""
        return _exists(repo_path, *self.get_language_profile().project_markers)


class ProviderPlugin(Plugin):
    """A git hosting service (GitHub, GitLab, ...)."""

    expected_type = PluginType.PROVIDER

    @abstractmethod
    def matches_url(self, url: str) -> bool:
        pass

    @abstractmethod
    def get_git_url(self, owner: str, name: str) -> str:
        pass

    def get_repo_url_pattern(self) -> Optional[str]:
        return None

    async def create_pull_request(
        self,
        repo_path: str | Path,
        title: str,
        base: str,
        head: str,
        body: Optional[str] = None,
        draft: bool = False
    ) -> str:
        raise NotImplementedError(f"{self.id} cannot create pull requests")


class PackageManagerPlugin(Plugin):
    """A package manager used by one or more languages."""

    expected_type = PluginType.PACKAGE_MANAGER

    # Executable probed by is_installed()/get_version()
    executable: ClassVar[Optional[str]] = None

    @abstractmethod
    def get_install_command(self) -> str:
        pass

    @abstractmethod
    def get_run_command(self) -> list[str]:
        """Prefix for running scripts, e.g. ["npm", "run"]."""
        pass

    async def get_version(self) -> Optional[str]:
        if not self.executable:
            return None
        try:
            result = await run_process([self.executable, "--version"], timeout=5)
        except (OSError, ProcessTimeout):
            return None
        if not result.ok:
            return None
        return self.parse_version(result.stdout.strip())

    async def is_installed(self) -> bool:
        return await self.get_version() is not None

    def parse_version(self, output: str) -> Optional[str]:
        return output or None

    async def create_workspace_config(
        self,
        repos: list[dict[str, str]],
        workspace_root: str | Path
    ) -> Optional[dict[str, str]]:
        """Return {"file": ..., "content": ...} linking the repos, or None."""
        return None


class EditorPlugin(Plugin):
    """An editor or IDE that can open the workspace."""

    expected_type = PluginType.EDITOR

    @abstractmethod
    async def generate_workspace_file(
        self,
        repos: list[dict[str, str]],
        workspace_root: str | Path
    ) -> dict[str, str]:
        """Return {"file": ..., "content": ...} for the editor's workspace file."""
        pass


class OtherPlugin(Plugin):
    """A plugin with no kind-specific behaviour known to the core."""

    expected_type = PluginType.OTHER


@dataclass
class PluginPackage:
    """A bundle exporting several plugins with shared constraints."""
    metadata: PackageMetadata
    plugins: list[Plugin] = field(default_factory=list)
    requires: list[PluginRequirement] = field(default_factory=list)
    requires_languages: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginPackage":
        """Build a package from the dict form a module may export.

        Raises:
            pydantic.ValidationError: metadata or requirements are malformed
            TypeError: plugins is not a list
        """
        plugins = data.get("plugins")
        if not isinstance(plugins, list):
            raise TypeError("package 'plugins' must be a list")

        return cls(
            metadata=PackageMetadata.model_validate(data.get("metadata")),
            plugins=list(plugins),
            requires=[
                PluginRequirement.model_validate(r) if isinstance(r, dict) else PluginRequirement(plugin_id=r)
                for r in data.get("requires") or data.get("dependencies") or []
            ],
            requires_languages=list(data.get("requiresLanguages") or data.get("requires_languages") or []),
        )
