"""Workspace configuration models.

Mirrors baseline.json (workspace level) and baseline.project.json
(per repository). Unknown keys are ignored so newer files still load.
"""

from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from .plugin import CommandKind


class PluginSource(str, Enum):
    """Where an external plugin is fetched from."""
    PYPI = "pypi"
    GIT = "git"
    LOCAL = "local"
    REMOTE = "remote"


class PluginDependency(BaseModel):
    """Source spec for an external plugin."""
    version: Optional[str] = None
    source: Optional[PluginSource] = None
    url: Optional[str] = Field(default=None, description="Git URL, download URL or PyPI distribution name")
    path: Optional[str] = Field(default=None, description="Local plugin path")


class RepoCommands(BaseModel):
    test: Optional[str] = None
    lint: Optional[str] = None
    start: Optional[str] = None

    def get(self, kind: CommandKind | str) -> Optional[str]:
        return getattr(self, CommandKind(kind).value) or None


class ProjectConfig(BaseModel):
    """Contents of a repository's baseline.project.json."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    library: Optional[bool] = None
    commands: Optional[RepoCommands] = None
    required_plugins: dict[str, PluginDependency] = Field(default_factory=dict, alias="requiredPlugins")


class PackageEntry(BaseModel):
    """Object form of a package entry in baseline.json."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    git_url: Optional[str] = Field(default=None, alias="gitUrl")
    version: Optional[str] = None
    path: Optional[str] = None
    default_branch: Optional[str] = Field(default=None, alias="defaultBranch")
    tags: list[str] = Field(default_factory=list)
    languages: Optional[list[str]] = None
    package_manager: Optional[str] = Field(default=None, alias="packageManager")
    library: bool = False
    commands: Optional[RepoCommands] = None
    required_plugins: list[str] = Field(default_factory=list, alias="requiredPlugins")


class PluginsSection(BaseModel):
    enabled: list[str] = Field(default_factory=list)
    config: dict[str, dict] = Field(default_factory=dict)
    dependencies: dict[str, PluginDependency] = Field(default_factory=dict)


class WorkspaceConfig(BaseModel):
    """Contents of baseline.json."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    version: Optional[str] = None
    packages: list[Union[str, PackageEntry]] = Field(default_factory=list)
    repos: Optional[list[Union[str, PackageEntry]]] = Field(default=None, description="Legacy alias for packages")
    languages: dict[str, str] = Field(default_factory=dict, description="Tool -> version policy string")
    package_manager: Optional[str] = Field(default=None, alias="packageManager")
    editor: Optional[Union[str, list[str]]] = None
    plugins: PluginsSection = Field(default_factory=PluginsSection)

    def get_packages(self) -> list[Union[str, PackageEntry]]:
        return self.packages or self.repos or []


class NormalizedPackage(BaseModel):
    """Repository descriptor consumed by the resolver. Never mutated there."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    path: str
    location: Optional[str] = None
    version: Optional[str] = None
    default_branch: str = "main"
    tags: list[str] = Field(default_factory=list)
    languages: Optional[list[str]] = None
    package_manager: Optional[str] = None
    library: bool = False
    commands: Optional[RepoCommands] = None
    required_plugins: list[str] = Field(default_factory=list)
