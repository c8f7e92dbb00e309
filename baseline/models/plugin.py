"""Plugin data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PluginType(str, Enum):
    """Closed set of plugin kinds."""
    LANGUAGE = "language"
    PROVIDER = "provider"
    PACKAGE_MANAGER = "package-manager"
    EDITOR = "editor"
    OTHER = "other"


class CommandKind(str, Enum):
    """Verbs whose commands can be resolved per repository."""
    TEST = "test"
    LINT = "lint"
    START = "start"


class PluginRequirement(BaseModel):
    """A plugin that must already be registered."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    plugin_id: str = Field(..., alias="pluginId", min_length=1)
    version: Optional[str] = Field(default=None, description="Version constraint (informational)")


class PluginMetadata(BaseModel):
    """Describes a plugin.

    This is the metadata about a plugin, not the implementation. It is
    frozen: the id and type of a registered plugin never change.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Unique plugin identifier, e.g. 'python'")
    name: str = Field(..., min_length=1, description="Display name")
    version: str = Field(default="1.0.0")
    type: PluginType
    description: Optional[str] = None
    author: Optional[str] = None
    baseline_version: Optional[str] = Field(
        default=None,
        alias="baselineVersion",
        description="Minimum host version, e.g. '>=0.2.0', '^1.0.0' or '0.4.0'"
    )
    requires: list[PluginRequirement] = Field(default_factory=list)
    requires_languages: list[str] = Field(default_factory=list, alias="requiresLanguages")


class PackageMetadata(BaseModel):
    """Metadata for a bundle exporting several plugins."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    description: Optional[str] = None
    author: Optional[str] = None
    baseline_version: Optional[str] = Field(default=None, alias="baselineVersion")


class CommandDiscovery(BaseModel):
    """Commands a language plugin found in a repository."""
    test: Optional[str] = None
    lint: Optional[str] = None
    start: Optional[str] = None

    def get(self, kind: CommandKind | str) -> Optional[str]:
        value = getattr(self, CommandKind(kind).value)
        return value or None

    def is_empty(self) -> bool:
        return not (self.test or self.lint or self.start)


class ProjectFile(BaseModel):
    """A file a language expects to find in a repository."""
    path: str
    required: bool = False
    description: Optional[str] = None


class VersionPolicy(BaseModel):
    """Version constraint for a toolchain tool."""
    min: Optional[str] = None
    max: Optional[str] = None
    exact: Optional[str] = None


class ToolchainTool(BaseModel):
    name: str
    version_policy: Optional[VersionPolicy] = None


class LanguageProfile(BaseModel):
    """Toolchain profile produced by a language plugin."""
    display_name: str
    toolchain: list[ToolchainTool] = Field(default_factory=list)
    project_markers: list[str] = Field(default_factory=list)


class LanguagePluginOptions(BaseModel):
    """Options passed to language plugins when building their profile."""
    package_manager: Optional[str] = None
    version_policies: dict[str, VersionPolicy] = Field(default_factory=dict)


class DetectionCommand(BaseModel):
    """How to ask a tool for its version."""
    command: str
    args: list[str] = Field(default_factory=list)


class CommandRunner(BaseModel):
    """Executable (plus prefix arguments) used to invoke a resolved command.

    A runner of None means the command is executed directly.
    """
    runner: Optional[str] = None
    args: list[str] = Field(default_factory=list)

    @classmethod
    def direct(cls) -> "CommandRunner":
        return cls(runner=None, args=[])

    @property
    def is_direct(self) -> bool:
        return self.runner is None

    def prefix(self) -> list[str]:
        if self.runner is None:
            return []
        return [self.runner, *self.args]


class DependencyCheck(BaseModel):
    """Outcome of a required-plugins or required-languages check."""
    satisfied: bool
    missing: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls) -> "DependencyCheck":
        return cls(satisfied=True)


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    INCOMPATIBLE = "incompatible"
    MISSING_DEPENDENCIES = "missing_dependencies"
    MISSING_LANGUAGES = "missing_languages"
    COLLISION = "collision"


class RegistrationResult(BaseModel):
    """What happened when a plugin went through the compatibility gate."""
    plugin_id: str
    source: str
    status: RegistrationStatus
    missing: list[str] = Field(default_factory=list)
    reason: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.status == RegistrationStatus.REGISTERED
