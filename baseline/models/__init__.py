"""Data models for Baseline."""

from .plugin import (
    CommandDiscovery,
    CommandKind,
    CommandRunner,
    DependencyCheck,
    LanguagePluginOptions,
    LanguageProfile,
    PackageMetadata,
    PluginMetadata,
    PluginRequirement,
    PluginType,
    ProjectFile,
    RegistrationResult,
    RegistrationStatus,
)
from .config import (
    NormalizedPackage,
    PackageEntry,
    PluginDependency,
    PluginSource,
    ProjectConfig,
    RepoCommands,
    WorkspaceConfig,
)
from .lock import InstalledPlugin, PluginLock, LOCK_VERSION

__all__ = [
    "CommandDiscovery",
    "CommandKind",
    "CommandRunner",
    "DependencyCheck",
    "LanguagePluginOptions",
    "LanguageProfile",
    "PackageMetadata",
    "PluginMetadata",
    "PluginRequirement",
    "PluginType",
    "ProjectFile",
    "RegistrationResult",
    "RegistrationStatus",
    "NormalizedPackage",
    "PackageEntry",
    "PluginDependency",
    "PluginSource",
    "ProjectConfig",
    "RepoCommands",
    "WorkspaceConfig",
    "InstalledPlugin",
    "PluginLock",
    "LOCK_VERSION",
]
