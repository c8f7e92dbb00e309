"""Plugin system for Baseline."""

from .base import (
    EditorPlugin,
    LanguagePlugin,
    OtherPlugin,
    PackageManagerPlugin,
    Plugin,
    PluginPackage,
    ProviderPlugin,
)
from .registry import PluginRegistry
from .loader import PluginLoader
from .discovery import DiscoveryReport, PluginDiscovery
from .installer import PluginInstaller, infer_source
from .index import IndexEntry, PluginIndex

__all__ = [
    "Plugin",
    "LanguagePlugin",
    "ProviderPlugin",
    "PackageManagerPlugin",
    "EditorPlugin",
    "OtherPlugin",
    "PluginPackage",
    "PluginRegistry",
    "PluginLoader",
    "PluginDiscovery",
    "DiscoveryReport",
    "PluginInstaller",
    "infer_source",
    "PluginIndex",
    "IndexEntry",
]
