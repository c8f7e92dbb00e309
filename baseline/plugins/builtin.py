"""The plugins that ship with baseline."""

from typing import TYPE_CHECKING

from .base import Plugin
from .editors import BUILTIN_EDITOR_PLUGINS
from .languages import BUILTIN_LANGUAGE_PLUGINS
from .package_managers import BUILTIN_PACKAGE_MANAGER_PLUGINS
from .providers import BUILTIN_PROVIDER_PLUGINS

if TYPE_CHECKING:
    from .registry import PluginRegistry


def builtin_plugins() -> list[Plugin]:
    """Fresh instances of every built-in plugin, languages first."""
    classes = [
        *BUILTIN_LANGUAGE_PLUGINS,
        *BUILTIN_PROVIDER_PLUGINS,
        *BUILTIN_PACKAGE_MANAGER_PLUGINS,
        *BUILTIN_EDITOR_PLUGINS,
    ]
    return [cls() for cls in classes]


def register_builtin_plugins(registry: "PluginRegistry") -> int:
    """Register all built-ins. Returns how many were registered."""
    count = 0
    for plugin in builtin_plugins():
        if registry.register(plugin):
            count += 1
    return count
