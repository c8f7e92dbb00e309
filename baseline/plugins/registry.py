"""Plugin registry.

Holds every plugin known to the process, keyed by id. Built-ins are
registered first while the registry is still trusted; once sealed, an id
that is already taken can never be replaced, so external plugins cannot
shadow built-ins.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Iterable, Optional

from baseline import __version__
from baseline.core.logging import get_logger
from baseline.models.plugin import (
    DependencyCheck,
    LanguagePluginOptions,
    LanguageProfile,
    PluginMetadata,
    PluginRequirement,
    PluginType,
    RegistrationResult,
    RegistrationStatus,
)
from .base import LanguagePlugin, Plugin, PluginPackage
from .builtin import register_builtin_plugins

if TYPE_CHECKING:
    from .discovery import PluginDiscovery

logger = get_logger("plugins.registry")

BUILTIN_SOURCE = "builtin"


class PluginRegistry:
    """In-memory map of plugin id to plugin.

    Construct one per process (or per test) and pass it to whatever needs
    it. Reads are synchronous; ``initialize`` is the only coroutine.
    """

    def __init__(self, host_version: str = __version__):
        self.host_version = host_version
        self._plugins: dict[str, Plugin] = {}
        self._sources: dict[str, str] = {}
        self._sealed = False
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def initialized(self) -> bool:
        return self._initialized

    def seal(self) -> None:
        """End the trusted phase. Later duplicates are rejected."""
        self._sealed = True

    def load_builtin_plugins(self) -> int:
        count = register_builtin_plugins(self)
        logger.debug(f"Registered {count} built-in plugins", component="registry")
        return count

    async def initialize(self, discovery: Optional["PluginDiscovery"] = None) -> None:
        """Load built-ins, seal, then run external discovery.

        Safe to call any number of times; only the first call does work.
        """
        async with self._init_lock:
            if self._initialized:
                return
            self.load_builtin_plugins()
            self.seal()
            if discovery is not None:
                await discovery.discover()
            self._initialized = True

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_plugin(candidate: Any) -> bool:
        """Structural check: a Plugin whose metadata agrees with its class."""
        if not isinstance(candidate, Plugin):
            return False
        try:
            metadata = candidate.metadata
        except Exception:
            return False
        if not isinstance(metadata, PluginMetadata):
            return False
        if not metadata.id or not metadata.name:
            return False
        if not isinstance(metadata.type, PluginType):
            return False
        expected = type(candidate).expected_type
        return expected is None or expected == metadata.type

    def register(self, plugin: Plugin, source: str = BUILTIN_SOURCE) -> bool:
        """Insert a plugin. Returns False when it was not inserted.

        Never raises: invalid plugins and collisions after sealing are
        logged and ignored.
        """
        if not self.is_valid_plugin(plugin):
            logger.warning(f"Ignoring invalid plugin object from {source}", component="registry", source=source)
            return False

        plugin_id = plugin.metadata.id
        if plugin_id in self._plugins:
            if self._sealed:
                logger.warning(
                    f"Plugin {plugin_id} is already registered from {self._sources[plugin_id]}, "
                    f"ignoring the one from {source}",
                    component="registry",
                    plugin=plugin_id,
                    source=source,
                )
                return False
            logger.warning(
                f"Plugin {plugin_id} is already registered, replacing it",
                component="registry",
                plugin=plugin_id,
                source=source,
            )

        self._plugins[plugin_id] = plugin
        self._sources[plugin_id] = source
        logger.plugin_registered(plugin_id, source)
        return True

    def check_host_version(self, min_version: Optional[str]) -> bool:
        """Whether the running baseline satisfies a plugin's minimum version.

        Deliberately simple: "^x"/"~x" compare major numbers only, ">=x"
        compares the version strings, anything else must match exactly.
        """
        if not min_version:
            return True

        try:
            host_major = int(self.host_version.split(".")[0])
        except ValueError:
            logger.debug(f"Cannot parse host version {self.host_version!r}, allowing {min_version}",
                         component="registry")
            return True

        if min_version.startswith(("^", "~")):
            try:
                required_major = int(min_version[1:].split(".")[0] or "0")
            except ValueError:
                return False
            return host_major >= required_major

        if min_version.startswith(">="):
            return self.host_version >= min_version[2:].strip()

        return self.host_version == min_version

    def check_required_plugins(self, requirements: Optional[Iterable[PluginRequirement | str]]) -> DependencyCheck:
        missing = []
        for requirement in requirements or []:
            plugin_id = requirement if isinstance(requirement, str) else requirement.plugin_id
            if plugin_id not in self._plugins and plugin_id not in missing:
                missing.append(plugin_id)
        return DependencyCheck(satisfied=not missing, missing=missing)

    def check_required_languages(self, language_ids: Optional[Iterable[str]]) -> DependencyCheck:
        missing = []
        for language_id in language_ids or []:
            plugin = self._plugins.get(language_id)
            if (plugin is None or plugin.metadata.type != PluginType.LANGUAGE) and language_id not in missing:
                missing.append(language_id)
        return DependencyCheck(satisfied=not missing, missing=missing)

    def _gate(
        self,
        plugin_id: str,
        source: str,
        min_version: Optional[str],
        requires: Iterable[PluginRequirement],
        requires_languages: Iterable[str],
        subject: str = "Plugin",
    ) -> Optional[RegistrationResult]:
        """Run the compatibility checks. Returns a rejection or None."""
        if not self.check_host_version(min_version):
            reason = f"requires baseline version {min_version} (running {self.host_version})"
            logger.plugin_rejected(plugin_id, reason, source)
            return RegistrationResult(
                plugin_id=plugin_id, source=source,
                status=RegistrationStatus.INCOMPATIBLE, reason=f"{subject} {reason}",
            )

        plugins_check = self.check_required_plugins(requires)
        if not plugins_check.satisfied:
            reason = f"requires missing plugins: {', '.join(plugins_check.missing)}"
            logger.plugin_rejected(plugin_id, reason, source)
            return RegistrationResult(
                plugin_id=plugin_id, source=source,
                status=RegistrationStatus.MISSING_DEPENDENCIES,
                missing=plugins_check.missing, reason=f"{subject} {reason}",
            )

        languages_check = self.check_required_languages(requires_languages)
        if not languages_check.satisfied:
            reason = f"requires missing languages: {', '.join(languages_check.missing)}"
            logger.plugin_rejected(plugin_id, reason, source)
            return RegistrationResult(
                plugin_id=plugin_id, source=source,
                status=RegistrationStatus.MISSING_LANGUAGES,
                missing=languages_check.missing, reason=f"{subject} {reason}",
            )

        return None

    def register_with_checks(self, plugin: Plugin, source: str) -> RegistrationResult:
        """Register a plugin only if it is compatible with this registry."""
        metadata = plugin.metadata
        rejection = self._gate(
            metadata.id, source, metadata.baseline_version, metadata.requires, metadata.requires_languages
        )
        if rejection is not None:
            return rejection

        if not self.register(plugin, source):
            return RegistrationResult(
                plugin_id=metadata.id,
                source=source,
                status=RegistrationStatus.COLLISION,
                reason=f"id {metadata.id} is already registered from {self._sources.get(metadata.id, 'unknown')}",
            )
        return RegistrationResult(plugin_id=metadata.id, source=source, status=RegistrationStatus.REGISTERED)

    def register_package(self, package: PluginPackage, source: str) -> list[RegistrationResult]:
        """Register every plugin of a package.

        Package-level constraints are checked once. If they fail, none of
        the package's plugins are registered and each gets the rejection.
        """
        rejection = self._gate(
            package.metadata.name,
            source,
            package.metadata.baseline_version,
            package.requires,
            package.requires_languages,
            subject="Package",
        )
        if rejection is not None:
            return [
                rejection.model_copy(update={"plugin_id": plugin.metadata.id})
                for plugin in package.plugins
            ]

        return [self.register_with_checks(plugin, source) for plugin in package.plugins]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, plugin_id: str) -> Optional[Plugin]:
        return self._plugins.get(plugin_id)

    def get_source(self, plugin_id: str) -> Optional[str]:
        """Where a registered plugin came from ("builtin", a path, ...)."""
        return self._sources.get(plugin_id)

    def get_by_type(self, plugin_type: PluginType | str) -> list[Plugin]:
        plugin_type = PluginType(plugin_type)
        return [p for p in self._plugins.values() if p.metadata.type == plugin_type]

    def get_language_plugins(self) -> list[LanguagePlugin]:
        return [p for p in self.get_by_type(PluginType.LANGUAGE) if isinstance(p, LanguagePlugin)]

    def get_language_profile(
        self,
        language_id: str,
        options: Optional[LanguagePluginOptions] = None
    ) -> Optional[LanguageProfile]:
        plugin = self._plugins.get(language_id)
        if not isinstance(plugin, LanguagePlugin):
            return None
        return plugin.get_language_profile(options)

    def all(self) -> list[Plugin]:
        return list(self._plugins.values())

    def ids(self) -> list[str]:
        return list(self._plugins)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
