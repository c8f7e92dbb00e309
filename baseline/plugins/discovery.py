"""External plugin discovery.

Runs once the built-ins are registered and the registry is sealed. Sources
are visited in a fixed order:

1. plugins declared in baseline.json ``plugins.dependencies`` (installed
   first when missing from the lock)
2. the installed-plugin cache, ``.baseline/.plugins/``
3. the user-managed directory, ``.baseline/plugins/``
4. the ``baseline.plugins`` entry-point group of installed distributions
5. plugins required by individual repositories

A failure in any one candidate is logged and never stops discovery.
"""

from dataclasses import dataclass, field
from importlib.metadata import entry_points
from pathlib import Path
from typing import Optional

from baseline.config import get_settings
from baseline.core.errors import BaselineError, PluginShapeError
from baseline.core.logging import get_logger
from baseline.core.project import ProjectConfigLoader
from baseline.core.workspace import STATE_DIR, WorkspaceConfigManager, normalize_packages
from baseline.models.config import WorkspaceConfig
from baseline.models.plugin import RegistrationResult
from .base import PluginPackage
from .installer import PluginInstaller
from .loader import ParsedExport, PluginLoader
from .registry import PluginRegistry

logger = get_logger("plugins.discovery")

ENTRY_POINT_GROUP = "baseline.plugins"
USER_PLUGIN_DIR = f"{STATE_DIR}/plugins"


@dataclass
class DiscoveryReport:
    """What one discovery run did."""
    loaded: list[str] = field(default_factory=list)
    rejected: list[RegistrationResult] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    installed: list[str] = field(default_factory=list)

    def add_results(self, results: list[RegistrationResult]) -> None:
        for result in results:
            if result.registered:
                self.loaded.append(result.plugin_id)
            else:
                self.rejected.append(result)


class PluginDiscovery:
    def __init__(
        self,
        registry: PluginRegistry,
        workspace_root: str | Path,
        installer: Optional[PluginInstaller] = None,
        loader: Optional[PluginLoader] = None,
        project_loader: Optional[ProjectConfigLoader] = None,
        entry_points_enabled: Optional[bool] = None,
    ):
        self.registry = registry
        self.workspace_root = Path(workspace_root)
        self.installer = installer or PluginInstaller(self.workspace_root)
        self.loader = loader or PluginLoader()
        self.project_loader = project_loader or ProjectConfigLoader()
        self.entry_points_enabled = (
            entry_points_enabled if entry_points_enabled is not None
            else get_settings().plugins.entry_points_enabled
        )
        self.report = DiscoveryReport()
        self._seen: set[Path] = set()

    @property
    def user_plugin_dir(self) -> Path:
        return self.workspace_root / USER_PLUGIN_DIR

    def _load_config(self) -> Optional[WorkspaceConfig]:
        try:
            return WorkspaceConfigManager(self.workspace_root).load()
        except BaselineError as e:
            logger.warning(f"Skipping declared plugins: {e.message}", component="discovery")
            return None

    def _installed_ids(self) -> set[str]:
        try:
            return set(self.installer.load_lock().plugins)
        except BaselineError as e:
            logger.warning(e.message, component="discovery")
            return set()

    async def discover(self) -> DiscoveryReport:
        config = self._load_config()

        if config is not None:
            await self.install_declared(config)

        self.load_directory(self.installer.plugin_dir)
        self.load_directory(self.user_plugin_dir)

        if self.entry_points_enabled:
            self.load_entry_points()

        if config is not None:
            await self.install_repo_required(config)

        logger.debug(
            f"Discovery finished: {len(self.report.loaded)} loaded, "
            f"{len(self.report.rejected)} rejected, {len(self.report.failed)} failed",
            component="discovery",
        )
        return self.report

    # ------------------------------------------------------------------
    # Installation of declared plugins
    # ------------------------------------------------------------------

    async def _install(self, plugin_id: str, spec, reason: str) -> bool:
        try:
            await self.installer.install(plugin_id, spec)
        except BaselineError as e:
            logger.warning(f"Failed to auto-install plugin {plugin_id}{reason}: {e.message}",
                           component="discovery", plugin=plugin_id)
            self.report.failed.append((plugin_id, e.message))
            return False
        self.report.installed.append(plugin_id)
        return True

    async def install_declared(self, config: WorkspaceConfig) -> None:
        installed = self._installed_ids()
        for plugin_id, spec in config.plugins.dependencies.items():
            if plugin_id in installed:
                continue
            logger.debug(f"Auto-installing plugin {plugin_id}", component="discovery", plugin=plugin_id)
            await self._install(plugin_id, spec, "")

    async def install_repo_required(self, config: WorkspaceConfig) -> None:
        """Install plugins named in each repository's baseline.project.json.

        Ids listed only in baseline.json ``requiredPlugins`` are not
        installed automatically; a warning tells the user how to add them.
        """
        for repo in normalize_packages(config):
            repo_path = self.workspace_root / repo.path
            project_config = self.project_loader.load(repo_path)

            if project_config is not None:
                for plugin_id, spec in project_config.required_plugins.items():
                    if plugin_id in self._installed_ids() or plugin_id in self.registry:
                        continue
                    logger.debug(f"Auto-installing plugin {plugin_id} required by {repo.name}",
                                 component="discovery", plugin=plugin_id, repo=repo.name)
                    if await self._install(plugin_id, spec, f" required by {repo.name}"):
                        self.load_directory(self.installer.plugin_dir)

            for plugin_id in repo.required_plugins:
                if plugin_id not in self._installed_ids() and plugin_id not in self.registry:
                    logger.warning(
                        f"Repository {repo.name} requires plugin {plugin_id} but it's not installed. "
                        f"Install it with: baseline plugin install {plugin_id}",
                        component="discovery",
                        plugin=plugin_id,
                        repo=repo.name,
                    )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def register_export(self, export: ParsedExport, source: str) -> list[RegistrationResult]:
        if isinstance(export, PluginPackage):
            results = self.registry.register_package(export, source)
        else:
            results = [self.registry.register_with_checks(export, source)]
        self.report.add_results(results)
        return results

    def load_candidate(self, candidate: Path) -> None:
        """Load and register one directory entry. Never raises."""
        candidate = candidate.absolute()
        if candidate in self._seen:
            return
        self._seen.add(candidate)

        entry = self.loader.resolve_entry(candidate)
        if entry is None:
            logger.debug(f"No plugin entry found in {candidate.name}", component="discovery")
            return

        try:
            export = self.loader.load(entry)
        except PluginShapeError as e:
            logger.warning(f"Plugin at {candidate} has an unrecognized shape, skipping",
                           component="discovery", source=str(candidate))
            self.report.failed.append((str(candidate), e.message))
            return
        except Exception as e:
            logger.warning(f"Failed to load plugin from {candidate}: {e}",
                           component="discovery", source=str(candidate))
            self.report.failed.append((str(candidate), str(e)))
            return

        self.register_export(export, str(candidate))

    def load_directory(self, directory: Path) -> None:
        if not directory.is_dir():
            return
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.warning(f"Failed to read plugins directory {directory}: {e}", component="discovery")
            return
        for entry in entries:
            self.load_candidate(entry)

    def load_entry_points(self) -> None:
        """Load plugins advertised by installed distributions."""
        try:
            discovered = entry_points(group=ENTRY_POINT_GROUP)
        except Exception as e:
            logger.debug(f"Failed to read entry points: {e}", component="discovery")
            return

        for ep in discovered:
            source = f"entry-point:{ep.name}"
            try:
                export = self.loader.parse_export(ep.load(), source=source)
            except PluginShapeError as e:
                logger.warning(f"Entry point {ep.name} has an unrecognized shape, skipping",
                               component="discovery", source=source)
                self.report.failed.append((source, e.message))
                continue
            except Exception as e:
                logger.warning(f"Failed to load entry point {ep.name}: {e}", component="discovery", source=source)
                self.report.failed.append((source, str(e)))
                continue
            self.register_export(export, source)
