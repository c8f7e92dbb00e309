"""Command resolution.

Works out, for one repository, which command to run for a verb (test,
lint, start) and which tool should wrap it.

Command precedence, first match wins:

1. ``commands`` in the repository's baseline.project.json
2. ``commands`` on the package entry in baseline.json
3. nothing for ``start``; start commands are never guessed
4. the declared language plugins in order, or every language plugin whose
   detection matches when none are declared
"""

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from baseline.models.config import NormalizedPackage
from baseline.models.plugin import CommandDiscovery, CommandKind, CommandRunner, ProjectFile
from baseline.plugins.base import LanguagePlugin
from baseline.plugins.registry import PluginRegistry
from .logging import get_logger
from .project import ProjectConfigLoader

logger = get_logger("core.resolution")

DEFAULT_NODE_PACKAGE_MANAGER = "npm"


@dataclass
class ResolvedCommand:
    """A command plus the runner that wraps it."""
    kind: CommandKind
    command: Optional[str]
    runner: CommandRunner
    origin: str = "none"

    @property
    def found(self) -> bool:
        return self.command is not None

    def argv(self) -> list[str]:
        """Full argument vector, e.g. ["npm", "run", "test"]."""
        if self.command is None:
            return []
        return [*self.runner.prefix(), *shlex.split(self.command)]

    def display(self) -> str:
        return shlex.join(self.argv()) if self.command else "(none)"


class CommandResolver:
    """Resolves commands and runners against a populated registry.

    The registry is only read. Repository descriptors are never modified.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        workspace_root: str | Path,
        project_loader: Optional[ProjectConfigLoader] = None,
        default_package_manager: Optional[str] = None
    ):
        self.registry = registry
        self.workspace_root = Path(workspace_root)
        self.project_loader = project_loader or ProjectConfigLoader()
        self.default_package_manager = default_package_manager

    def repo_path(self, repo: NormalizedPackage) -> Path:
        return self.workspace_root / repo.path

    def _declared_language_plugins(self, repo: NormalizedPackage) -> list[LanguagePlugin]:
        plugins = []
        for language_id in repo.languages or []:
            plugin = self.registry.get(language_id)
            if isinstance(plugin, LanguagePlugin):
                plugins.append(plugin)
            else:
                logger.debug(f"No language plugin for {language_id} (declared by {repo.name})",
                             component="resolver", repo=repo.name)
        return plugins

    async def _detects(self, plugin: LanguagePlugin, repo_path: Path) -> bool:
        try:
            return bool(await plugin.detect_language(repo_path))
        except Exception as e:
            logger.warning(f"Language plugin {plugin.id} failed to detect {repo_path}: {e}",
                           component="resolver", plugin=plugin.id)
            return False

    async def _discover(
        self,
        plugin: LanguagePlugin,
        repo_path: Path,
        package_manager: Optional[str]
    ) -> Optional[CommandDiscovery]:
        try:
            return await plugin.discover_commands(repo_path, package_manager)
        except Exception as e:
            logger.warning(f"Language plugin {plugin.id} failed to discover commands in {repo_path}: {e}",
                           component="resolver", plugin=plugin.id)
            return None

    async def _find_command(self, repo: NormalizedPackage, kind: CommandKind) -> tuple[Optional[str], str]:
        repo_path = self.repo_path(repo)

        project_config = self.project_loader.load(repo_path)
        if project_config and project_config.commands and project_config.commands.get(kind):
            return project_config.commands.get(kind), "project"

        if repo.commands and repo.commands.get(kind):
            return repo.commands.get(kind), "workspace"

        if kind == CommandKind.START:
            return None, "none"

        if repo.languages:
            for plugin in self._declared_language_plugins(repo):
                discovery = await self._discover(plugin, repo_path, repo.package_manager)
                if discovery and discovery.get(kind):
                    return discovery.get(kind), plugin.id
        else:
            for plugin in self.registry.get_language_plugins():
                if not await self._detects(plugin, repo_path):
                    continue
                discovery = await self._discover(plugin, repo_path, None)
                if discovery and discovery.get(kind):
                    return discovery.get(kind), plugin.id

        return None, "none"

    async def discover_command(self, repo: NormalizedPackage, kind: CommandKind | str) -> Optional[str]:
        """The command for a verb, or None when nothing provides one."""
        kind = CommandKind(kind)
        command, origin = await self._find_command(repo, kind)
        logger.command_resolved(repo.name, kind.value, command, origin)
        return command

    async def _runner_from(
        self,
        plugin: LanguagePlugin,
        repo_path: Path,
        repo: NormalizedPackage,
        default_package_manager: str
    ) -> Optional[CommandRunner]:
        package_manager = default_package_manager if plugin.id == "node" else repo.package_manager
        try:
            return await plugin.get_command_runner(repo_path, package_manager)
        except Exception as e:
            logger.warning(f"Language plugin {plugin.id} failed to provide a runner: {e}",
                           component="resolver", plugin=plugin.id)
            return None

    async def get_command_runner(
        self,
        repo: NormalizedPackage,
        default_package_manager: Optional[str] = None
    ) -> CommandRunner:
        """The tool wrapping this repository's commands; direct when none."""
        if repo.package_manager:
            return CommandRunner(runner=repo.package_manager, args=["run"])

        default_pm = default_package_manager or self.default_package_manager or DEFAULT_NODE_PACKAGE_MANAGER
        repo_path = self.repo_path(repo)

        if repo.languages:
            candidates = self._declared_language_plugins(repo)
        else:
            candidates = [p for p in self.registry.get_language_plugins() if await self._detects(p, repo_path)]

        for plugin in candidates:
            runner = await self._runner_from(plugin, repo_path, repo, default_pm)
            if runner is not None:
                return runner

        if repo.languages and "node" in repo.languages:
            return CommandRunner(runner=default_pm, args=["run"])

        return CommandRunner.direct()

    async def resolve(self, repo: NormalizedPackage, kind: CommandKind | str) -> ResolvedCommand:
        kind = CommandKind(kind)
        command, origin = await self._find_command(repo, kind)
        logger.command_resolved(repo.name, kind.value, command, origin)
        # The runner is chosen per repository, not per command: in a repo that is
        # both node and python, a python test command still runs under npm.
        runner = await self.get_command_runner(repo) if command else CommandRunner.direct()
        return ResolvedCommand(kind=kind, command=command, runner=runner, origin=origin)

    async def detect_languages(self, repo_path: str | Path) -> list[str]:
        """Ids of every registered language whose detection matches."""
        return [
            plugin.id for plugin in self.registry.get_language_plugins()
            if await self._detects(plugin, Path(repo_path))
        ]

    async def get_project_files(self, repo: NormalizedPackage) -> list[ProjectFile]:
        """Project files of the repo's languages, deduplicated by path.

        Without declared languages only the first detected language counts.
        """
        if repo.languages:
            plugins = self._declared_language_plugins(repo)
        else:
            plugins = []
            repo_path = self.repo_path(repo)
            for plugin in self.registry.get_language_plugins():
                if await self._detects(plugin, repo_path) and plugin.get_project_files():
                    plugins = [plugin]
                    break

        files: dict[str, ProjectFile] = {}
        for plugin in plugins:
            for project_file in plugin.get_project_files():
                files.setdefault(project_file.path, project_file)
        return list(files.values())
