"""Runs resolved commands across the repositories of a workspace."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from baseline.config import Settings, get_settings
from baseline.models.config import NormalizedPackage
from baseline.models.plugin import CommandKind
from baseline.plugins.registry import PluginRegistry
from baseline.utils.process import ProcessTimeout, run_process
from .errors import ConfigError
from .logging import get_logger
from .resolution import CommandResolver, ResolvedCommand
from .workspace import WorkspaceConfigManager, normalize_packages

logger = get_logger("core.executor")


class OutcomeStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """One command run inside a repository."""
    kind: CommandKind
    argv: list[str]
    return_code: Optional[int] = None
    duration_ms: float = 0.0
    error: Optional[str] = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.return_code == 0


@dataclass
class RepoOutcome:
    name: str
    status: OutcomeStatus
    steps: list[StepResult] = field(default_factory=list)
    reason: Optional[str] = None


@dataclass
class RunReport:
    """Aggregate result of running verbs across repositories."""
    outcomes: list[RepoOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def completed(self) -> int:
        return self._count(OutcomeStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def success(self) -> bool:
        return self.failed == 0


def filter_packages(packages: list[NormalizedPackage], filter_expr: Optional[str]) -> list[NormalizedPackage]:
    """Select packages by a comma-separated filter.

    Each term is ``tag=<tag>``, ``name=<name>``, ``library`` or a bare name;
    a package is kept when any term matches.
    """
    if not filter_expr:
        return list(packages)

    terms = [term.strip() for term in filter_expr.split(",") if term.strip()]

    def matches(repo: NormalizedPackage, term: str) -> bool:
        if term.startswith("tag="):
            return term[4:] in repo.tags
        if term.startswith("name="):
            return repo.name == term[5:]
        if term == "library":
            return repo.library
        return repo.name == term

    return [repo for repo in packages if any(matches(repo, term) for term in terms)]


class WorkspaceExecutor:
    """Runs lint/test (or any verbs) for every package in a workspace.

    Within a repository the verbs run in order and the first failure stops
    that repository. Repositories run one at a time, or concurrently up to
    the configured limit when ``parallel`` is set.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        workspace_root: str | Path,
        settings: Optional[Settings] = None,
        resolver: Optional[CommandResolver] = None,
        capture_output: bool = False
    ):
        self.registry = registry
        self.workspace_root = Path(workspace_root)
        self.settings = settings or get_settings()
        self.config_manager = WorkspaceConfigManager(self.workspace_root)
        self._resolver = resolver
        self.capture_output = capture_output

    def _get_resolver(self, default_package_manager: Optional[str]) -> CommandResolver:
        if self._resolver is None:
            self._resolver = CommandResolver(
                self.registry, self.workspace_root, default_package_manager=default_package_manager
            )
        return self._resolver

    def load_packages(self) -> tuple[list[NormalizedPackage], Optional[str]]:
        config = self.config_manager.load()
        if config is None:
            raise ConfigError(
                "No baseline workspace found",
                config_path=str(self.config_manager.config_path),
                suggestion="Run baseline from a directory containing baseline.json, or pass --workspace",
            )
        return normalize_packages(config), config.package_manager

    async def run(
        self,
        kinds: Iterable[CommandKind | str] = (CommandKind.LINT, CommandKind.TEST),
        filter: Optional[str] = None,
        parallel: bool = False,
        fail_fast: bool = False
    ) -> RunReport:
        """Run the given verbs in every selected repository.

        Raises:
            ConfigError: the workspace has no baseline.json
        """
        kinds = [CommandKind(kind) for kind in kinds]
        packages, default_pm = self.load_packages()
        packages = filter_packages(packages, filter)
        resolver = self._get_resolver(default_pm)

        report = RunReport()
        if not packages:
            logger.warning("No repositories match the filter", component="executor")
            return report

        if not parallel:
            for repo in packages:
                outcome = await self._run_repo(resolver, repo, kinds)
                report.outcomes.append(outcome)
                if fail_fast and outcome.status == OutcomeStatus.FAILED:
                    break
            return report

        semaphore = asyncio.Semaphore(max(1, self.settings.execution.concurrency))
        stop = asyncio.Event()

        async def bounded(repo: NormalizedPackage) -> RepoOutcome:
            async with semaphore:
                if stop.is_set():
                    return RepoOutcome(repo.name, OutcomeStatus.SKIPPED, reason="cancelled after failure")
                outcome = await self._run_repo(resolver, repo, kinds)
                if fail_fast and outcome.status == OutcomeStatus.FAILED:
                    stop.set()
                return outcome

        report.outcomes.extend(await asyncio.gather(*(bounded(repo) for repo in packages)))
        return report

    async def _run_repo(
        self,
        resolver: CommandResolver,
        repo: NormalizedPackage,
        kinds: list[CommandKind]
    ) -> RepoOutcome:
        repo_path = resolver.repo_path(repo)
        if not repo_path.exists():
            logger.warning(f"Skipping {repo.name} (not cloned)", component="executor", repo=repo.name)
            return RepoOutcome(repo.name, OutcomeStatus.SKIPPED, reason="not cloned")

        commands: list[tuple[CommandKind, str]] = []
        for kind in kinds:
            command = await resolver.discover_command(repo, kind)
            if command is None:
                logger.debug(f"No {kind.value} command for {repo.name}", component="executor", repo=repo.name)
                continue
            commands.append((kind, command))

        if not commands:
            names = " or ".join(kind.value for kind in kinds)
            return RepoOutcome(repo.name, OutcomeStatus.SKIPPED, reason=f"no {names} command")

        # One runner per repository
        runner = await resolver.get_command_runner(repo)
        outcome = RepoOutcome(repo.name, OutcomeStatus.PASSED)
        for kind, command in commands:
            item = ResolvedCommand(kind=kind, command=command, runner=runner)
            step = await self._run_step(item, repo_path, repo.name)
            outcome.steps.append(step)
            if not step.ok:
                outcome.status = OutcomeStatus.FAILED
                outcome.reason = step.error or f"{item.kind.value} failed with exit code {step.return_code}"
                break

        return outcome

    async def _run_step(self, item: ResolvedCommand, repo_path: Path, repo_name: str) -> StepResult:
        argv = item.argv()
        step = StepResult(kind=item.kind, argv=argv)
        timeout = self.settings.execution.command_timeout or None
        logger.info(f"{repo_name}: {item.display()}", component="executor", repo=repo_name)

        start = time.monotonic()
        try:
            result = await run_process(argv, cwd=repo_path, timeout=timeout, capture=self.capture_output)
            step.return_code = result.return_code
            step.output = result.stdout + result.stderr
        except ProcessTimeout:
            step.error = f"{item.kind.value} timed out after {timeout}s"
        except OSError as e:
            step.error = f"could not run {argv[0]}: {e.strerror or e}"
        step.duration_ms = (time.monotonic() - start) * 1000

        logger.debug(
            f"{repo_name} {item.kind.value} finished",
            component="executor",
            repo=repo_name,
            duration_ms=step.duration_ms,
            success=step.ok,
        )
        return step
