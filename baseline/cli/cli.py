"""Baseline CLI - run the same verbs across every repository of a workspace.

Usage:
    baseline test                     - Lint then test every repository
    baseline lint                     - Lint every repository
    baseline commands                 - Show resolved commands per repository
    baseline languages PATH           - Detect the languages of a directory
    baseline plugin install ID        - Install an external plugin
    baseline plugin list              - List registered and installed plugins
    baseline plugin remove ID         - Remove an installed plugin
    baseline plugin search QUERY      - Search the plugin index
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from baseline import __version__
from baseline.config import get_settings
from baseline.core.errors import BaselineError
from baseline.core.executor import OutcomeStatus, RunReport, WorkspaceExecutor, filter_packages
from baseline.core.logging import setup_logging
from baseline.core.resolution import CommandResolver
from baseline.core.workspace import WorkspaceConfigManager
from baseline.models.config import PluginDependency, PluginSource
from baseline.models.plugin import CommandKind
from baseline.plugins.discovery import PluginDiscovery
from baseline.plugins.index import PluginIndex
from baseline.plugins.installer import PluginInstaller
from baseline.plugins.registry import PluginRegistry


def _run(coro):
    """Run a coroutine, turning baseline errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except BaselineError as e:
        click.echo(e.format_user_friendly(), err=True)
        sys.exit(1)


async def _load_registry(workspace_root: Path) -> PluginRegistry:
    registry = PluginRegistry()
    await registry.initialize(PluginDiscovery(registry, workspace_root))
    return registry


@click.group()
@click.version_option(version=__version__, prog_name="baseline")
@click.option("--workspace", "-w", type=click.Path(file_okay=False, path_type=Path),
              help="Workspace root (default: nearest directory with baseline.json)")
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, workspace: Optional[Path], verbose: bool):
    """Baseline - one workspace, many repositories, many languages.

    Resolves test, lint and start commands for each repository through
    language plugins, and manages external plugins.
    """
    settings = get_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log.level,
        format_type=settings.log.format,
        log_dir=settings.log.log_dir,
    )

    root = workspace or WorkspaceConfigManager.find_workspace_root() or Path.cwd()
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = root.resolve()


# ----------------------------------------------------------------------
# Running verbs
# ----------------------------------------------------------------------

def _print_report(report: RunReport, verb: str) -> None:
    for outcome in report.outcomes:
        if outcome.status == OutcomeStatus.PASSED:
            click.echo(f"✓ {outcome.name}")
        elif outcome.status == OutcomeStatus.FAILED:
            click.echo(f"✗ {outcome.name}: {outcome.reason}", err=True)
        else:
            click.echo(f"- {outcome.name} skipped ({outcome.reason})")

    click.echo(
        f"\n{verb}: {report.completed} passed, {report.failed} failed, {report.skipped} skipped"
    )


async def _run_verbs(workspace_root: Path, kinds: list[CommandKind], filter_expr, parallel, fail_fast) -> RunReport:
    registry = await _load_registry(workspace_root)
    executor = WorkspaceExecutor(registry, workspace_root)
    return await executor.run(kinds, filter=filter_expr, parallel=parallel, fail_fast=fail_fast)


def _verb_options(func):
    func = click.option("--fail-fast", is_flag=True, help="Stop after the first failing repository")(func)
    func = click.option("--parallel", "-p", is_flag=True, help="Run repositories concurrently")(func)
    func = click.option("--filter", "-f", "filter_expr", help="tag=<tag>, name=<name>, library or a name")(func)
    return func


@cli.command()
@_verb_options
@click.pass_context
def test(ctx: click.Context, filter_expr: Optional[str], parallel: bool, fail_fast: bool):
    """Run lint then test in every repository."""
    report = _run(_run_verbs(ctx.obj["workspace"], [CommandKind.LINT, CommandKind.TEST],
                             filter_expr, parallel, fail_fast))
    _print_report(report, "Tests")
    if not report.success:
        sys.exit(1)


@cli.command()
@_verb_options
@click.pass_context
def lint(ctx: click.Context, filter_expr: Optional[str], parallel: bool, fail_fast: bool):
    """Run lint in every repository."""
    report = _run(_run_verbs(ctx.obj["workspace"], [CommandKind.LINT], filter_expr, parallel, fail_fast))
    _print_report(report, "Lint")
    if not report.success:
        sys.exit(1)


@cli.command()
@click.option("--filter", "-f", "filter_expr", help="tag=<tag>, name=<name>, library or a name")
@click.pass_context
def commands(ctx: click.Context, filter_expr: Optional[str]):
    """Show the resolved commands and runner of each repository."""
    workspace_root = ctx.obj["workspace"]

    async def _resolve_all() -> list[tuple[str, dict[str, str]]]:
        manager = WorkspaceConfigManager(workspace_root)
        config = manager.load()
        if config is None:
            raise BaselineError("No baseline workspace found", suggestion="Pass --workspace or create baseline.json")

        registry = await _load_registry(workspace_root)
        resolver = CommandResolver(registry, workspace_root, default_package_manager=config.package_manager)
        rows = []
        for repo in filter_packages(manager.get_packages(config), filter_expr):
            runner = await resolver.get_command_runner(repo)
            row = {"runner": " ".join(runner.prefix()) or "(direct)"}
            for kind in CommandKind:
                row[kind.value] = await resolver.discover_command(repo, kind) or "-"
            rows.append((repo.name, row))
        return rows

    for name, row in _run(_resolve_all()):
        click.echo(name)
        for key in ("test", "lint", "start", "runner"):
            click.echo(f"  {key + ':':8} {row[key]}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.pass_context
def languages(ctx: click.Context, path: Path):
    """Detect the languages of a directory."""
    async def _detect() -> list[str]:
        registry = await _load_registry(ctx.obj["workspace"])
        return await CommandResolver(registry, ctx.obj["workspace"]).detect_languages(path)

    detected = _run(_detect())
    if not detected:
        click.echo("No languages detected.")
        return
    for language_id in detected:
        click.echo(language_id)


# ----------------------------------------------------------------------
# Plugin management
# ----------------------------------------------------------------------

@cli.group()
def plugin():
    """Manage external plugins."""
    pass


@plugin.command("install")
@click.argument("plugin_id")
@click.option("--version", "version", help="Version, tag or constraint")
@click.option("--source", type=click.Choice([s.value for s in PluginSource]), help="Where to fetch from")
@click.option("--url", help="Git URL, download URL or PyPI distribution name")
@click.option("--path", "local_path", help="Local plugin file or directory")
@click.option("--no-save", is_flag=True, help="Do not add the plugin to baseline.json")
@click.pass_context
def plugin_install(ctx: click.Context, plugin_id: str, version, source, url, local_path, no_save: bool):
    """Install an external plugin."""
    workspace_root = ctx.obj["workspace"]
    spec = PluginDependency(
        version=version,
        source=PluginSource(source) if source else None,
        url=url,
        path=local_path,
    )

    record = _run(PluginInstaller(workspace_root).install(plugin_id, spec))
    click.echo(f"✓ Installed {record.id}@{record.version} ({record.source.value})")

    if no_save:
        return

    manager = WorkspaceConfigManager(workspace_root)
    try:
        config = manager.load()
        if config is None:
            click.echo("No baseline.json found; the plugin was not added to the workspace config.")
            return
        config.plugins.dependencies[plugin_id] = spec
        manager.save(config)
    except BaselineError as e:
        click.echo(e.format_user_friendly(), err=True)
        sys.exit(1)
    click.echo(f"Added {plugin_id} to baseline.json")


@plugin.command("list")
@click.pass_context
def plugin_list(ctx: click.Context):
    """List registered and installed plugins."""
    workspace_root = ctx.obj["workspace"]
    registry = _run(_load_registry(workspace_root))

    click.echo("Registered plugins:")
    for item in registry.all():
        meta = item.metadata
        click.echo(f"  {meta.id:16} {meta.type.value:16} {meta.version:10} {registry.get_source(meta.id)}")

    try:
        installed = PluginInstaller(workspace_root).list_installed()
    except BaselineError as e:
        click.echo(e.format_user_friendly(), err=True)
        sys.exit(1)

    click.echo("\nInstalled plugins:")
    if not installed:
        click.echo("  (none)")
    for record in installed:
        click.echo(f"  {record.id:16} {record.version:10} {record.source.value:8} {record.location}")


@plugin.command("remove")
@click.argument("plugin_id")
@click.option("--keep-config", is_flag=True, help="Keep the entry in baseline.json")
@click.pass_context
def plugin_remove(ctx: click.Context, plugin_id: str, keep_config: bool):
    """Remove an installed plugin."""
    workspace_root = ctx.obj["workspace"]
    try:
        PluginInstaller(workspace_root).remove(plugin_id)
        if not keep_config:
            manager = WorkspaceConfigManager(workspace_root)
            config = manager.load()
            if config is not None and plugin_id in config.plugins.dependencies:
                del config.plugins.dependencies[plugin_id]
                manager.save(config)
    except BaselineError as e:
        click.echo(e.format_user_friendly(), err=True)
        sys.exit(1)
    click.echo(f"✓ Removed plugin {plugin_id}")


@plugin.command("search")
@click.argument("query")
@click.pass_context
def plugin_search(ctx: click.Context, query: str):
    """Search the plugin index."""
    entries = _run(PluginIndex(ctx.obj["workspace"]).search(query))
    if not entries:
        click.echo(f"No plugins found for '{query}'.")
        return
    for entry in entries:
        click.echo(f"{entry.id} {entry.version or ''}".rstrip())
        if entry.description:
            click.echo(f"  {entry.description}")
        click.echo(f"  Install: baseline plugin install {entry.id}"
                   + (f" --url {entry.url}" if entry.url else ""))


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
