"""Tests for CommandResolver."""

import json
from pathlib import Path

import pytest

from baseline.core.resolution import CommandResolver
from baseline.core.workspace import normalize_package
from baseline.models.config import PackageEntry
from baseline.models.plugin import CommandKind, CommandRunner, PluginMetadata, PluginType
from baseline.plugins.base import LanguagePlugin
from baseline.plugins.languages import PythonPlugin
from baseline.plugins.registry import PluginRegistry


def package_json(**scripts) -> str:
    return json.dumps({"name": "app", "scripts": scripts})


def repo(path: str = "api", **fields):
    return normalize_package(PackageEntry(name=path, path=path, **fields))


@pytest.fixture
def resolver(registry, temp_dir: Path) -> CommandResolver:
    return CommandResolver(registry, temp_dir)


def write(root: Path, files: dict[str, str]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


class TestCommandPrecedence:
    """Where a command comes from."""

    @pytest.mark.asyncio
    async def test_project_override_beats_discovery(self, resolver, temp_dir):
        write(temp_dir, {
            "api/package.json": package_json(lint="eslint ."),
            "api/baseline.project.json": json.dumps({"commands": {"lint": "custom-lint"}}),
        })

        assert await resolver.discover_command(repo(), "lint") == "custom-lint"

    @pytest.mark.asyncio
    async def test_project_override_beats_workspace(self, resolver, temp_dir):
        write(temp_dir, {"api/baseline.project.json": json.dumps({"commands": {"test": "from-project"}})})
        entry = repo(commands={"test": "from-workspace"})

        resolved = await resolver.resolve(entry, CommandKind.TEST)

        assert resolved.command == "from-project"
        assert resolved.origin == "project"

    @pytest.mark.asyncio
    async def test_workspace_override(self, resolver, temp_dir):
        write(temp_dir, {"api/go.mod": "module api\n"})
        entry = repo(commands={"test": "make test"})

        resolved = await resolver.resolve(entry, "test")

        assert resolved.command == "make test"
        assert resolved.origin == "workspace"
        # lint still comes from the language
        assert await resolver.discover_command(entry, "lint") == "go vet ./..."

    @pytest.mark.asyncio
    async def test_invalid_project_file_is_ignored(self, resolver, temp_dir):
        write(temp_dir, {
            "api/go.mod": "module api\n",
            "api/baseline.project.json": "{broken",
        })

        assert await resolver.discover_command(repo(), "test") == "go test ./..."

    @pytest.mark.asyncio
    async def test_start_never_guessed(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": package_json(start="node server.js", test="jest")})

        assert await resolver.discover_command(repo(), "start") is None
        resolved = await resolver.resolve(repo(), "start")
        assert not resolved.found
        assert resolved.argv() == []
        assert resolved.display() == "(none)"

    @pytest.mark.asyncio
    async def test_start_from_override(self, resolver, temp_dir):
        write(temp_dir, {"api/baseline.project.json": json.dumps({"commands": {"start": "make run"}})})

        assert await resolver.discover_command(repo(), "start") == "make run"

    @pytest.mark.asyncio
    async def test_nothing_found(self, resolver, temp_dir):
        (temp_dir / "api").mkdir()

        resolved = await resolver.resolve(repo(), "test")

        assert resolved.command is None
        assert resolved.origin == "none"
        assert resolved.runner.is_direct


class TestLanguageDiscovery:
    """Commands discovered by the built-in language plugins."""

    @pytest.mark.asyncio
    async def test_python_without_pytest(self, resolver, temp_dir):
        write(temp_dir, {"api/requirements.txt": "requests\n"})

        assert await resolver.discover_command(repo(), "test") == "python -m unittest discover"

    @pytest.mark.asyncio
    async def test_python_with_pytest(self, resolver, temp_dir):
        write(temp_dir, {"api/requirements.txt": "requests\npytest>=7\n"})

        assert await resolver.discover_command(repo(), "test") == "pytest"

    @pytest.mark.asyncio
    async def test_python_ruff_from_pyproject(self, resolver, temp_dir):
        write(temp_dir, {"api/pyproject.toml": "[project]\nname = 'api'\n\n[tool.ruff]\nline-length = 100\n"})

        assert await resolver.discover_command(repo(), "lint") == "ruff check ."

    @pytest.mark.asyncio
    async def test_node_script_names(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": package_json(test="jest", lint="eslint .")})

        resolved = await resolver.resolve(repo(), "lint")

        assert resolved.command == "lint"
        assert resolved.origin == "node"
        assert resolved.argv() == ["npm", "run", "lint"]

    @pytest.mark.asyncio
    async def test_declared_languages_restrict_discovery(self, resolver, temp_dir):
        write(temp_dir, {
            "api/package.json": package_json(test="jest"),
            "api/Cargo.toml": "[package]\nname = 'api'\n",
        })

        resolved = await resolver.resolve(repo(languages=["rust"]), "test")

        assert resolved.command == "cargo test"
        assert resolved.origin == "rust"

    @pytest.mark.asyncio
    async def test_declared_language_order(self, resolver, temp_dir):
        write(temp_dir, {
            "api/go.mod": "module api\n",
            "api/Cargo.toml": "[package]\nname = 'api'\n",
        })

        assert await resolver.discover_command(repo(languages=["rust", "go"]), "test") == "cargo test"
        assert await resolver.discover_command(repo(languages=["go", "rust"]), "test") == "go test ./..."

    @pytest.mark.asyncio
    async def test_unknown_declared_language(self, resolver, temp_dir):
        write(temp_dir, {"api/go.mod": "module api\n"})

        assert await resolver.discover_command(repo(languages=["cobol"]), "test") is None

    @pytest.mark.asyncio
    async def test_java_goals_with_build_tool(self, resolver, temp_dir):
        write(temp_dir, {"api/pom.xml": "<project/>"})

        resolved = await resolver.resolve(repo(), "lint")

        assert resolved.argv() == ["mvn", "checkstyle:check"]


class TestRunner:
    """Which tool wraps the resolved command."""

    @pytest.mark.asyncio
    async def test_explicit_package_manager(self, resolver, temp_dir):
        (temp_dir / "api").mkdir()
        runner = await resolver.get_command_runner(repo(package_manager="pnpm"))
        assert runner == CommandRunner(runner="pnpm", args=["run"])

    @pytest.mark.asyncio
    async def test_lockfile_beats_default(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": "{}", "api/yarn.lock": ""})

        runner = await resolver.get_command_runner(repo(), default_package_manager="pnpm")

        assert runner.prefix() == ["yarn", "run"]

    @pytest.mark.asyncio
    async def test_default_package_manager_for_node(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": "{}"})

        runner = await resolver.get_command_runner(repo(), default_package_manager="pnpm")

        assert runner.prefix() == ["pnpm", "run"]

    @pytest.mark.asyncio
    async def test_declared_node_falls_back_to_npm(self, resolver, temp_dir):
        (temp_dir / "api").mkdir()

        runner = await resolver.get_command_runner(repo(languages=["node"]))

        assert runner.prefix() == ["npm", "run"]

    @pytest.mark.asyncio
    async def test_python_uv_runner(self, resolver, temp_dir):
        write(temp_dir, {"api/pyproject.toml": "[tool.pytest.ini_options]\n", "api/uv.lock": ""})

        resolved = await resolver.resolve(repo(), "test")

        assert resolved.argv() == ["uv", "run", "pytest"]

    @pytest.mark.asyncio
    async def test_direct_when_no_runner(self, resolver, temp_dir):
        write(temp_dir, {"api/go.mod": "module api\n"})

        resolved = await resolver.resolve(repo(), "test")

        assert resolved.runner.is_direct
        assert resolved.argv() == ["go", "test", "./..."]
        assert resolved.display() == "go test ./..."

    @pytest.mark.asyncio
    async def test_mixed_repo_uses_node_runner_for_python_command(self, resolver, temp_dir):
        write(temp_dir, {
            "api/package.json": package_json(lint="eslint ."),
            "api/pyproject.toml": "[tool.pytest.ini_options]\n",
        })

        resolved = await resolver.resolve(repo(), "test")

        assert resolved.origin == "python"
        assert resolved.argv() == ["npm", "run", "pytest"]

    @pytest.mark.asyncio
    async def test_resolver_default_package_manager(self, registry, temp_dir):
        write(temp_dir, {"api/package.json": "{}"})
        resolver = CommandResolver(registry, temp_dir, default_package_manager="yarn")

        runner = await resolver.get_command_runner(repo())

        assert runner.prefix() == ["yarn", "run"]


class ExplodingLanguage(LanguagePlugin):
    metadata = PluginMetadata(id="exploding", name="Exploding", type=PluginType.LANGUAGE)

    def get_language_profile(self, options=None):
        return PythonPlugin().get_language_profile(options)

    async def detect_language(self, repo_path):
        raise RuntimeError("detector crashed")

    async def discover_commands(self, repo_path, package_manager=None):
        raise RuntimeError("discovery crashed")


class TestLanguageQueries:
    @pytest.mark.asyncio
    async def test_detect_languages(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": "{}", "api/go.mod": "module api\n"})

        assert await resolver.detect_languages(temp_dir / "api") == ["node", "go"]

    @pytest.mark.asyncio
    async def test_failing_plugin_is_skipped(self, temp_dir):
        registry = PluginRegistry()
        registry.register(ExplodingLanguage())
        registry.register(PythonPlugin())
        registry.seal()
        write(temp_dir, {"api/requirements.txt": ""})
        resolver = CommandResolver(registry, temp_dir)

        assert await resolver.detect_languages(temp_dir / "api") == ["python"]
        assert await resolver.discover_command(repo(), "test") == "python -m unittest discover"

    @pytest.mark.asyncio
    async def test_declared_failing_plugin(self, temp_dir):
        registry = PluginRegistry()
        registry.register(ExplodingLanguage())
        registry.seal()
        (temp_dir / "api").mkdir()
        resolver = CommandResolver(registry, temp_dir)

        assert await resolver.discover_command(repo(languages=["exploding"]), "test") is None

    @pytest.mark.asyncio
    async def test_project_files_declared(self, resolver, temp_dir):
        (temp_dir / "api").mkdir()

        files = await resolver.get_project_files(repo(languages=["go", "rust"]))

        assert [f.path for f in files] == ["go.mod", "go.sum", "Cargo.toml", "Cargo.lock"]

    @pytest.mark.asyncio
    async def test_project_files_first_detected_only(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": "{}", "api/go.mod": "module api\n"})

        files = await resolver.get_project_files(repo())

        paths = [f.path for f in files]
        assert "package.json" in paths
        assert "go.mod" not in paths

    @pytest.mark.asyncio
    async def test_project_files_deduplicated(self, temp_dir):
        class PyTwin(PythonPlugin):
            metadata = PluginMetadata(id="py-twin", name="Py Twin", type=PluginType.LANGUAGE)

        registry = PluginRegistry()
        registry.register(PythonPlugin())
        registry.register(PyTwin())
        (temp_dir / "api").mkdir()
        resolver = CommandResolver(registry, temp_dir)

        files = await resolver.get_project_files(repo(languages=["python", "py-twin"]))

        assert [f.path for f in files] == ["pyproject.toml", "requirements.txt", "setup.py"]

    @pytest.mark.asyncio
    async def test_repo_descriptor_not_modified(self, resolver, temp_dir):
        write(temp_dir, {"api/package.json": package_json(test="jest")})
        entry = repo()
        before = entry.model_dump()

        await resolver.resolve(entry, "test")

        assert entry.model_dump() == before
