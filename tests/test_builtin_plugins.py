"""Tests for the plugins that ship with baseline."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from baseline.core.errors import CommandError
from baseline.models.plugin import LanguagePluginOptions, VersionPolicy
from baseline.plugins.builtin import builtin_plugins
from baseline.plugins.editors import IntelliJEditor, SublimeEditor, VSCodeEditor
from baseline.plugins.languages import GoPlugin, JavaPlugin, NodePlugin, PythonPlugin, RustPlugin
from baseline.plugins.package_managers import CargoPlugin, GradlePlugin, MavenPlugin, NpmPlugin, PipPlugin, PnpmPlugin
from baseline.plugins.providers import BitbucketProvider, GitHubProvider, GitLabProvider
from baseline.plugins.registry import PluginRegistry
from baseline.utils.process import ProcessResult


def test_builtins_are_valid_and_unique():
    plugins = builtin_plugins()
    ids = [p.id for p in plugins]
    assert len(ids) == len(set(ids))
    assert all(PluginRegistry.is_valid_plugin(p) for p in plugins)


class TestNodePlugin:
    @pytest.mark.asyncio
    async def test_scripts_become_names(self, temp_dir: Path):
        (temp_dir / "package.json").write_text(json.dumps({"scripts": {"test": "jest", "build": "tsc"}}))

        discovery = await NodePlugin().discover_commands(temp_dir)

        assert discovery.test == "test"
        assert discovery.lint is None
        assert discovery.start is None

    @pytest.mark.asyncio
    async def test_no_scripts(self, temp_dir: Path):
        (temp_dir / "package.json").write_text(json.dumps({"name": "x"}))
        assert await NodePlugin().discover_commands(temp_dir) is None

    @pytest.mark.asyncio
    async def test_invalid_package_json(self, temp_dir: Path):
        (temp_dir / "package.json").write_text("{oops")
        assert await NodePlugin().discover_commands(temp_dir) is None

    @pytest.mark.parametrize("lockfile,expected", [
        ("pnpm-lock.yaml", "pnpm"),
        ("yarn.lock", "yarn"),
        ("package-lock.json", "npm"),
    ])
    def test_package_manager_from_lockfile(self, temp_dir: Path, lockfile, expected):
        (temp_dir / lockfile).write_text("")
        assert NodePlugin().detect_package_manager(temp_dir) == expected

    def test_profile_includes_package_manager(self):
        options = LanguagePluginOptions(package_manager="pnpm", version_policies={"node": VersionPolicy(min="20")})

        profile = NodePlugin().get_language_profile(options)

        assert [t.name for t in profile.toolchain] == ["node", "pnpm", "typescript"]
        assert profile.toolchain[0].version_policy.min == "20"


class TestPythonPlugin:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("files,lint", [
        ({"ruff.toml": ""}, "ruff check ."),
        ({".flake8": ""}, "flake8"),
        ({"setup.cfg": "[flake8]\nmax-line-length = 100\n"}, "flake8"),
        ({".pylintrc": ""}, "pylint ."),
        ({}, None),
    ])
    async def test_lint_detection(self, temp_dir: Path, files, lint):
        (temp_dir / "requirements.txt").write_text("")
        for name, content in files.items():
            (temp_dir / name).write_text(content)

        discovery = await PythonPlugin().discover_commands(temp_dir)

        assert discovery.lint == lint

    @pytest.mark.asyncio
    async def test_pytest_from_setup_cfg(self, temp_dir: Path):
        (temp_dir / "setup.cfg").write_text("[tool:pytest]\ntestpaths = tests\n")
        assert (await PythonPlugin().discover_commands(temp_dir)).test == "pytest"

    @pytest.mark.asyncio
    async def test_not_a_python_repo(self, temp_dir: Path):
        assert not await PythonPlugin().detect_language(temp_dir)
        assert await PythonPlugin().discover_commands(temp_dir) is None

    @pytest.mark.asyncio
    async def test_poetry_runner(self, temp_dir: Path):
        (temp_dir / "poetry.lock").write_text("")
        runner = await PythonPlugin().get_command_runner(temp_dir)
        assert runner.prefix() == ["poetry", "run"]


class TestOtherLanguages:
    @pytest.mark.asyncio
    async def test_go_with_golangci(self, temp_dir: Path):
        (temp_dir / "go.mod").write_text("module x\n")
        (temp_dir / ".golangci.yml").write_text("")
        discovery = await GoPlugin().discover_commands(temp_dir)
        assert discovery.lint == "golangci-lint run"

    @pytest.mark.asyncio
    async def test_rust(self, temp_dir: Path):
        (temp_dir / "Cargo.toml").write_text("")
        assert await RustPlugin().detect_language(temp_dir)
        discovery = await RustPlugin().discover_commands(temp_dir)
        assert (discovery.test, discovery.lint) == ("cargo test", "cargo clippy")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("marker,runner,lint", [
        ("pom.xml", "mvn", "checkstyle:check"),
        ("build.gradle.kts", "gradle", "check"),
        ("build.xml", "ant", None),
    ])
    async def test_java_build_tools(self, temp_dir: Path, marker, runner, lint):
        (temp_dir / marker).write_text("")
        plugin = JavaPlugin()

        assert (await plugin.get_command_runner(temp_dir)).runner == runner
        discovery = await plugin.discover_commands(temp_dir)
        assert discovery.test == "test"
        assert discovery.lint == lint

    @pytest.mark.asyncio
    async def test_java_without_build_tool(self, temp_dir: Path):
        assert await JavaPlugin().get_command_runner(temp_dir) is None
        assert await JavaPlugin().discover_commands(temp_dir) is None

    def test_detection_commands(self):
        assert GoPlugin().get_detection_command("go").args == ["version"]
        assert JavaPlugin().get_detection_command("java").args == ["-version"]
        assert RustPlugin().get_detection_command("clippy") is None


class TestPackageManagers:
    @pytest.fixture
    def repos(self, temp_dir: Path):
        for name, marker in (("web", "package.json"), ("api", "Cargo.toml"), ("svc", "pom.xml"),
                             ("app", "build.gradle")):
            (temp_dir / name).mkdir()
            (temp_dir / name / marker).write_text("{}")
        return [{"name": n, "path": n} for n in ("web", "api", "svc", "app", "docs")]

    @pytest.mark.asyncio
    async def test_npm_keeps_existing_root_fields(self, temp_dir: Path, repos):
        (temp_dir / "package.json").write_text(json.dumps({"name": "mono", "scripts": {"x": "y"}}))

        result = await NpmPlugin().create_workspace_config(repos, temp_dir)

        content = json.loads(result["content"])
        assert result["file"] == "package.json"
        assert content["name"] == "mono"
        assert content["scripts"] == {"x": "y"}
        assert content["private"] is True
        assert content["workspaces"] == ["web"]

    @pytest.mark.asyncio
    async def test_pnpm_workspace_yaml(self, temp_dir: Path, repos):
        result = await PnpmPlugin().create_workspace_config(repos, temp_dir)
        assert result == {"file": "pnpm-workspace.yaml", "content": 'packages:\n  - "web"\n'}

    @pytest.mark.asyncio
    async def test_cargo_workspace(self, temp_dir: Path, repos):
        result = await CargoPlugin().create_workspace_config(repos, temp_dir)
        assert result["content"] == '[workspace]\nmembers = [\n  "api",\n]\n'

    @pytest.mark.asyncio
    async def test_maven_and_gradle(self, temp_dir: Path, repos):
        maven = await MavenPlugin().create_workspace_config(repos, temp_dir)
        gradle = await GradlePlugin().create_workspace_config(repos, temp_dir)

        assert "<module>svc</module>" in maven["content"]
        assert 'include "app"' in gradle["content"]

    @pytest.mark.asyncio
    async def test_no_members(self, temp_dir: Path):
        assert await NpmPlugin().create_workspace_config([{"name": "x", "path": "x"}], temp_dir) is None
        assert await PipPlugin().create_workspace_config([{"name": "x", "path": "x"}], temp_dir) is None

    @pytest.mark.parametrize("plugin,output,expected", [
        (PipPlugin(), "pip 24.0 from /usr/lib/python3/site-packages/pip (python 3.12)", "24.0"),
        (CargoPlugin(), "cargo 1.78.0 (54d8815d0 2024-03-26)", "1.78.0"),
        (MavenPlugin(), "Apache Maven 3.9.6 (bc0240f3)", "3.9.6"),
        (GradlePlugin(), "\n------\nGradle 8.7\n------", "8.7"),
        (NpmPlugin(), "10.5.0", "10.5.0"),
    ])
    def test_parse_version(self, plugin, output, expected):
        assert plugin.parse_version(output) == expected

    @pytest.mark.asyncio
    async def test_not_installed(self):
        with patch("baseline.plugins.base.run_process", new=AsyncMock(side_effect=FileNotFoundError)):
            assert not await NpmPlugin().is_installed()

    def test_requires_languages(self, registry):
        assert registry.get("cargo").metadata.requires_languages == ["rust"]

    @pytest.mark.parametrize("plugin_id,install,run", [
        ("npm", "npm install", ["npm", "run"]),
        ("pnpm", "pnpm install", ["pnpm", "run"]),
        ("yarn", "yarn install", ["yarn", "run"]),
        ("pip", "pip install -r requirements.txt", ["python", "-m"]),
        ("cargo", "cargo build", ["cargo", "run", "--"]),
        ("maven", "mvn install", ["mvn"]),
        ("gradle", "gradle build", ["gradle"]),
    ])
    def test_install_and_run_commands(self, registry, plugin_id, install, run):
        plugin = registry.get(plugin_id)
        assert plugin.get_install_command() == install
        assert plugin.get_run_command() == run


class TestProviders:
    @pytest.mark.parametrize("provider,url,expected", [
        (GitHubProvider(), "https://github.com/acme/api.git", True),
        (GitHubProvider(), "github.com/acme/api", True),
        (GitHubProvider(), "https://gitlab.com/acme/api", False),
        (GitLabProvider(), "https://gitlab.com/acme/api", True),
        (BitbucketProvider(), "https://www.bitbucket.org/acme/api.git", True),
        (BitbucketProvider(), "https://bitbucket.org/acme", False),
    ])
    def test_matches_url(self, provider, url, expected):
        assert provider.matches_url(url) is expected

    def test_git_url(self):
        assert GitLabProvider().get_git_url("acme", "api") == "https://gitlab.com/acme/api.git"
        assert GitHubProvider().get_repo_url_pattern() == "github.com/**"

    @pytest.mark.asyncio
    async def test_create_pull_request(self, temp_dir: Path):
        calls = []

        async def fake(args, cwd=None, timeout=None, **kwargs):
            calls.append(args)
            return ProcessResult(args=args, return_code=0, stdout="https://github.com/acme/api/pull/7\n")

        with patch("baseline.plugins.providers.run_process", new=fake):
            url = await GitHubProvider().create_pull_request(temp_dir, "Fix", "main", "fix", draft=True)

        assert url == "https://github.com/acme/api/pull/7"
        assert calls[1] == ["gh", "pr", "create", "--title", "Fix", "--base", "main", "--head", "fix", "--draft"]

    @pytest.mark.asyncio
    async def test_missing_cli(self, temp_dir: Path):
        with patch("baseline.plugins.providers.run_process", new=AsyncMock(side_effect=FileNotFoundError)):
            with pytest.raises(CommandError) as exc_info:
                await GitLabProvider().create_pull_request(temp_dir, "Fix", "main", "fix")

        assert "glab" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_failed_pull_request(self, temp_dir: Path):
        results = [ProcessResult(args=[], return_code=0), ProcessResult(args=[], return_code=1, stderr="no remote")]

        with patch("baseline.plugins.providers.run_process", new=AsyncMock(side_effect=results)):
            with pytest.raises(CommandError) as exc_info:
                await BitbucketProvider().create_pull_request(temp_dir, "Fix", "main", "fix", draft=True)

        assert exc_info.value.exit_code == 1
        assert "--draft" not in exc_info.value.command


class TestEditors:
    REPOS = [{"name": "api", "path": "packages/api"}, {"name": "web & ui", "path": "packages/web"}]

    @pytest.mark.asyncio
    async def test_vscode(self, temp_dir: Path):
        result = await VSCodeEditor().generate_workspace_file(self.REPOS, temp_dir)

        assert result["file"] == "workspace.code-workspace"
        folders = json.loads(result["content"])["folders"]
        assert folders[0] == {"name": "api", "path": "packages/api"}

    @pytest.mark.asyncio
    async def test_sublime(self, temp_dir: Path):
        result = await SublimeEditor().generate_workspace_file(self.REPOS, temp_dir)
        assert result["file"] == "baseline.sublime-project"
        assert len(json.loads(result["content"])["folders"]) == 2

    @pytest.mark.asyncio
    async def test_intellij(self, temp_dir: Path):
        result = await IntelliJEditor().generate_workspace_file(self.REPOS, temp_dir)

        assert result["file"] == ".idea/modules.xml"
        assert 'filepath="packages/web"' in result["content"]
        assert 'fileurl="file://packages/api"' in result["content"]
