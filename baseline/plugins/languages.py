"""Built-in language plugins.

When a language also supplies a command runner, the commands it discovers
are arguments for that runner (a package.json script name for node, a build
goal for java), not full command lines.
"""

import json
import tomllib
from pathlib import Path
from typing import Any, Optional

from baseline.models.plugin import (
    CommandDiscovery,
    CommandRunner,
    DetectionCommand,
    LanguagePluginOptions,
    LanguageProfile,
    PluginMetadata,
    PluginType,
    ProjectFile,
    ToolchainTool,
)
from .base import LanguagePlugin


def _read_json(path: Path) -> Optional[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def _section_in(path: Path, header: str) -> bool:
    """True when an ini-style file contains the given [section] header."""
    try:
        return f"[{header}]" in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def _tools(names: list[str], options: Optional[LanguagePluginOptions]) -> list[ToolchainTool]:
    policies = options.version_policies if options else {}
    return [ToolchainTool(name=n, version_policy=policies.get(n)) for n in names]


class NodePlugin(LanguagePlugin):
    """Node.js / TypeScript / JavaScript with npm, pnpm or yarn."""

    metadata = PluginMetadata(
        id="node",
        name="Node.js / TypeScript / JavaScript",
        version="1.0.0",
        type=PluginType.LANGUAGE,
        description="Node.js, TypeScript, and JavaScript support with npm/pnpm/yarn package managers",
    )

    LOCKFILES = (
        ("pnpm-lock.yaml", "pnpm"),
        ("yarn.lock", "yarn"),
        ("package-lock.json", "npm"),
    )

    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        names = ["node"]
        if options and options.package_manager:
            names.append(options.package_manager)
        names.append("typescript")
        return LanguageProfile(
            display_name="Node.js / TypeScript / JavaScript",
            toolchain=_tools(names, options),
            project_markers=["package.json", "tsconfig.json"],
        )

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        commands = {
            "node": DetectionCommand(command="node", args=["--version"]),
            "typescript": DetectionCommand(command="tsc", args=["--version"]),
            "npm": DetectionCommand(command="npm", args=["--version"]),
            "pnpm": DetectionCommand(command="pnpm", args=["--version"]),
            "yarn": DetectionCommand(command="yarn", args=["--version"]),
        }
        return commands.get(tool_name)

    async def detect_language(self, repo_path: str | Path) -> bool:
        return (Path(repo_path) / "package.json").is_file()

    def detect_package_manager(self, repo_path: str | Path) -> Optional[str]:
        """Package manager implied by the repository's lockfile."""
        root = Path(repo_path)
        for lockfile, manager in self.LOCKFILES:
            if (root / lockfile).exists():
                return manager
        return None

    async def get_command_runner(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandRunner]:
        manager = self.detect_package_manager(repo_path) or package_manager or "npm"
        return CommandRunner(runner=manager, args=["run"])

    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        package_json = _read_json(Path(repo_path) / "package.json")
        if package_json is None:
            return None

        scripts = package_json.get("scripts") or {}
        if not isinstance(scripts, dict):
            return None

        # Script names; the runner turns them into "npm run <name>"
        discovery = CommandDiscovery(
            test="test" if scripts.get("test") else None,
            lint="lint" if scripts.get("lint") else None,
            start="start" if scripts.get("start") else None,
        )
        return None if discovery.is_empty() else discovery

    def get_project_files(self) -> list[ProjectFile]:
        return [
            ProjectFile(path="package.json", required=True, description="Node.js package configuration"),
            ProjectFile(path="package-lock.json", description="npm lockfile"),
            ProjectFile(path="pnpm-lock.yaml", description="pnpm lockfile"),
            ProjectFile(path="yarn.lock", description="yarn lockfile"),
            ProjectFile(path="tsconfig.json", description="TypeScript configuration (optional)"),
        ]


class PythonPlugin(LanguagePlugin):
    """Python projects (pip, poetry, uv)."""

    metadata = PluginMetadata(
        id="python",
        name="Python",
        version="1.0.0",
        type=PluginType.LANGUAGE,
        description="Python support with version policies",
    )

    MARKERS = ["pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile"]

    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        names = ["python"]
        if options and "pip" in options.version_policies:
            names.append("pip")
        return LanguageProfile(
            display_name="Python",
            toolchain=_tools(names, options),
            project_markers=list(self.MARKERS),
        )

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        commands = {
            "python": DetectionCommand(command="python3", args=["--version"]),
            "pip": DetectionCommand(command="pip3", args=["--version"]),
        }
        return commands.get(tool_name)

    async def detect_language(self, repo_path: str | Path) -> bool:
        return self.has_marker(repo_path)

    async def get_command_runner(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandRunner]:
        root = Path(repo_path)
        if (root / "uv.lock").exists():
            return CommandRunner(runner="uv", args=["run"])
        if (root / "poetry.lock").exists():
            return CommandRunner(runner="poetry", args=["run"])
        return None

    def _uses_pytest(self, root: Path, pyproject: dict[str, Any]) -> bool:
        if "pytest" in pyproject.get("tool", {}):
            return True
        if (root / "pytest.ini").exists() or (root / "conftest.py").exists():
            return True
        if _section_in(root / "setup.cfg", "tool:pytest") or _section_in(root / "tox.ini", "pytest"):
            return True
        for requirements in ("requirements-dev.txt", "requirements.txt"):
            try:
                if "pytest" in (root / requirements).read_text(encoding="utf-8", errors="replace"):
                    return True
            except OSError:
                continue
        return False

    def _lint_command(self, root: Path, pyproject: dict[str, Any]) -> Optional[str]:
        if "ruff" in pyproject.get("tool", {}) or (root / "ruff.toml").exists() or (root / ".ruff.toml").exists():
            return "ruff check ."
        if (root / ".flake8").exists() or _section_in(root / "setup.cfg", "flake8") or _section_in(root / "tox.ini", "flake8"):
            return "flake8"
        if (root / ".pylintrc").exists() or (root / "pylintrc").exists():
            return "pylint ."
        return None

    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        root = Path(repo_path)
        if not self.has_marker(root):
            return None

        pyproject = _read_toml(root / "pyproject.toml")
        test = "pytest" if self._uses_pytest(root, pyproject) else "python -m unittest discover"
        return CommandDiscovery(test=test, lint=self._lint_command(root, pyproject))

    def get_project_files(self) -> list[ProjectFile]:
        return [
            ProjectFile(path="pyproject.toml", description="Project metadata and tool configuration"),
            ProjectFile(path="requirements.txt", description="pip requirements"),
            ProjectFile(path="setup.py", description="setuptools build script"),
        ]


class GoPlugin(LanguagePlugin):
    metadata = PluginMetadata(
        id="go",
        name="Go",
        version="1.0.0",
        type=PluginType.LANGUAGE,
        description="Go language support with version policies",
    )

    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        return LanguageProfile(
            display_name="Go",
            toolchain=_tools(["go"], options),
            project_markers=["go.mod", "go.sum"],
        )

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        if tool_name == "go":
            return DetectionCommand(command="go", args=["version"])
        return None

    async def detect_language(self, repo_path: str | Path) -> bool:
        return self.has_marker(repo_path)

    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        root = Path(repo_path)
        if not (root / "go.mod").exists():
            return None

        golangci = any((root / name).exists() for name in (".golangci.yml", ".golangci.yaml", ".golangci.toml"))
        return CommandDiscovery(
            test="go test ./...",
            lint="golangci-lint run" if golangci else "go vet ./...",
        )

    def get_project_files(self) -> list[ProjectFile]:
        return [
            ProjectFile(path="go.mod", required=True, description="Go module definition"),
            ProjectFile(path="go.sum", description="Go module checksums"),
        ]


class RustPlugin(LanguagePlugin):
    metadata = PluginMetadata(
        id="rust",
        name="Rust",
        version="1.0.0",
        type=PluginType.LANGUAGE,
        description="Rust language support with version policies",
    )

    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        names = ["rustc"]
        if options and "cargo" in options.version_policies:
            names.append("cargo")
        return LanguageProfile(
            display_name="Rust",
            toolchain=_tools(names, options),
            project_markers=["Cargo.toml", "Cargo.lock"],
        )

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        commands = {
            "rustc": DetectionCommand(command="rustc", args=["--version"]),
            "cargo": DetectionCommand(command="cargo", args=["--version"]),
        }
        return commands.get(tool_name)

    async def detect_language(self, repo_path: str | Path) -> bool:
        return self.has_marker(repo_path)

    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        if not (Path(repo_path) / "Cargo.toml").exists():
            return None
        return CommandDiscovery(test="cargo test", lint="cargo clippy")

    def get_project_files(self) -> list[ProjectFile]:
        return [
            ProjectFile(path="Cargo.toml", required=True, description="Cargo manifest"),
            ProjectFile(path="Cargo.lock", description="Cargo lockfile"),
        ]


class JavaPlugin(LanguagePlugin):
    """Java projects built with Maven, Gradle or Ant.

    The build tool is the runner, so discovered commands are goals/tasks.
    """

    metadata = PluginMetadata(
        id="java",
        name="Java",
        version="1.0.0",
        type=PluginType.LANGUAGE,
        description="Support for Java projects (Maven, Gradle, Ant)",
        baseline_version="0.1.0",
    )

    GRADLE_FILES = ("build.gradle", "build.gradle.kts")

    def get_language_profile(self, options: Optional[LanguagePluginOptions] = None) -> LanguageProfile:
        names = ["java"]
        for tool in ("maven", "gradle"):
            if options and tool in options.version_policies:
                names.append(tool)
        return LanguageProfile(
            display_name="Java",
            toolchain=_tools(names, options),
            project_markers=["pom.xml", *self.GRADLE_FILES, "build.xml"],
        )

    def get_detection_command(self, tool_name: str) -> Optional[DetectionCommand]:
        commands = {
            "java": DetectionCommand(command="java", args=["-version"]),
            "maven": DetectionCommand(command="mvn", args=["--version"]),
            "gradle": DetectionCommand(command="gradle", args=["--version"]),
        }
        return commands.get(tool_name)

    async def detect_language(self, repo_path: str | Path) -> bool:
        return self.has_marker(repo_path)

    def _build_tool(self, root: Path) -> Optional[str]:
        if (root / "pom.xml").exists():
            return "mvn"
        if any((root / name).exists() for name in self.GRADLE_FILES):
            return "gradle"
        if (root / "build.xml").exists():
            return "ant"
        return None

    async def get_command_runner(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandRunner]:
        tool = self._build_tool(Path(repo_path))
        return CommandRunner(runner=tool, args=[]) if tool else None

    async def discover_commands(
        self,
        repo_path: str | Path,
        package_manager: Optional[str] = None
    ) -> Optional[CommandDiscovery]:
        tool = self._build_tool(Path(repo_path))
        if tool == "mvn":
            return CommandDiscovery(test="test", lint="checkstyle:check")
        if tool == "gradle":
            return CommandDiscovery(test="test", lint="check")
        if tool == "ant":
            return CommandDiscovery(test="test")
        return None

    def get_project_files(self) -> list[ProjectFile]:
        return [
            ProjectFile(path="pom.xml", description="Maven project file"),
            ProjectFile(path="build.gradle", description="Gradle build file"),
            ProjectFile(path="build.gradle.kts", description="Gradle Kotlin DSL build file"),
            ProjectFile(path="settings.gradle", description="Gradle settings file"),
        ]


BUILTIN_LANGUAGE_PLUGINS: list[type[LanguagePlugin]] = [
    NodePlugin,
    PythonPlugin,
    GoPlugin,
    RustPlugin,
    JavaPlugin,
]
