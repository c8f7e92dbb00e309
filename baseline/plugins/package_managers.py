"""Built-in package manager plugins."""

import json
import re
from pathlib import Path
from typing import Any, Optional

from baseline.models.plugin import PluginMetadata, PluginType
from .base import PackageManagerPlugin


def _member_paths(repos: list[dict[str, str]], workspace_root: str | Path, *markers: str) -> list[str]:
    """Paths of the repos that contain at least one of the marker files."""
    root = Path(workspace_root)
    return [
        repo["path"] for repo in repos
        if any((root / repo["path"] / marker).exists() for marker in markers)
    ]


def _package_json_workspaces(repos: list[dict[str, str]], workspace_root: str | Path) -> Optional[dict[str, str]]:
    """Root package.json with a workspaces array, keeping existing fields."""
    members = _member_paths(repos, workspace_root, "package.json")
    if not members:
        return None

    package_json: dict[str, Any] = {}
    existing = Path(workspace_root) / "package.json"
    if existing.exists():
        try:
            loaded = json.loads(existing.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                package_json = loaded
        except (OSError, ValueError):
            pass

    package_json["name"] = package_json.get("name") or "baseline-workspace"
    package_json["version"] = package_json.get("version") or "0.1.0"
    package_json.setdefault("private", True)
    package_json["workspaces"] = members

    return {"file": "package.json", "content": json.dumps(package_json, indent=2) + "\n"}


class NpmPlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="npm",
        name="npm",
        type=PluginType.PACKAGE_MANAGER,
        description="npm package manager support",
        baseline_version="0.1.0",
        requires_languages=["node"],
    )
    executable = "npm"

    def get_install_command(self) -> str:
        return "npm install"

    def get_run_command(self) -> list[str]:
        return ["npm", "run"]

    async def create_workspace_config(self, repos, workspace_root):
        return _package_json_workspaces(repos, workspace_root)


class PnpmPlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="pnpm",
        name="pnpm",
        type=PluginType.PACKAGE_MANAGER,
        description="pnpm package manager support",
        baseline_version="0.1.0",
        requires_languages=["node"],
    )
    executable = "pnpm"

    def get_install_command(self) -> str:
        return "pnpm install"

    def get_run_command(self) -> list[str]:
        return ["pnpm", "run"]

    async def create_workspace_config(self, repos, workspace_root):
        members = _member_paths(repos, workspace_root, "package.json")
        if not members:
            return None
        lines = ["packages:", *(f'  - "{path}"' for path in members)]
        return {"file": "pnpm-workspace.yaml", "content": "\n".join(lines) + "\n"}


class YarnPlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="yarn",
        name="Yarn",
        type=PluginType.PACKAGE_MANAGER,
        description="Yarn package manager support",
        baseline_version="0.1.0",
        requires_languages=["node"],
    )
    executable = "yarn"

    def get_install_command(self) -> str:
        return "yarn install"

    def get_run_command(self) -> list[str]:
        return ["yarn", "run"]

    async def create_workspace_config(self, repos, workspace_root):
        return _package_json_workspaces(repos, workspace_root)


class PipPlugin(PackageManagerPlugin):
    """pip. Python repositories are independent, so no workspace file."""

    metadata = PluginMetadata(
        id="pip",
        name="pip",
        type=PluginType.PACKAGE_MANAGER,
        description="pip package manager support for Python",
        baseline_version="0.1.0",
        requires_languages=["python"],
    )
    executable = "pip"

    def get_install_command(self) -> str:
        return "pip install -r requirements.txt"

    def get_run_command(self) -> list[str]:
        return ["python", "-m"]

    def parse_version(self, output: str) -> Optional[str]:
        # "pip 24.0 from /usr/lib/... (python 3.12)"
        parts = output.split()
        return parts[1] if len(parts) > 1 else None


class CargoPlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="cargo",
        name="Cargo",
        type=PluginType.PACKAGE_MANAGER,
        description="Cargo package manager support for Rust",
        baseline_version="0.1.0",
        requires_languages=["rust"],
    )
    executable = "cargo"

    def get_install_command(self) -> str:
        return "cargo build"

    def get_run_command(self) -> list[str]:
        return ["cargo", "run", "--"]

    def parse_version(self, output: str) -> Optional[str]:
        parts = output.split()
        return parts[1] if len(parts) > 1 else None

    async def create_workspace_config(self, repos, workspace_root):
        members = _member_paths(repos, workspace_root, "Cargo.toml")
        if not members:
            return None
        lines = ["[workspace]", "members = [", *(f'  "{path}",' for path in members), "]"]
        return {"file": "Cargo.toml", "content": "\n".join(lines) + "\n"}


class MavenPlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="maven",
        name="Maven",
        type=PluginType.PACKAGE_MANAGER,
        description="Maven build tool support for Java",
        baseline_version="0.1.0",
        requires_languages=["java"],
    )
    executable = "mvn"

    def get_install_command(self) -> str:
        return "mvn install"

    def get_run_command(self) -> list[str]:
        return ["mvn"]

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(r"Apache Maven (\d+\.\d+\.\d+)", output)
        return match.group(1) if match else None

    async def create_workspace_config(self, repos, workspace_root):
        modules = _member_paths(repos, workspace_root, "pom.xml")
        if not modules:
            return None

        module_lines = "\n".join(f"        <module>{path}</module>" for path in modules)
        content = f"""<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
         xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
         xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
    <modelVersion>4.0.0</modelVersion>
    <groupId>dev.baseline</groupId>
    <artifactId>baseline-workspace</artifactId>
    <version>1.0.0</version>
    <packaging>pom</packaging>
    <modules>
{module_lines}
    </modules>
</project>
"""
        return {"file": "pom.xml", "content": content}


class GradlePlugin(PackageManagerPlugin):
    metadata = PluginMetadata(
        id="gradle",
        name="Gradle",
        type=PluginType.PACKAGE_MANAGER,
        description="Gradle build tool support for Java",
        baseline_version="0.1.0",
        requires_languages=["java"],
    )
    executable = "gradle"

    def get_install_command(self) -> str:
        return "gradle build"

    def get_run_command(self) -> list[str]:
        return ["gradle"]

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(r"Gradle (\d+\.\d+(?:\.\d+)?)", output)
        return match.group(1) if match else None

    async def create_workspace_config(self, repos, workspace_root):
        projects = _member_paths(repos, workspace_root, "build.gradle", "build.gradle.kts")
        if not projects:
            return None
        includes = "\n".join(f'include "{path}"' for path in projects)
        return {
            "file": "settings.gradle",
            "content": f'rootProject.name = "baseline-workspace"\n\n{includes}\n',
        }


BUILTIN_PACKAGE_MANAGER_PLUGINS: list[type[PackageManagerPlugin]] = [
    NpmPlugin,
    PnpmPlugin,
    YarnPlugin,
    PipPlugin,
    CargoPlugin,
    MavenPlugin,
    GradlePlugin,
]
