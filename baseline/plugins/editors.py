"""Built-in editor plugins: workspace files listing every repository."""

import json
from pathlib import Path
from xml.sax.saxutils import quoteattr

from baseline.models.plugin import PluginMetadata, PluginType
from .base import EditorPlugin


def _folders(repos: list[dict[str, str]]) -> list[dict[str, str]]:
    return [{"name": repo["name"], "path": repo["path"]} for repo in repos]


def _code_workspace(repos: list[dict[str, str]]) -> str:
    """VS Code style workspace (also read by Cursor)."""
    workspace = {
        "folders": _folders(repos),
        "settings": {
            "files.exclude": {
                "**/.git": True,
                "**/node_modules": True,
            },
        },
    }
    return json.dumps(workspace, indent=2) + "\n"


class VSCodeEditor(EditorPlugin):
    metadata = PluginMetadata(
        id="vscode",
        name="VS Code",
        type=PluginType.EDITOR,
        description="VS Code workspace file generation",
        baseline_version="0.1.0",
    )

    async def generate_workspace_file(self, repos: list[dict[str, str]], workspace_root: str | Path) -> dict[str, str]:
        return {"file": "workspace.code-workspace", "content": _code_workspace(repos)}


class CursorEditor(EditorPlugin):
    metadata = PluginMetadata(
        id="cursor",
        name="Cursor",
        type=PluginType.EDITOR,
        description="Cursor editor workspace file generation",
        baseline_version="0.1.0",
    )

    async def generate_workspace_file(self, repos: list[dict[str, str]], workspace_root: str | Path) -> dict[str, str]:
        return {"file": ".cursor-workspace", "content": _code_workspace(repos)}


class SublimeEditor(EditorPlugin):
    metadata = PluginMetadata(
        id="sublime",
        name="Sublime Text",
        type=PluginType.EDITOR,
        description="Sublime Text project file generation",
        baseline_version="0.1.0",
    )

    async def generate_workspace_file(self, repos: list[dict[str, str]], workspace_root: str | Path) -> dict[str, str]:
        project = {
            "folders": _folders(repos),
            "settings": {
                "file_exclude_patterns": ["**/.git", "**/node_modules", "**/dist", "**/build"],
            },
        }
        return {"file": "baseline.sublime-project", "content": json.dumps(project, indent=2) + "\n"}


class IntelliJEditor(EditorPlugin):
    """JetBrains IDEs: a modules.xml listing each repository as a module."""

    metadata = PluginMetadata(
        id="intellij",
        name="IntelliJ IDEA",
        type=PluginType.EDITOR,
        description="IntelliJ IDEA / JetBrains IDE workspace configuration",
        baseline_version="0.1.0",
    )

    async def generate_workspace_file(self, repos: list[dict[str, str]], workspace_root: str | Path) -> dict[str, str]:
        lines = []
        for repo in repos:
            filepath = repo["path"].replace("\\", "/")
            lines.append(
                f"      <module fileurl={quoteattr('file://' + filepath)} filepath={quoteattr(filepath)} />"
            )
        modules = "\n".join(lines)
        content = f"""<?xml version="1.0" encoding="UTF-8"?>
<project version="4">
  <component name="ProjectModuleManager">
    <modules>
{modules}
    </modules>
  </component>
</project>
"""
        return {"file": ".idea/modules.xml", "content": content}


BUILTIN_EDITOR_PLUGINS: list[type[EditorPlugin]] = [
    VSCodeEditor,
    CursorEditor,
    SublimeEditor,
    IntelliJEditor,
]
