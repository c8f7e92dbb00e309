"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Add project root to Python path so 'baseline' is importable without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import json
import tempfile
from typing import Any, Callable, Generator
import pytest

from baseline.config import reset_settings
from baseline.plugins.registry import PluginRegistry


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep the environment from leaking into tests."""
    monkeypatch.setenv("BASELINE_ENTRY_POINTS", "false")
    monkeypatch.setenv("BASELINE_INSTALL_TIMEOUT", "30")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry() -> PluginRegistry:
    """A registry holding the built-ins, sealed as after initialize()."""
    reg = PluginRegistry()
    reg.load_builtin_plugins()
    reg.seal()
    return reg


@pytest.fixture
def make_workspace(temp_dir: Path) -> Callable[..., Path]:
    """Factory writing baseline.json and creating the listed repo directories.

    Usage: make_workspace(packages=[...], files={"api/package.json": "{}"})
    """
    def _make(
        packages: list[Any] | None = None,
        files: dict[str, str] | None = None,
        **config: Any
    ) -> Path:
        data = {"name": "test-workspace", "packages": packages or [], **config}
        (temp_dir / "baseline.json").write_text(json.dumps(data, indent=2))

        for relative, content in (files or {}).items():
            path = temp_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return temp_dir

    return _make


@pytest.fixture
def plugin_source() -> Callable[..., str]:
    """Source of a plugin module exporting one OtherPlugin."""
    def _source(plugin_id: str = "extra", **metadata: Any) -> str:
        extra = "".join(f"        {key}={value!r},\n" for key, value in metadata.items())
        return f'''
from baseline.models.plugin import PluginMetadata, PluginType
from baseline.plugins.base import OtherPlugin


class ExtraPlugin(OtherPlugin):
    metadata = PluginMetadata(
        id={plugin_id!r},
        name="Extra {plugin_id}",
        type=PluginType.OTHER,
{extra}    )


plugin = ExtraPlugin
'''
    return _source
