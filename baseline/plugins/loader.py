"""Loading plugin modules and parsing what they export.

A plugin module exposes one of ``package``, ``plugin`` or ``default``
(first present wins). The value may be a Plugin instance, a Plugin
subclass (instantiated with no arguments), a PluginPackage, or a dict
``{"metadata": {...}, "plugins": [...]}``.
"""

import hashlib
import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Optional

from pydantic import ValidationError

from baseline.core.errors import PluginLoadError, PluginShapeError
from baseline.core.logging import get_logger
from .base import Plugin, PluginPackage

logger = get_logger("plugins.loader")

EXPORT_NAMES = ("package", "plugin", "default")
MANIFEST_FILE = "baseline-plugin.json"
CONVENTIONAL_ENTRIES = ("plugin.py", "__init__.py")

ParsedExport = Plugin | PluginPackage


def read_manifest(directory: str | Path) -> Optional[dict[str, Any]]:
    """Read a plugin directory's baseline-plugin.json, if any."""
    manifest_path = Path(directory) / MANIFEST_FILE
    if not manifest_path.is_file():
        return None
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Unreadable plugin manifest {manifest_path}: {e}", component="loader")
        return None
    return data if isinstance(data, dict) else None


class PluginLoader:
    """Imports plugin files and turns their exports into typed objects."""

    def resolve_entry(self, candidate: str | Path) -> Optional[Path]:
        """Return the module file to import for a directory entry.

        Files must be ``.py`` and not start with ``_`` or ``.``. Directories
        use the manifest's ``entry`` or fall back to plugin.py / __init__.py.
        """
        path = Path(candidate)
        if path.name.startswith(("_", ".")):
            return None

        if path.is_file():
            return path if path.suffix == ".py" else None

        if not path.is_dir():
            return None

        manifest = read_manifest(path)
        if manifest and isinstance(manifest.get("entry"), str):
            entry = path / manifest["entry"]
            if entry.is_file():
                return entry
            logger.debug(f"Manifest entry {entry} does not exist", component="loader")
            return None

        for name in CONVENTIONAL_ENTRIES:
            entry = path / name
            if entry.is_file():
                return entry
        return None

    def import_module(self, module_path: str | Path) -> ModuleType:
        """Import a file under a name unique to its absolute path.

        Raises:
            PluginLoadError: the file cannot be imported or raised on import
        """
        module_path = Path(module_path).resolve()
        digest = hashlib.sha1(str(module_path).encode("utf-8")).hexdigest()[:12]
        module_name = f"baseline_plugin_{module_path.parent.name.replace('-', '_')}_{digest}"

        search_locations = None
        if module_path.name == "__init__.py":
            search_locations = [str(module_path.parent)]

        spec = importlib.util.spec_from_file_location(
            module_name, module_path, submodule_search_locations=search_locations
        )
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Cannot import plugin module {module_path}", source=str(module_path))

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise PluginLoadError(
                f"Plugin module {module_path.name} failed to import",
                source=str(module_path),
                cause=e,
            )
        return module

    def get_export(self, module: ModuleType) -> Any:
        for name in EXPORT_NAMES:
            value = getattr(module, name, None)
            if value is not None:
                return value
        return None

    def parse_export(self, value: Any, source: Optional[str] = None) -> ParsedExport:
        """Turn an exported value into a Plugin or a PluginPackage.

        Raises:
            PluginShapeError: the value is none of the accepted shapes
        """
        if isinstance(value, type) and issubclass(value, Plugin):
            try:
                value = value()
            except Exception as e:
                raise PluginShapeError(
                    f"Plugin class {value.__name__} cannot be instantiated",
                    source=source,
                    cause=e,
                )

        if isinstance(value, PluginPackage):
            return self._checked_package(value, source)

        if isinstance(value, Plugin):
            from .registry import PluginRegistry
            if not PluginRegistry.is_valid_plugin(value):
                raise PluginShapeError("Plugin metadata is missing or does not match its type", source=source)
            return value

        if isinstance(value, dict) and "metadata" in value and "plugins" in value:
            try:
                package = PluginPackage.from_dict(value)
            except (ValidationError, TypeError) as e:
                raise PluginShapeError("Malformed plugin package", source=source, cause=e)
            return self._checked_package(package, source)

        raise PluginShapeError(
            f"Unrecognized plugin export of type {type(value).__name__}",
            source=source,
        )

    def _checked_package(self, package: PluginPackage, source: Optional[str]) -> PluginPackage:
        from .registry import PluginRegistry

        plugins = []
        for item in package.plugins:
            if isinstance(item, type) and issubclass(item, Plugin):
                try:
                    item = item()
                except Exception as e:
                    raise PluginShapeError(
                        f"Plugin class {item.__name__} in package {package.metadata.name} cannot be instantiated",
                        source=source,
                        cause=e,
                    )
            if not PluginRegistry.is_valid_plugin(item):
                raise PluginShapeError(
                    f"Package {package.metadata.name} contains an invalid plugin",
                    source=source,
                )
            plugins.append(item)
        package.plugins = plugins
        return package

    def load(self, module_path: str | Path) -> ParsedExport:
        """Import a module file and parse its export.

        Raises:
            PluginLoadError: import failed
            PluginShapeError: the export has no recognised shape
        """
        module = self.import_module(module_path)
        return self.parse_export(self.get_export(module), source=str(module_path))
