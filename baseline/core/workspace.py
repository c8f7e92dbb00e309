"""Workspace configuration (baseline.json).

Loading, saving and locating the workspace file, plus normalisation of its
package entries into repository descriptors.
"""

import json
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from baseline.models.config import NormalizedPackage, PackageEntry, WorkspaceConfig
from baseline.models.plugin import VersionPolicy
from .errors import ConfigError
from .logging import get_logger

logger = get_logger("core.workspace")

WORKSPACE_FILE = "baseline.json"
STATE_DIR = ".baseline"


class WorkspaceConfigManager:
    """Reads and writes baseline.json at a workspace root."""

    def __init__(self, workspace_root: str | Path):
        self.workspace_root = Path(workspace_root)
        self.config_path = self.workspace_root / WORKSPACE_FILE

    @property
    def state_dir(self) -> Path:
        return self.workspace_root / STATE_DIR

    def exists(self) -> bool:
        return self.config_path.is_file()

    def load(self) -> Optional[WorkspaceConfig]:
        """Parse baseline.json. Returns None when the file does not exist.

        Raises:
            ConfigError: the file is not valid JSON or fails validation
        """
        if not self.exists():
            return None

        try:
            data = json.loads(self.config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(
                "Failed to read workspace config",
                config_path=str(self.config_path),
                cause=e,
                suggestion="Check that baseline.json is valid JSON",
            )

        try:
            return WorkspaceConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid workspace config: {e.error_count()} validation error(s)",
                config_path=str(self.config_path),
                details=str(e),
                cause=e,
            )

    def load_or_default(self) -> WorkspaceConfig:
        return self.load() or WorkspaceConfig()

    def save(self, config: WorkspaceConfig) -> None:
        try:
            content = config.model_dump_json(indent=2, by_alias=True, exclude_none=True)
            self.config_path.write_text(content + "\n", encoding="utf-8")
        except OSError as e:
            raise ConfigError("Failed to save workspace config", config_path=str(self.config_path), cause=e)
        logger.debug(f"Saved {self.config_path}", component="workspace")

    def get_packages(self, config: Optional[WorkspaceConfig] = None) -> list[NormalizedPackage]:
        config = config if config is not None else self.load_or_default()
        return normalize_packages(config)

    @staticmethod
    def find_workspace_root(start_path: Optional[str | Path] = None) -> Optional[Path]:
        """Walk up from start_path to the first directory holding baseline.json."""
        current = Path(start_path or Path.cwd()).resolve()
        for directory in (current, *current.parents):
            if (directory / WORKSPACE_FILE).is_file():
                return directory
        return None


def normalize_package(entry: Union[str, PackageEntry]) -> NormalizedPackage:
    """Fill in defaults for a package entry.

    A bare string is a path; its last component becomes id and name.
    """
    if isinstance(entry, str):
        package_id = Path(entry).name
        return NormalizedPackage(id=package_id, name=package_id, path=entry)

    package_id = entry.id or entry.name or (Path(entry.path).name if entry.path else "unknown-package")
    return NormalizedPackage(
        id=package_id,
        name=entry.name or package_id,
        path=entry.path or f"packages/{package_id}",
        location=entry.location or entry.git_url,
        version=entry.version,
        default_branch=entry.default_branch or "main",
        tags=list(entry.tags),
        languages=list(entry.languages) if entry.languages is not None else None,
        package_manager=entry.package_manager,
        library=entry.library,
        commands=entry.commands,
        required_plugins=list(entry.required_plugins),
    )


def normalize_packages(config: WorkspaceConfig) -> list[NormalizedPackage]:
    return [normalize_package(entry) for entry in config.get_packages()]


def parse_version_policy(version: str) -> VersionPolicy:
    """">=1.2" -> min, "<=1.2" -> max, "^1.2"/"~1.2" -> min, else exact."""
    if version.startswith(">="):
        return VersionPolicy(min=version[2:])
    if version.startswith("<="):
        return VersionPolicy(max=version[2:])
    if version.startswith(("^", "~")):
        return VersionPolicy(min=version[1:])
    return VersionPolicy(exact=version)


def version_policies(config: WorkspaceConfig) -> dict[str, VersionPolicy]:
    return {tool: parse_version_policy(version) for tool, version in config.languages.items()}
