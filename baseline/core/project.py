"""Per-repository override manifest (baseline.project.json)."""

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from baseline.models.config import ProjectConfig
from .logging import get_logger

logger = get_logger("core.project")

PROJECT_FILE = "baseline.project.json"


class ProjectConfigLoader:
    """Loads a repository's baseline.project.json.

    A missing, unreadable or invalid manifest yields None; it never stops
    resolution. Invalid files are logged so the user can fix them.
    """

    def path_for(self, repo_path: str | Path) -> Path:
        return Path(repo_path) / PROJECT_FILE

    def exists(self, repo_path: str | Path) -> bool:
        return self.path_for(repo_path).is_file()

    def load(self, repo_path: str | Path) -> Optional[ProjectConfig]:
        config_path = self.path_for(repo_path)
        if not config_path.is_file():
            return None

        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
            return ProjectConfig.model_validate(data)
        except (OSError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            kind = "Invalid" if isinstance(e, ValidationError) else "Unreadable"
            logger.warning(f"{kind} project config {config_path}: {e}", component="project")
            return None
