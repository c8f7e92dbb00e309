"""Installed-plugin records and the versioned lock state."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import PluginSource

LOCK_VERSION = "1.0.0"
SUPPORTED_LOCK_MAJORS = ("1",)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InstalledPlugin(BaseModel):
    """One external plugin fetched into the local cache."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    version: str
    source: PluginSource
    location: str = Field(..., description="Path, URL or distribution name it was fetched from")
    entry: Optional[str] = Field(None, description="Name of its entry in the plugin cache")
    installed_at: str = Field(default_factory=_now_iso, alias="installedAt")


class PluginLock(BaseModel):
    """Durable record of installed plugins: {version, plugins: {id: record}}."""
    version: str = LOCK_VERSION
    plugins: dict[str, InstalledPlugin] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        major = value.split(".")[0]
        if major not in SUPPORTED_LOCK_MAJORS:
            raise ValueError(f"unsupported lock file version {value}")
        return value

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, by_alias=True) + "\n"
