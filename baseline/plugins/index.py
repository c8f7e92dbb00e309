"""Remote plugin index.

The index is a JSON document listing installable plugins, either a bare
list or ``{"plugins": [...]}``. Responses are cached in
``.baseline/.registry-cache.json`` for the configured TTL.
"""

import json
import time
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from baseline.config import get_settings
from baseline.core.errors import PluginError
from baseline.core.logging import get_logger
from baseline.core.workspace import STATE_DIR
from baseline.models.config import PluginDependency, PluginSource

logger = get_logger("plugins.index")

INDEX_CACHE_FILE = f"{STATE_DIR}/.registry-cache.json"


class IndexEntry(BaseModel):
    """One plugin advertised by the index."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    source: Optional[PluginSource] = None
    url: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)

    def matches(self, query: str) -> bool:
        query = query.lower()
        haystack = [self.id, self.name or "", self.description or "", *self.keywords]
        return any(query in text.lower() for text in haystack)

    def to_dependency(self) -> PluginDependency:
        return PluginDependency(version=self.version, source=self.source, url=self.url)


class PluginIndex:
    """Client for the remote plugin index."""

    def __init__(
        self,
        workspace_root: str | Path,
        url: Optional[str] = None,
        ttl_hours: Optional[float] = None,
        timeout: float = 10.0
    ):
        settings = get_settings().plugins
        self.url = url or settings.registry_url
        self.ttl_seconds = (ttl_hours if ttl_hours is not None else settings.registry_cache_ttl_hours) * 3600
        self.timeout = timeout
        self.cache_path = Path(workspace_root) / INDEX_CACHE_FILE

    def _read_cache(self) -> Optional[dict[str, Any]]:
        if not self.cache_path.is_file():
            return None
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict) or data.get("url") != self.url:
            return None
        return data

    def _write_cache(self, plugins: list[dict[str, Any]]) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            payload = {"url": self.url, "fetched_at": time.time(), "plugins": plugins}
            self.cache_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            logger.debug(f"Could not write index cache: {e}", component="index")

    @staticmethod
    def _parse(plugins: Any) -> list[IndexEntry]:
        entries = []
        for item in plugins or []:
            try:
                entries.append(IndexEntry.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed index entry: {item!r}", component="index")
        return entries

    async def _download(self) -> list[dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            data = response.json()

        plugins = data.get("plugins") if isinstance(data, dict) else data
        if not isinstance(plugins, list):
            raise ValueError("index document has no plugin list")
        return plugins

    async def fetch(self, force: bool = False) -> list[IndexEntry]:
        """Return all index entries, from cache when it is fresh.

        A stale cache is used when the index cannot be reached.

        Raises:
            PluginError: the index is unreachable and nothing is cached
        """
        cached = self._read_cache()
        if cached and not force and time.time() - cached.get("fetched_at", 0) < self.ttl_seconds:
            return self._parse(cached.get("plugins"))

        try:
            plugins = await self._download()
        except (httpx.HTTPError, ValueError) as e:
            if cached:
                logger.warning(f"Plugin index unreachable, using cached copy: {e}", component="index")
                return self._parse(cached.get("plugins"))
            raise PluginError(
                "Plugin index is unavailable",
                source=self.url,
                cause=e,
                suggestion="Check your connection or set BASELINE_PLUGIN_REGISTRY",
            )

        self._write_cache(plugins)
        return self._parse(plugins)

    async def search(self, query: str) -> list[IndexEntry]:
        return [entry for entry in await self.fetch() if entry.matches(query)]

    async def get(self, plugin_id: str) -> Optional[IndexEntry]:
        for entry in await self.fetch():
            if entry.id == plugin_id:
                return entry
        return None
