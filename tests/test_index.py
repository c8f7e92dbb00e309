"""Tests for the remote plugin index client."""

import json
import time
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from baseline.core.errors import PluginError
from baseline.models.config import PluginSource
from baseline.plugins.index import IndexEntry, PluginIndex

INDEX_URL = "https://plugins.example.com/index.json"

PLUGINS = [
    {"id": "docker", "name": "Docker", "version": "1.0.0", "description": "Container tooling",
     "source": "pypi", "url": "baseline-docker", "keywords": ["containers"]},
    {"id": "terraform", "version": "0.3.0", "description": "Infrastructure as code"},
    {"name": "missing id"},
]


def mock_index(handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch("baseline.plugins.index.httpx.AsyncClient", side_effect=factory)


@pytest.fixture
def index(temp_dir: Path) -> PluginIndex:
    return PluginIndex(temp_dir, url=INDEX_URL, ttl_hours=1)


class TestIndexEntry:
    def test_matches_keywords(self):
        entry = IndexEntry.model_validate(PLUGINS[0])
        assert entry.matches("CONTAIN")
        assert entry.matches("dock")
        assert not entry.matches("kubernetes")

    def test_to_dependency(self):
        spec = IndexEntry.model_validate(PLUGINS[0]).to_dependency()
        assert spec.source == PluginSource.PYPI
        assert spec.url == "baseline-docker"
        assert spec.version == "1.0.0"


class TestPluginIndex:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, index):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"plugins": PLUGINS})

        with mock_index(handler):
            first = await index.fetch()
            second = await index.fetch()

        # Malformed entries are dropped
        assert [e.id for e in first] == ["docker", "terraform"]
        assert [e.id for e in second] == ["docker", "terraform"]
        assert len(requests) == 1
        cached = json.loads(index.cache_path.read_text())
        assert cached["url"] == INDEX_URL

    @pytest.mark.asyncio
    async def test_bare_list_document(self, index):
        with mock_index(lambda request: httpx.Response(200, json=PLUGINS[:1])):
            assert await index.get("docker") is not None
            assert await index.get("nope") is None

    @pytest.mark.asyncio
    async def test_force_refresh(self, index):
        with mock_index(lambda request: httpx.Response(200, json=PLUGINS)) as mock_client:
            await index.fetch()
            await index.fetch(force=True)

        assert mock_client.call_count == 2

    @pytest.mark.asyncio
    async def test_stale_cache_used_when_unreachable(self, index):
        index.cache_path.parent.mkdir(parents=True)
        index.cache_path.write_text(json.dumps({
            "url": INDEX_URL, "fetched_at": time.time() - 7200, "plugins": PLUGINS[:1],
        }))

        with mock_index(lambda request: httpx.Response(503)):
            entries = await index.search("docker")

        assert [e.id for e in entries] == ["docker"]

    @pytest.mark.asyncio
    async def test_cache_for_other_url_ignored(self, index):
        index.cache_path.parent.mkdir(parents=True)
        index.cache_path.write_text(json.dumps({
            "url": "https://elsewhere.example.com", "fetched_at": time.time(), "plugins": PLUGINS,
        }))

        with mock_index(lambda request: httpx.Response(500)):
            with pytest.raises(PluginError):
                await index.fetch()

    @pytest.mark.asyncio
    async def test_unreachable_without_cache(self, index):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with mock_index(handler):
            with pytest.raises(PluginError) as exc_info:
                await index.fetch()

        assert exc_info.value.message == "Plugin index is unavailable"

    @pytest.mark.asyncio
    async def test_document_without_plugins(self, index):
        with mock_index(lambda request: httpx.Response(200, json={"name": "index"})):
            with pytest.raises(PluginError):
                await index.fetch()
