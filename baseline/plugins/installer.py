"""External plugin installer.

Fetches plugins into ``.baseline/.plugins/`` and records them in
``.baseline/.plugins.lock.json``. Each cache entry is named after the
plugin id (``<id>``, ``<id>-<version>`` or ``<id>.py``) and the lock records
that name, so one plugin never claims another plugin's entry.
"""

import json
import os
import re
import shutil
import sys
import time
import uuid
from importlib.metadata import Distribution
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from baseline.config import get_settings
from baseline.core.errors import InstallError, InstallTimeoutError, LockFileError, PluginNotInstalledError
from baseline.core.logging import get_logger
from baseline.core.workspace import STATE_DIR
from baseline.models.config import PluginDependency, PluginSource
from baseline.models.lock import InstalledPlugin, PluginLock
from baseline.utils.process import ProcessTimeout, run_process
from .loader import MANIFEST_FILE, read_manifest

logger = get_logger("plugins.installer")

PLUGIN_INSTALL_DIR = f"{STATE_DIR}/.plugins"
PLUGIN_LOCK_FILE = f"{STATE_DIR}/.plugins.lock.json"

_VERSION_OPERATORS = ("=", "<", ">", "!", "~")


def infer_source(spec: PluginDependency, base_dir: Optional[Path] = None) -> PluginSource:
    """Work out where a plugin comes from when the dependency does not say.

    Relative local paths are tried as given and against base_dir.
    """
    if spec.source:
        return spec.source

    target = spec.url or spec.path or ""
    if target.startswith(("git+", "git://")) or target.endswith(".git"):
        return PluginSource.GIT
    if target.startswith(("http://", "https://")):
        return PluginSource.REMOTE
    if target and (Path(target).exists() or (base_dir is not None and (base_dir / target).exists())):
        return PluginSource.LOCAL
    return PluginSource.PYPI


def _matches_id(entry_name: str, plugin_id: str) -> bool:
    """True for ``<id>``, ``<id>.<suffix>`` and ``<id>-<version>`` entries."""
    return re.fullmatch(rf"{re.escape(plugin_id)}(\.[A-Za-z0-9]+|-\d[\w.+-]*)?", entry_name) is not None


def _remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


class PluginInstaller:
    """Installs, lists and removes external plugins for one workspace."""

    def __init__(self, workspace_root: str | Path, timeout: Optional[float] = None):
        self.workspace_root = Path(workspace_root)
        self.plugin_dir = self.workspace_root / PLUGIN_INSTALL_DIR
        self.lock_path = self.workspace_root / PLUGIN_LOCK_FILE
        self.timeout = timeout if timeout is not None else get_settings().plugins.install_timeout

    # ------------------------------------------------------------------
    # Lock state
    # ------------------------------------------------------------------

    def load_lock(self) -> PluginLock:
        """Read the lock file. Missing or unreadable files give an empty lock.

        Raises:
            LockFileError: the file declares an unsupported schema version
                or its records are malformed
        """
        if not self.lock_path.is_file():
            return PluginLock()

        try:
            data = json.loads(self.lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable lock file {self.lock_path}: {e}", component="installer")
            return PluginLock()

        try:
            return PluginLock.model_validate(data)
        except ValidationError as e:
            raise LockFileError(
                "Plugin lock file is not supported by this version of baseline",
                source=str(self.lock_path),
                cause=e,
                suggestion="Upgrade baseline or delete the lock file and reinstall plugins",
            )

    def save_lock(self, lock: PluginLock) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.lock_path.with_name(f"{self.lock_path.name}.tmp")
        tmp_path.write_text(lock.to_json(), encoding="utf-8")
        os.replace(tmp_path, self.lock_path)

    def list_installed(self) -> list[InstalledPlugin]:
        return list(self.load_lock().plugins.values())

    def _claimed_by_others(self, plugin_id: str, lock: PluginLock, names: list[str]) -> set[str]:
        claimed = set()
        for other_id, record in lock.plugins.items():
            if other_id == plugin_id:
                continue
            if record.entry:
                claimed.add(record.entry)
            else:
                claimed.update(name for name in names if _matches_id(name, other_id))
        return claimed

    def _entries_for(self, plugin_id: str, lock: PluginLock) -> list[Path]:
        """Cache entries named for plugin_id that no other lock record owns."""
        if not self.plugin_dir.is_dir():
            return []
        entries = sorted(self.plugin_dir.iterdir())
        claimed = self._claimed_by_others(plugin_id, lock, [e.name for e in entries])
        owned = [e for e in entries if e.name not in claimed and _matches_id(e.name, plugin_id)]

        record = lock.plugins.get(plugin_id)
        if record is not None and record.entry:
            recorded = self.plugin_dir / record.entry
            if os.path.lexists(recorded) and recorded not in owned:
                owned.insert(0, recorded)
        return owned

    def _find_cache_entry(self, plugin_id: str, lock: Optional[PluginLock] = None) -> Optional[Path]:
        lock = lock if lock is not None else self.load_lock()
        record = lock.plugins.get(plugin_id)
        if record is not None and record.entry:
            recorded = self.plugin_dir / record.entry
            return recorded if os.path.lexists(recorded) else None
        entries = self._entries_for(plugin_id, lock)
        return entries[0] if entries else None

    def get_plugin_path(self, plugin_id: str) -> Optional[Path]:
        """Cache entry of an installed plugin, or None."""
        lock = self.load_lock()
        if plugin_id not in lock.plugins:
            return None
        return self._find_cache_entry(plugin_id, lock)

    # ------------------------------------------------------------------
    # Install / remove
    # ------------------------------------------------------------------

    def _location(self, plugin_id: str, spec: PluginDependency, source: PluginSource) -> str:
        if source == PluginSource.LOCAL:
            return spec.path or spec.url or ""
        if source == PluginSource.PYPI:
            return spec.url or plugin_id
        return spec.url or spec.path or ""

    def _is_current(
        self,
        record: InstalledPlugin,
        spec: PluginDependency,
        source: PluginSource,
        location: str,
        lock: PluginLock
    ) -> bool:
        if record.source != source or record.location != location:
            return False
        if spec.version and spec.version != record.version:
            return False
        return self._find_cache_entry(record.id, lock) is not None

    async def install(self, plugin_id: str, spec: PluginDependency) -> InstalledPlugin:
        """Fetch a plugin into the cache and record it in the lock.

        The fetch happens under a temporary name in the cache directory and
        replaces the plugin's previous entry only once every step succeeded.
        Installing something that is already present with the same source,
        location and version is a no-op returning the existing record.

        Raises:
            InstallError: the fetch failed; the lock and cache are unchanged
            InstallTimeoutError: a fetch step exceeded the install timeout
        """
        source = infer_source(spec, self.workspace_root)
        location = self._location(plugin_id, spec, source)
        if not location:
            raise InstallError(
                f"No location given for plugin {plugin_id}",
                plugin_id=plugin_id,
                source=source.value,
                suggestion="Set 'url' or 'path' in the plugin dependency",
            )

        lock = self.load_lock()
        existing = lock.plugins.get(plugin_id)
        if existing is not None and self._is_current(existing, spec, source, location, lock):
            logger.debug(f"Plugin {plugin_id} already installed", component="installer", plugin=plugin_id)
            return existing

        self.plugin_dir.mkdir(parents=True, exist_ok=True)
        start = time.monotonic()
        logger.info(f"Installing plugin {plugin_id} from {source.value}: {location}", component="installer",
                    plugin=plugin_id, source=source.value)

        staged = self._temp_path()
        try:
            if source == PluginSource.PYPI:
                version, entry = await self._install_from_pypi(plugin_id, location, spec.version, staged)
            elif source == PluginSource.GIT:
                version, entry = await self._install_from_git(plugin_id, location, spec.version, staged)
            elif source == PluginSource.LOCAL:
                version, entry = self._install_from_local(plugin_id, location, staged)
            else:
                version, entry = await self._install_from_remote(plugin_id, location, spec.version, staged)

            self._swap_in(plugin_id, staged, entry)
        finally:
            if os.path.lexists(staged):
                _remove_path(staged)

        record = InstalledPlugin(id=plugin_id, version=version, source=source, location=location, entry=entry)

        # Re-read so concurrent lock changes from other installs are kept
        lock = self.load_lock()
        lock.plugins[plugin_id] = record
        self.save_lock(lock)

        logger.plugin_installed(plugin_id, version, source.value, (time.monotonic() - start) * 1000)
        return record

    def _swap_in(self, plugin_id: str, staged: Path, entry: str) -> None:
        """Replace the plugin's current cache entries with the staged one."""
        try:
            for old in self._entries_for(plugin_id, self.load_lock()):
                _remove_path(old)
            staged.rename(self.plugin_dir / entry)
        except OSError as e:
            raise InstallError(f"Failed to move {plugin_id} into the plugin cache", plugin_id=plugin_id, cause=e)

    def remove(self, plugin_id: str) -> InstalledPlugin:
        """Delete a plugin's cache entry and lock record.

        Raises:
            PluginNotInstalledError: the plugin is not in the lock
        """
        lock = self.load_lock()
        record = lock.plugins.get(plugin_id)
        if record is None:
            raise PluginNotInstalledError(plugin_id)

        entry = self._find_cache_entry(plugin_id, lock)
        if entry is not None:
            _remove_path(entry)

        del lock.plugins[plugin_id]
        self.save_lock(lock)
        logger.info(f"Removed plugin {plugin_id}", component="installer", plugin=plugin_id)
        return record

    # ------------------------------------------------------------------
    # Fetchers
    #
    # Each one fills ``staged`` and returns (version, cache entry name).
    # ------------------------------------------------------------------

    async def _run(self, args: list[str], plugin_id: str, source: PluginSource, cwd: Optional[Path] = None) -> str:
        try:
            result = await run_process(args, cwd=cwd, timeout=self.timeout)
        except ProcessTimeout:
            raise InstallTimeoutError(
                f"'{' '.join(args[:3])}' timed out while installing {plugin_id}",
                timeout_seconds=self.timeout,
                plugin_id=plugin_id,
                source=source.value,
            )
        except OSError as e:
            raise InstallError(
                f"Could not run {args[0]}",
                plugin_id=plugin_id,
                source=source.value,
                cause=e,
                suggestion=f"Make sure {Path(args[0]).name} is installed and on PATH",
            )

        if not result.ok:
            raise InstallError(
                f"'{' '.join(args[:3])}' failed with exit code {result.return_code}",
                plugin_id=plugin_id,
                source=source.value,
                details=result.stderr.strip() or result.stdout.strip() or None,
            )
        return result.stdout

    def _temp_path(self) -> Path:
        return self.plugin_dir / f".tmp-{uuid.uuid4().hex[:12]}"

    async def _install_from_pypi(
        self,
        plugin_id: str,
        name: str,
        version: Optional[str],
        staged: Path
    ) -> tuple[str, str]:
        requirement = name
        if version:
            requirement += version if version.startswith(_VERSION_OPERATORS) else f"=={version}"

        await self._run(
            [sys.executable, "-m", "pip", "install", "--disable-pip-version-check",
             "--no-deps", "--target", str(staged), requirement],
            plugin_id,
            PluginSource.PYPI,
        )

        try:
            installed_version, entry = self._inspect_distribution(staged, name, plugin_id)
            (staged / MANIFEST_FILE).write_text(
                json.dumps({"id": plugin_id, "version": installed_version, "entry": entry}, indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise InstallError(f"Failed to unpack {name}", plugin_id=plugin_id, source="pypi", cause=e)
        return installed_version, f"{plugin_id}-{installed_version}"

    def _inspect_distribution(self, target: Path, name: str, plugin_id: str) -> tuple[str, str]:
        """Version and entry module of the distribution pip put in target."""
        dist_infos = sorted(target.glob("*.dist-info"))
        if not dist_infos:
            raise InstallError(f"{name} was not found after installation", plugin_id=plugin_id, source="pypi")
        dist_info = dist_infos[0]

        version = Distribution.at(dist_info).version or "0.0.0"

        top_level = dist_info / "top_level.txt"
        modules = []
        if top_level.is_file():
            modules = [m.strip() for m in top_level.read_text(encoding="utf-8").splitlines() if m.strip()]
        if not modules:
            modules = [re.sub(r"[-.]+", "_", name).lower()]

        for module in modules:
            if (target / module / "__init__.py").is_file():
                return version, f"{module}/__init__.py"
            if (target / f"{module}.py").is_file():
                return version, f"{module}.py"

        raise InstallError(
            f"{name} does not contain an importable module",
            plugin_id=plugin_id,
            source="pypi",
            details=f"Looked for: {', '.join(modules)}",
        )

    async def _install_from_git(
        self,
        plugin_id: str,
        url: str,
        version: Optional[str],
        staged: Path
    ) -> tuple[str, str]:
        current = self.plugin_dir / plugin_id

        if (current / ".git").is_dir():
            logger.debug(f"Updating a copy of the existing clone at {current}", component="installer")
            try:
                shutil.copytree(current, staged, symlinks=True)
            except OSError as e:
                raise InstallError(f"Failed to copy {current}", plugin_id=plugin_id, source="git", cause=e)
            if version:
                await self._run(["git", "fetch", "--tags", "origin"], plugin_id, PluginSource.GIT, cwd=staged)
            else:
                await self._run(["git", "pull"], plugin_id, PluginSource.GIT, cwd=staged)
        else:
            await self._run(["git", "clone", url, str(staged)], plugin_id, PluginSource.GIT)

        if version:
            await self._run(["git", "checkout", version], plugin_id, PluginSource.GIT, cwd=staged)

        manifest = read_manifest(staged) or {}
        return str(manifest.get("version") or version or "latest"), plugin_id

    def _install_from_local(self, plugin_id: str, local_path: str, staged: Path) -> tuple[str, str]:
        resolved = Path(local_path)
        if not resolved.is_absolute():
            resolved = self.workspace_root / resolved
        resolved = resolved.resolve()
        if not resolved.exists():
            raise InstallError(f"Local path not found: {local_path}", plugin_id=plugin_id, source="local")

        try:
            if resolved.is_dir():
                staged.symlink_to(resolved, target_is_directory=True)
                manifest = read_manifest(resolved) or {}
                return str(manifest.get("version") or "1.0.0"), plugin_id

            shutil.copy2(resolved, staged)
            return "1.0.0", f"{plugin_id}{resolved.suffix}"
        except OSError as e:
            raise InstallError(f"Failed to link {local_path}", plugin_id=plugin_id, source="local", cause=e)

    async def _install_from_remote(
        self,
        plugin_id: str,
        url: str,
        version: Optional[str],
        staged: Path
    ) -> tuple[str, str]:
        suffix = Path(urlparse(url).path).suffix or ".py"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(staged, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.TimeoutException:
            raise InstallTimeoutError(
                f"Download of {url} timed out",
                timeout_seconds=self.timeout,
                plugin_id=plugin_id,
                source="remote",
            )
        except httpx.HTTPError as e:
            raise InstallError(f"Failed to download {url}", plugin_id=plugin_id, source="remote", cause=e)
        except OSError as e:
            raise InstallError(f"Failed to save {url}", plugin_id=plugin_id, source="remote", cause=e)

        return version or "1.0.0", f"{plugin_id}{suffix}"
