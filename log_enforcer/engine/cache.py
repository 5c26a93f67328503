"""Analysis cache keyed by (path, mtime, config fingerprint).

Layout of the cache directory:
- ``index.json``: key -> {file, file_path, timestamp}
- ``<key>.json``: one serialized FileAnalysisResult per entry

Every write goes through a temp file and os.replace, so concurrent writers
are last-writer-wins and readers never see a torn file. A lost update only
costs a redundant reparse.
"""

import hashlib
import json
import threading
import time
from pathlib import Path
from typing import Any, Callable

import structlog

from log_enforcer.config import EnforcerConfig
from log_enforcer.errors import CacheCorruptionError
from log_enforcer.files import atomic_write
from log_enforcer.models import CacheEntry, FileAnalysisResult

logger = structlog.get_logger()

INDEX_FILENAME = "index.json"
DEFAULT_TTL_SECONDS = 24 * 3600


def cache_key(file_path: str, mtime: float | int, config: EnforcerConfig | str) -> str:
    """sha256 over the file path, its mtime and the config fingerprint."""
    fingerprint = config if isinstance(config, str) else config.fingerprint()
    material = json.dumps(
        {"file_path": str(file_path), "mtime": mtime, "config": fingerprint},
        sort_keys=True,
    )
    return hashlib.sha256(material.encode()).hexdigest()


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class AnalysisCache:
    """Persistent index-plus-blobs store of per-file analysis results.

    The cache is best-effort: read or write failures are logged and turn
    into misses, they never fail a run.
    """

    def __init__(
        self,
        directory: str | Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.directory = Path(directory)
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock
        self._index: dict[str, dict[str, Any]] = {}
        # guards the in-memory index across worker threads
        self._lock = threading.Lock()
        self._logger = logger.bind(component="AnalysisCache")

        if self.enabled:
            self._load()

    @classmethod
    def from_config(cls, config: EnforcerConfig, root: str | Path | None = None) -> "AnalysisCache":
        directory = Path(config.performance.cache_directory)
        if not directory.is_absolute():
            directory = Path(root or Path.cwd()) / directory
        return cls(
            directory,
            ttl_seconds=config.cache_ttl_seconds,
            enabled=config.performance.enable_cache,
        )

    @classmethod
    def disabled(cls) -> "AnalysisCache":
        return cls(Path("."), enabled=False)

    @property
    def index_path(self) -> Path:
        return self.directory / INDEX_FILENAME

    def __len__(self) -> int:
        return len(self._index)

    def get(self, file_path: str, mtime: float | int, config: EnforcerConfig | str) -> CacheEntry | None:
        """Cached result for the exact (path, mtime, config) triple, if fresh."""
        if not self.enabled:
            return None

        key = cache_key(file_path, mtime, config)
        with self._lock:
            meta = self._index.get(key)
        if meta is None:
            return None

        if self._expired(meta):
            self._evict(key)
            return None

        try:
            payload = self._read_blob(key)
        except CacheCorruptionError as e:
            self._logger.warning("Dropping corrupt cache entry", key=key, error=str(e))
            self._evict(key)
            return None

        return CacheEntry(
            key=key,
            file_path=meta.get("file_path", file_path),
            timestamp=float(meta["timestamp"]),
            payload=payload,
        )

    def set(
        self,
        file_path: str,
        mtime: float | int,
        config: EnforcerConfig | str,
        result: FileAnalysisResult,
    ) -> str | None:
        """Store a result; returns its key, or None if nothing was written."""
        if not self.enabled:
            return None

        key = cache_key(file_path, mtime, config)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            atomic_write(self._blob_path(key), json.dumps(result.to_dict()).encode("utf-8"), keep_mode=False)
            with self._lock:
                self._index[key] = {
                    "file": f"{key}.json",
                    "file_path": str(file_path),
                    "timestamp": self._clock(),
                }
                self._save_index()
        except OSError as e:
            self._logger.warning("Cache write failed", file=str(file_path), error=str(e))
            return None

        return key

    def clear(self) -> int:
        """Remove every blob and then the index. Returns entries removed."""
        with self._lock:
            removed = len(self._index)
            keys = list(self._index)
            self._index = {}

        if self.directory.is_dir():
            for key in keys:
                self._blob_path(key).unlink(missing_ok=True)
            for blob in self.directory.glob("*.json"):
                if blob.name != INDEX_FILENAME:
                    blob.unlink(missing_ok=True)
            self.index_path.unlink(missing_ok=True)

        self._logger.info("Cache cleared", entries=removed)
        return removed

    def stats(self) -> dict[str, Any]:
        """Entry count and on-disk size."""
        size = 0
        if self.directory.is_dir():
            for path in self.directory.glob("*.json"):
                try:
                    size += path.stat().st_size
                except OSError:
                    continue
        return {
            "enabled": self.enabled,
            "directory": str(self.directory),
            "entries": len(self._index),
            "size": size,
            "human_size": format_bytes(size),
        }

    def _load(self) -> None:
        try:
            self._index = self._read_index()
        except CacheCorruptionError as e:
            self._logger.warning("Cache index unreadable, starting empty", error=str(e))
            self._index = {}

        expired = [key for key, meta in self._index.items() if self._expired(meta)]
        for key in expired:
            del self._index[key]
            self._blob_path(key).unlink(missing_ok=True)
        orphans = self._remove_orphans()

        if expired:
            try:
                self._save_index()
            except OSError as e:
                self._logger.warning("Cache index write failed", error=str(e))
        if expired or orphans:
            self._logger.debug("Cache entries purged", expired=len(expired), orphaned=orphans)

    def _remove_orphans(self) -> int:
        """Delete blobs the index does not reference, e.g. from a writer that lost the index race."""
        if not self.directory.is_dir():
            return 0
        removed = 0
        for blob in self.directory.glob("*.json"):
            if blob.name == INDEX_FILENAME or blob.stem in self._index:
                continue
            blob.unlink(missing_ok=True)
            removed += 1
        return removed

    def _read_index(self) -> dict[str, dict[str, Any]]:
        if not self.index_path.exists():
            return {}
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheCorruptionError(f"Cannot read {self.index_path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheCorruptionError(f"{self.index_path} is not a JSON object")
        return {
            key: meta
            for key, meta in data.items()
            if isinstance(meta, dict) and isinstance(meta.get("timestamp"), (int, float))
        }

    def _read_blob(self, key: str) -> FileAnalysisResult:
        path = self._blob_path(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return FileAnalysisResult.from_dict(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheCorruptionError(f"Cannot read {path.name}: {e}") from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CacheCorruptionError(f"Malformed cache payload {path.name}: {e}") from e

    def _save_index(self) -> None:
        atomic_write(self.index_path, json.dumps(self._index, indent=2).encode("utf-8"), keep_mode=False)

    def _evict(self, key: str) -> None:
        with self._lock:
            if self._index.pop(key, None) is None:
                return
            try:
                self._save_index()
            except OSError as e:
                self._logger.warning("Cache index write failed", error=str(e))
        self._blob_path(key).unlink(missing_ok=True)

    def _expired(self, meta: dict[str, Any]) -> bool:
        return self._clock() - float(meta["timestamp"]) > self.ttl_seconds

    def _blob_path(self, key: str) -> Path:
        return self.directory / f"{key}.json"
