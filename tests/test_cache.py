"""Tests for the persistent analysis cache."""

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from log_enforcer.config import EnforcerConfig, build_config
from log_enforcer.engine import AnalysisCache, cache_key
from log_enforcer.engine.cache import format_bytes
from log_enforcer.models import FileAnalysisResult, Violation, ViolationKind


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / ".log-enforcer-cache"


@pytest.fixture
def cache(cache_dir: Path, clock: FakeClock) -> AnalysisCache:
    return AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)


@pytest.fixture
def result() -> FileAnalysisResult:
    return FileAnalysisResult(
        file_path="app/orders.py",
        language="python",
        violations=[
            Violation(
                file_path="app/orders.py",
                line=8,
                column=4,
                kind=ViolationKind.PRINT_STATEMENT,
                message="print() call found",
            )
        ],
        has_logger_import=True,
        logger_names=["logger"],
    )


class TestCacheKey:
    """Tests for key derivation."""

    def test_stable(self, config: EnforcerConfig):
        assert cache_key("a.py", 10, config) == cache_key("a.py", 10, build_config())

    def test_fingerprint_string_equivalent(self, config: EnforcerConfig):
        assert cache_key("a.py", 10, config) == cache_key("a.py", 10, config.fingerprint())

    @pytest.mark.parametrize(
        "other",
        [
            ("b.py", 10, None),
            ("a.py", 11, None),
            ("a.py", 10, {"languages": {"python": {"severity": "warning"}}}),
        ],
    )
    def test_any_component_changes_key(self, config: EnforcerConfig, other):
        path, mtime, overrides = other
        other_config = build_config(overrides) if overrides else config
        assert cache_key(path, mtime, other_config) != cache_key("a.py", 10, config)


class TestAnalysisCache:
    """Tests for get/set, expiry and corruption handling."""

    def test_miss_then_hit(self, cache: AnalysisCache, config: EnforcerConfig, result: FileAnalysisResult):
        assert cache.get("app/orders.py", 1, config) is None

        key = cache.set("app/orders.py", 1, config, result)
        entry = cache.get("app/orders.py", 1, config)

        assert entry is not None
        assert entry.key == key
        assert entry.payload.to_dict() == result.to_dict()

    def test_persists_across_instances(
        self, cache: AnalysisCache, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result
    ):
        cache.set("app/orders.py", 1, config, result)

        reopened = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)
        entry = reopened.get("app/orders.py", 1, config)

        assert entry is not None
        assert entry.payload.violations[0].line == 8

    def test_layout(self, cache: AnalysisCache, cache_dir: Path, config: EnforcerConfig, result):
        """One index plus one blob per entry."""
        key = cache.set("app/orders.py", 1, config, result)

        index = json.loads((cache_dir / "index.json").read_text(encoding="utf-8"))
        assert index[key]["file"] == f"{key}.json"
        assert index[key]["file_path"] == "app/orders.py"
        assert (cache_dir / f"{key}.json").is_file()

    def test_modified_file_misses(self, cache: AnalysisCache, config: EnforcerConfig, result):
        """A changed mtime never returns the stale entry."""
        cache.set("app/orders.py", 1, config, result)
        assert cache.get("app/orders.py", 2, config) is None

    def test_config_change_misses(self, cache: AnalysisCache, config: EnforcerConfig, result):
        cache.set("app/orders.py", 1, config, result)
        changed = build_config({"rules": {"noPrintStatements": {"severity": "warning"}}})
        assert cache.get("app/orders.py", 1, changed) is None

    def test_expired_on_read(self, cache: AnalysisCache, clock: FakeClock, config: EnforcerConfig, result):
        key = cache.set("app/orders.py", 1, config, result)

        clock.now += 3601

        assert cache.get("app/orders.py", 1, config) is None
        assert len(cache) == 0
        assert not (cache.directory / f"{key}.json").exists()

    def test_expired_purged_on_load(
        self, cache: AnalysisCache, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result
    ):
        cache.set("app/orders.py", 1, config, result)
        clock.now += 1800
        cache.set("app/other.py", 1, config, result)

        clock.now += 1801
        reopened = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)

        assert len(reopened) == 1
        assert reopened.get("app/other.py", 1, config) is not None
        assert len(list(cache_dir.glob("*.json"))) == 2  # index + one blob

    def test_corrupt_index_starts_empty(self, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result):
        cache_dir.mkdir()
        (cache_dir / "index.json").write_text("{truncated", encoding="utf-8")

        cache = AnalysisCache(cache_dir, clock=clock)

        assert len(cache) == 0
        assert cache.set("app/orders.py", 1, config, result) is not None
        assert cache.get("app/orders.py", 1, config) is not None

    @pytest.mark.parametrize("blob", ["not json", '{"language": "python"}', "[1, 2]"])
    def test_corrupt_blob_is_a_miss(self, cache: AnalysisCache, config: EnforcerConfig, result, blob: str):
        key = cache.set("app/orders.py", 1, config, result)
        (cache.directory / f"{key}.json").write_text(blob, encoding="utf-8")

        assert cache.get("app/orders.py", 1, config) is None
        assert len(cache) == 0

    def test_missing_blob_is_a_miss(self, cache: AnalysisCache, config: EnforcerConfig, result):
        key = cache.set("app/orders.py", 1, config, result)
        (cache.directory / f"{key}.json").unlink()
        assert cache.get("app/orders.py", 1, config) is None

    def test_clear(self, cache: AnalysisCache, cache_dir: Path, config: EnforcerConfig, result):
        cache.set("a.py", 1, config, result)
        cache.set("b.py", 1, config, result)

        assert cache.clear() == 2
        assert len(cache) == 0
        assert list(cache_dir.glob("*.json")) == []
        assert cache.get("a.py", 1, config) is None

    def test_clear_empty(self, cache: AnalysisCache):
        assert cache.clear() == 0

    def test_threaded_sets_share_one_index(
        self, cache: AnalysisCache, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result
    ):
        """Worker threads writing through one handle never lose or corrupt entries."""
        with ThreadPoolExecutor(max_workers=8) as pool:
            keys = list(pool.map(lambda i: cache.set(f"app/m{i}.py", 1, config, result), range(100)))

        assert None not in keys
        reopened = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)
        assert len(reopened) == 100
        assert all(reopened.get(f"app/m{i}.py", 1, config) is not None for i in range(100))

    def test_two_handles_last_writer_wins(self, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result):
        first = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)
        second = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)

        first.set("app/a.py", 1, config, result)
        second.set("app/b.py", 1, config, result)

        reopened = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)
        assert len(reopened) == 1
        assert reopened.get("app/a.py", 1, config) is None
        assert reopened.get("app/b.py", 1, config) is not None
        assert len(list(cache_dir.glob("*.json"))) == 2  # index + the surviving blob

        # the losing handle's blob is gone, so its own entry degrades to a miss
        assert first.get("app/a.py", 1, config) is None

    def test_orphan_blobs_removed_on_load(
        self, cache: AnalysisCache, cache_dir: Path, clock: FakeClock, config: EnforcerConfig, result
    ):
        key = cache.set("app/orders.py", 1, config, result)
        (cache_dir / "0123abcd.json").write_text("{}", encoding="utf-8")

        reopened = AnalysisCache(cache_dir, ttl_seconds=3600, clock=clock)

        assert not (cache_dir / "0123abcd.json").exists()
        assert (cache_dir / f"{key}.json").is_file()
        assert reopened.get("app/orders.py", 1, config) is not None

    def test_stats(self, cache: AnalysisCache, config: EnforcerConfig, result):
        assert cache.stats()["entries"] == 0

        cache.set("a.py", 1, config, result)
        stats = cache.stats()

        assert stats["enabled"]
        assert stats["entries"] == 1
        assert stats["size"] > 0
        assert stats["human_size"].endswith(("B", "KB"))

    def test_disabled(self, tmp_path: Path, config: EnforcerConfig, result):
        cache = AnalysisCache(tmp_path / "cache", enabled=False)

        assert cache.set("a.py", 1, config, result) is None
        assert cache.get("a.py", 1, config) is None
        assert not (tmp_path / "cache").exists()

    def test_write_failure_is_not_fatal(self, tmp_path: Path, config: EnforcerConfig, result):
        """A cache directory that cannot be created just disables storage."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        cache = AnalysisCache(blocker / "cache")

        assert cache.set("a.py", 1, config, result) is None

    def test_from_config_relative_to_root(self, tmp_path: Path):
        config = build_config({"performance": {"cacheDirectory": ".cache/logs", "cacheTtlHours": 2}})
        cache = AnalysisCache.from_config(config, tmp_path)
        assert cache.directory == tmp_path / ".cache" / "logs"
        assert cache.ttl_seconds == 7200


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 B"), (512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB")],
)
def test_format_bytes(size: int, expected: str):
    assert format_bytes(size) == expected
