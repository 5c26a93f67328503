"""Tests for the enforcement orchestrator."""

import asyncio
import json
import os
from pathlib import Path
from typing import Callable

import pytest

from log_enforcer.config import build_config
from log_enforcer.engine import AnalysisCache, LogEnforcer
from log_enforcer.errors import ConfigurationError
from log_enforcer.models import EnforceOptions
from conftest import write_file


@pytest.fixture
def sample_project(
    project: Path,
    python_with_prints: str,
    python_clean: str,
    javascript_with_console: str,
) -> Path:
    """Mixed-language project with excluded, denied and unsupported files."""
    write_file(project, "app/orders.py", python_with_prints)
    write_file(project, "app/clean.py", python_clean)
    write_file(project, "web/handler.js", javascript_with_console)
    write_file(project, "tests/test_orders.py", "print('fine in tests')\n")
    write_file(project, "scripts/seed.py", "print('fine in scripts')\n")
    write_file(project, "node_modules/lib/index.js", "console.log('vendored');\n")
    write_file(project, "static/vendor.min.js", "console.log('minified');\n")
    write_file(project, "README.md", "print('docs')\n")
    return project


def relative_names(paths: list[Path], root: Path) -> list[str]:
    return sorted(p.relative_to(root).as_posix() for p in paths)


class TestFileSelection:
    """Tests for enumeration and filtering."""

    def test_default_patterns(self, sample_project: Path, make_enforcer: Callable[..., LogEnforcer]):
        """Deny-listed directories are pruned and unsupported files ignored."""
        enforcer = make_enforcer()
        targets = enforcer.select_files(EnforceOptions())

        assert sorted(t.relative for t in targets) == [
            "app/clean.py",
            "app/orders.py",
            "scripts/seed.py",
            "tests/test_orders.py",
            "web/handler.js",
        ]

    def test_find_files_prunes_deny_dirs(self, sample_project: Path, make_enforcer):
        found = make_enforcer().find_files(["**/*.js"])
        # vendor.min.js is matched here and dropped by select_files
        assert relative_names(found, sample_project) == ["static/vendor.min.js", "web/handler.js"]

    def test_directory_pattern(self, sample_project: Path, make_enforcer):
        """A plain directory name covers everything beneath it."""
        found = make_enforcer().find_files(["app"])
        assert relative_names(found, sample_project) == ["app/clean.py", "app/orders.py"]

    def test_file_pattern(self, sample_project: Path, make_enforcer):
        found = make_enforcer().find_files(["web/handler.js"])
        assert relative_names(found, sample_project) == ["web/handler.js"]

    def test_absolute_pattern_outside_root_ignored(self, sample_project: Path, tmp_path: Path, make_enforcer):
        outside = write_file(tmp_path, "elsewhere/x.py", "print('x')\n")
        assert make_enforcer().find_files([str(outside)]) == []

    def test_absolute_pattern_inside_root(self, sample_project: Path, make_enforcer):
        found = make_enforcer().find_files([str(sample_project / "app" / "*.py")])
        assert relative_names(found, sample_project) == ["app/clean.py", "app/orders.py"]

    def test_explicit_files_still_filtered(self, sample_project: Path, make_enforcer):
        """Explicit files bypass enumeration but not the deny-list."""
        options = EnforceOptions(
            files=["app/orders.py", "node_modules/lib/index.js", "static/vendor.min.js", "README.md"]
        )
        targets = make_enforcer().select_files(options)
        assert [t.relative for t in targets] == ["app/orders.py"]

    def test_disabled_language_dropped(self, sample_project: Path, make_enforcer):
        config = build_config({"languages": {"javascript": {"enabled": False}}})
        targets = make_enforcer(config).select_files(EnforceOptions())
        assert all(t.analyzer.language == "python" for t in targets)

    def test_exclude_patterns_drop_files(self, sample_project: Path, make_enforcer):
        """exclude_patterns remove files before classification, so they are not counted."""
        config = build_config({"languages": {"python": {"excludePatterns": ["app/clean.py"]}}})
        targets = make_enforcer(config).select_files(EnforceOptions())
        assert "app/clean.py" not in [t.relative for t in targets]

    def test_typescript_uses_own_analyzer(self, project: Path, make_enforcer, typescript_with_console: str):
        write_file(project, "src/load.ts", typescript_with_console)
        (target,) = make_enforcer().select_files(EnforceOptions())
        assert target.analyzer.language == "typescript"


class TestEnforce:
    """Tests for running enforcement."""

    @pytest.mark.asyncio
    async def test_reports_violations(self, sample_project: Path, make_enforcer):
        result = await make_enforcer().enforce(EnforceOptions())
        stats = result.stats

        assert not result.success
        assert stats.files_total == 5
        assert stats.files_excluded == 2
        assert stats.exclusion_reasons == {"test_file": 1, "cli_file": 1}
        assert stats.files_analyzed == 3
        assert stats.files_with_violations == 2
        assert stats.total_violations == 4
        assert stats.violations_by_type == {"print()": 2, "console.log()": 1, "console.error()": 1}
        assert stats.files_errored == 0

    @pytest.mark.asyncio
    async def test_clean_project_succeeds(self, project: Path, python_clean: str, make_enforcer):
        write_file(project, "app/clean.py", python_clean)
        result = await make_enforcer().enforce()
        assert result.success
        assert result.violations == []

    @pytest.mark.asyncio
    async def test_excluded_files_never_report(self, project: Path, make_enforcer):
        write_file(project, "tests/test_api.py", "print('x')\n")
        write_file(project, "src/app.test.ts", "console.log('x');\n")

        result = await make_enforcer().enforce()

        assert result.success
        assert result.stats.files_excluded == 2
        assert all(r.excluded and not r.violations for r in result.results)

    @pytest.mark.asyncio
    async def test_errors_do_not_fail_run(self, project: Path, make_enforcer):
        """A file that cannot be parsed is reported but does not flip success."""
        write_file(project, "app/broken.py", "def broken(:\n")
        write_file(project, "app/ok.py", "x = 1\n")

        result = await make_enforcer().enforce()

        assert result.success
        assert result.stats.files_errored == 1
        assert result.errors[0].error_type == "ParseError"
        assert result.to_dict()["errors"][0]["file_path"].endswith("broken.py")

    @pytest.mark.asyncio
    async def test_unexpected_failure_isolated(self, sample_project: Path, make_enforcer, monkeypatch):
        """An exception escaping one file does not stop the others."""
        enforcer = make_enforcer()
        original = enforcer.process_file

        def flaky(target, options):
            if target.relative == "app/clean.py":
                raise RuntimeError("boom")
            return original(target, options)

        monkeypatch.setattr(enforcer, "process_file", flaky)
        result = await enforcer.enforce()

        assert result.stats.files_errored == 1
        assert result.errors[0].error_type == "RuntimeError"
        assert result.stats.total_violations == 4

    @pytest.mark.asyncio
    async def test_disabled_config(self, sample_project: Path, make_enforcer):
        result = await make_enforcer(build_config({"enabled": False})).enforce()
        assert result.success
        assert result.stats.files_total == 0

    @pytest.mark.asyncio
    async def test_results_order_is_stable(self, sample_project: Path, make_enforcer):
        """Violations are reported in file order, then line order."""
        result = await make_enforcer(build_config({"performance": {"parallelism": 3}})).enforce()
        lines = [(Path(v.file_path).name, v.line) for v in result.violations]
        assert lines == [("orders.py", 8), ("orders.py", 10), ("handler.js", 6), ("handler.js", 7)]

    @pytest.mark.asyncio
    async def test_abort_before_start(self, sample_project: Path, make_enforcer):
        abort = asyncio.Event()
        abort.set()

        result = await make_enforcer().enforce(abort=abort)

        assert result.stats.aborted
        assert result.stats.files_total == 0
        assert result.stats.files_skipped == 5

    @pytest.mark.asyncio
    async def test_abort_between_batches(self, sample_project: Path, make_enforcer, monkeypatch):
        """In-flight files finish; later batches are skipped."""
        enforcer = make_enforcer(build_config({"performance": {"parallelism": 2}}))
        abort = asyncio.Event()
        original = enforcer.process_file

        def process_then_abort(target, options):
            abort.set()
            return original(target, options)

        monkeypatch.setattr(enforcer, "process_file", process_then_abort)
        result = await enforcer.enforce(abort=abort)

        assert result.stats.aborted
        assert result.stats.files_total == 2
        assert result.stats.files_skipped == 3


class TestEnforceFix:
    """Tests for fix and dry-run accounting."""

    @pytest.mark.asyncio
    async def test_fix_resolves_violations(self, sample_project: Path, make_enforcer):
        result = await make_enforcer().enforce(EnforceOptions(fix=True))

        assert result.success
        assert result.violations == []
        assert result.stats.files_fixed == 2
        assert result.stats.total_changes == 8  # 2 header lines + 2 rewrites per file
        assert "logger.error(\"empty order\")" in (sample_project / "app/orders.py").read_text(encoding="utf-8")
        assert all(f.written for f in result.fixes)

    @pytest.mark.asyncio
    async def test_dry_run_keeps_violations(self, sample_project: Path, make_enforcer, python_with_prints: str):
        result = await make_enforcer().enforce(EnforceOptions(fix=True, dry_run=True))

        assert not result.success
        assert result.stats.total_violations == 4
        assert result.stats.files_fixed == 2
        assert (sample_project / "app/orders.py").read_text(encoding="utf-8") == python_with_prints

    @pytest.mark.asyncio
    async def test_auto_fix_disabled(self, sample_project: Path, make_enforcer, python_with_prints: str):
        config = build_config({"languages": {"python": {"autoFix": False}}})
        result = await make_enforcer(config).enforce(EnforceOptions(fix=True))

        assert not result.success
        assert result.stats.total_violations == 2  # the python prints remain
        assert (sample_project / "app/orders.py").read_text(encoding="utf-8") == python_with_prints

    @pytest.mark.asyncio
    async def test_fix_failure_counted(self, project: Path, make_enforcer, monkeypatch):
        write_file(project, "app/a.py", "print('x')\n")
        enforcer = make_enforcer()
        monkeypatch.setattr(enforcer.analyzers["python"].fixer, "level_method", lambda level: "info(")

        result = await enforcer.enforce(EnforceOptions(fix=True))

        assert not result.success
        assert result.stats.fix_failures == 1
        assert result.stats.files_fixed == 0
        assert result.fixes[0].error.startswith("RegenerationError")

    @pytest.mark.asyncio
    async def test_module_names_use_run_root(self, project: Path, make_enforcer, make_config):
        """Module-derived names are relative to the root the run was given."""
        config = make_config(languages={"python": {"namingStrategy": "module"}})
        path = write_file(project, "pkg/api/user_service.py", "print('x')\n")

        result = await make_enforcer(config).enforce(EnforceOptions(fix=True, root=project / "pkg"))

        assert result.success
        assert path.read_text(encoding="utf-8") == (
            "import logging\n"
            "api_user_service_logger = logging.getLogger(__name__)\n"
            "api_user_service_logger.info('x')\n"
        )


class TestEnforceCache:
    """Tests for cache use across runs."""

    @pytest.mark.asyncio
    async def test_second_run_hits_cache(self, sample_project: Path, make_enforcer):
        cache = AnalysisCache(sample_project / ".log-enforcer-cache")
        enforcer = make_enforcer(cache=cache)

        first = await enforcer.enforce()
        second = await enforcer.enforce()

        assert first.stats.cache_hits == 0
        assert second.stats.cache_hits == 3  # excluded files are never cached
        assert [v.to_dict() for v in second.violations] == [v.to_dict() for v in first.violations]

    @pytest.mark.asyncio
    async def test_modified_file_reanalyzed(self, project: Path, make_enforcer):
        path = write_file(project, "app/a.py", "x = 1\n")
        enforcer = make_enforcer(cache=AnalysisCache(project / ".log-enforcer-cache"))
        assert (await enforcer.enforce()).success

        path.write_text("print('new')\n", encoding="utf-8")
        stat = path.stat()
        # make sure the mtime moves even on coarse filesystem clocks
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        result = await enforcer.enforce()
        assert not result.success
        assert result.stats.cache_hits == 0

    def test_clear_and_stats(self, project: Path, make_enforcer):
        cache = AnalysisCache(project / ".log-enforcer-cache")
        enforcer = make_enforcer(cache=cache)
        write_file(project, "app/a.py", "print('x')\n")
        asyncio.run(enforcer.enforce())

        assert enforcer.cache_stats()["entries"] == 1
        assert enforcer.clear_cache() == 1
        assert enforcer.cache_stats()["entries"] == 0


class TestFromProject:
    """Tests for building an enforcer from a project directory."""

    def test_loads_project_config(self, project: Path):
        write_file(project, ".log-enforcer.json", json.dumps({"performance": {"parallelism": 2}}))
        enforcer = LogEnforcer.from_project(project)
        assert enforcer.config.performance.parallelism == 2
        assert enforcer.root == project.resolve()

    def test_invalid_config_raises(self, project: Path):
        write_file(project, ".log-enforcer.json", json.dumps({"performance": {"parallelism": 0}}))
        with pytest.raises(ConfigurationError):
            LogEnforcer.from_project(project)
