"""End-to-end integration tests for the log enforcer.

Tests the complete pipeline:
1. Orchestrator -> file selection and batching
2. Exclusion Classifier -> test/CLI exemption
3. Detector -> violation detection with suppression
4. Fixer -> import/instance insertion and call rewriting
5. Cache -> reuse of unchanged results
"""

import ast
import os
from pathlib import Path

import pytest

from log_enforcer.audit import build_analyzer
from log_enforcer.audit import detector as detector_module
from log_enforcer.config import build_config
from log_enforcer.engine import AnalysisCache
from log_enforcer.models import EnforceOptions, ExclusionReason
from conftest import write_file


class TestScenarios:
    """Worked end-to-end scenarios."""

    @pytest.mark.asyncio
    async def test_print_without_logger(self, project: Path, make_enforcer):
        """A five-line module gains a logger and its print becomes logger.info."""
        path = write_file(
            project,
            "app/report.py",
            "import os\n\nprint('total', os.getpid())\n\nVALUE = 1\n",
        )
        enforcer = make_enforcer()

        found = await enforcer.enforce()
        assert [(v.line, v.label) for v in found.violations] == [(3, "print()")]

        fixed = await enforcer.enforce(EnforceOptions(fix=True))
        assert fixed.success
        assert path.read_text(encoding="utf-8") == (
            "import os\n"
            "import logging\n"
            "logger = logging.getLogger(__name__)\n"
            "\n"
            "logger.info('total', os.getpid())\n"
            "\n"
            "VALUE = 1\n"
        )

        again = await enforcer.enforce()
        assert again.success

    @pytest.mark.asyncio
    async def test_existing_logger_reused(self, project: Path, make_enforcer):
        """A module with appLog already set up gets no duplicate import or instance."""
        path = write_file(
            project,
            "src/jobs/runner.js",
            "const winston = require('winston');\n"
            "const appLog = winston.createLogger({ level: 'info' });\n"
            "\n"
            "function prepare(job) {\n"
            "  return job;\n"
            "}\n"
            "\n"
            "function run(job) {\n"
            "  prepare(job);\n"
            "  console.warn('slow job', job.id);\n"
            "}\n"
            "\n"
            "module.exports = { run };\n",
        )
        original = path.read_text(encoding="utf-8")
        enforcer = make_enforcer()

        found = await enforcer.enforce()
        assert [(v.line, v.method, v.level) for v in found.violations] == [(10, "warn", "warn")]

        fixed = await enforcer.enforce(EnforceOptions(fix=True))
        assert fixed.success
        assert fixed.stats.total_changes == 1
        assert path.read_text(encoding="utf-8") == original.replace("console.warn", "appLog.warn")

    def test_same_content_distinct_cache_entries(self, tmp_path: Path, config, python_with_prints: str):
        """Two identical files with different mtimes are cached separately."""
        first = write_file(tmp_path, "a/orders.py", python_with_prints)
        second = write_file(tmp_path, "b/orders.py", python_with_prints)
        os.utime(second, ns=(first.stat().st_atime_ns, first.stat().st_mtime_ns + 5_000_000_000))

        analyzer = build_analyzer(config, "python")
        cache = AnalysisCache(tmp_path / "cache")
        keys = {
            cache.set(str(path), path.stat().st_mtime_ns, config, analyzer.detect(path))
            for path in (first, second)
        }

        assert len(keys) == 2
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_unbalanced_syntax_untouched(self, project: Path, make_enforcer, config):
        path = write_file(project, "app/broken.py", "def broken(:\n    print('x'\n")
        original = path.read_bytes()

        analyzer = build_analyzer(config, "python", project)
        result = analyzer.analyze(path, "app/broken.py")
        assert result.error
        assert result.violations == []

        fix = analyzer.fix(path)
        assert not fix.success

        run = await make_enforcer().enforce(EnforceOptions(fix=True))
        assert run.stats.files_errored == 1
        assert path.read_bytes() == original


class TestProperties:
    """Invariants that hold for any input."""

    @pytest.mark.parametrize(
        "relative,code",
        [
            ("app/clean.py", "import logging\nlog = logging.getLogger(__name__)\nlog.info('x')\n"),
            ("app/strings.py", "text = 'print(\"x\")'\n# print('commented')\nprinter = 1\n"),
            ("app/method.py", "class Out:\n    def print(self):\n        pass\n\nOut().print()\n"),
            ("web/ok.js", "const pino = require('pino')();\npino.info('x');\n// console.log('x')\n"),
            ("web/shadow.ts", "const log = { console: 1 };\nconst s = 'console.log(1)';\n"),
        ],
    )
    def test_no_false_positives(self, config, tmp_path: Path, relative: str, code: str):
        path = write_file(tmp_path, relative, code)
        language = "python" if relative.endswith(".py") else ("typescript" if relative.endswith(".ts") else "javascript")

        result = build_analyzer(config, language).analyze(path, relative)

        assert result.violations == []
        assert not result.excluded
        assert not result.errored

    def test_excluded_files_are_not_parsed(self, config, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        def fail_parse(*args, **kwargs):
            raise AssertionError("excluded file was parsed")

        monkeypatch.setattr(detector_module, "parse_bytes", fail_parse)
        path = write_file(tmp_path, "tests/test_api.py", "print('x')\n")

        result = build_analyzer(config, "python").analyze(path, "tests/test_api.py")

        assert result.excluded
        assert result.exclusion_reason == ExclusionReason.TEST_FILE

    @pytest.mark.parametrize("language,suffix", [("python", ".py"), ("javascript", ".js"), ("typescript", ".tsx")])
    def test_fix_is_idempotent_and_parses(self, config, tmp_path: Path, language: str, suffix: str):
        sources = {
            "python": "def f(x):\n    print(x)\n    print('done', end='')\n",
            "javascript": "function f(x) {\n  console.log(x);\n  console.error('done');\n}\n",
            "typescript": "export const F = () => {\n  console.info('render');\n  return <div />;\n};\n",
        }
        path = write_file(tmp_path, f"mod{suffix}", sources[language])
        analyzer = build_analyzer(config, language)

        first = analyzer.fix(path)
        second = analyzer.fix(path)

        assert first.success and first.written
        assert second.success
        assert second.changes == []
        if language == "python":
            ast.parse(first.fixed_content)
        assert analyzer.detect(path).violations == []

    def test_violations_sorted(self, config):
        code = "x = [print(1), print(2)]\nprint(3); print(4)\n\n\nprint(5)\n"
        analyzer = build_analyzer(config, "python")
        result = analyzer.detector.detect_source(code, "m.py")
        positions = [(v.line, v.column) for v in result.violations]
        assert positions == sorted(positions)
        assert len(positions) == 5

    @pytest.mark.parametrize(
        "language,code",
        [
            ("python", "# log-enforcer-disable-next-line\nprint('allowed')\nprint('flagged')\n"),
            ("javascript", "// log-enforcer-disable-next-line\nconsole.log('allowed');\nconsole.log('flagged');\n"),
        ],
    )
    def test_suppression(self, config, language: str, code: str):
        analyzer = build_analyzer(config, language)
        result = analyzer.detector.detect_source(code, "m.py" if language == "python" else "m.js")
        assert [v.line for v in result.violations] == [3]

    def test_custom_suppression_comment(self):
        config = build_config({"suppression": {"disableComment": "noqa: print"}})
        analyzer = build_analyzer(config, "python")
        result = analyzer.detector.detect_source("print('a')  \n# noqa: print\nprint('b')\n", "m.py")
        assert [v.line for v in result.violations] == [1]
