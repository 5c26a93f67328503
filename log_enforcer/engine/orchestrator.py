"""Enforcement Orchestrator - runs the per-file pipeline over a project.

For each selected file: Classify -> Cache -> Detect (-> Fix). Files are
processed in bounded-concurrency batches; a run-level abort stops new
batches from starting while in-flight files finish.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

from log_enforcer.audit.languages import LanguageAnalyzer, build_analyzers, language_for
from log_enforcer.audit.patterns import PatternSet, normalize_path
from log_enforcer.config import EnforcerConfig, build_config, load_config
from log_enforcer.engine.cache import AnalysisCache
from log_enforcer.models import (
    EnforceOptions,
    EnforcementResult,
    EnforcementStats,
    FileAnalysisResult,
    FixResult,
)

logger = structlog.get_logger()


DEFAULT_PATTERNS = [
    "**/*.py",
    "**/*.js",
    "**/*.jsx",
    "**/*.mjs",
    "**/*.cjs",
    "**/*.ts",
    "**/*.tsx",
]

DENY_DIRS = frozenset({
    "node_modules",
    ".git",
    "dist",
    "build",
    ".cache",
    "coverage",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
})
DENY_FILES = ("**/*.min.js", "**/*.bundle.js")

GLOB_CHARS = set("*?[")


@dataclass
class FileTarget:
    """A file selected for enforcement."""

    path: Path
    relative: str
    analyzer: LanguageAnalyzer
    root: Path | None = None  # run root that relative is computed against


@dataclass
class FileOutcome:
    """What processing one file produced."""

    result: FileAnalysisResult
    fix: FixResult | None = None
    cache_hit: bool = False


class LogEnforcer:
    """Enforces structured logging across a project.

    Args:
        config: Validated configuration (defaults when omitted)
        cache: Analysis cache handle; built from the config when omitted
        root: Project root that patterns and relative paths resolve against
    """

    def __init__(
        self,
        config: EnforcerConfig | None = None,
        cache: AnalysisCache | None = None,
        root: str | Path | None = None,
    ):
        self.config = config or build_config()
        self.root = Path(root or Path.cwd()).resolve()
        self.cache = cache if cache is not None else AnalysisCache.from_config(self.config, self.root)
        self.analyzers = build_analyzers(self.config, self.root)
        self._fingerprint = self.config.fingerprint()
        self._deny_files = PatternSet(DENY_FILES)
        self._logger = logger.bind(component="LogEnforcer")

    @classmethod
    def from_project(
        cls,
        root: str | Path | None = None,
        config_path: str | Path | None = None,
    ) -> "LogEnforcer":
        """Load the project's configuration and build an enforcer.

        Raises:
            ConfigurationError: Before any file is touched, if the
                configuration is invalid
        """
        return cls(load_config(config_path, root), root=root)

    def find_files(self, patterns: list[str] | None = None, root: str | Path | None = None) -> list[Path]:
        """Enumerate files under root matching the glob patterns.

        Deny-listed directories are pruned during the walk. A pattern
        without glob characters may name a file or a directory.
        """
        base = Path(root).resolve() if root else self.root
        include: list[str] = []
        found: list[Path] = []

        for pattern in patterns or DEFAULT_PATTERNS:
            pattern = normalize_path(pattern)
            if Path(pattern).is_absolute():
                absolute = Path(pattern)
                if not absolute.is_relative_to(base):
                    self._logger.warning("Pattern outside project root ignored", pattern=pattern, root=str(base))
                    continue
                pattern = absolute.relative_to(base).as_posix()

            if not GLOB_CHARS.intersection(pattern):
                target = base / pattern
                if target.is_file():
                    found.append(target)
                    continue
                if target.is_dir():
                    pattern = f"{pattern.rstrip('/')}/**/*"
            include.append(pattern)

        if include:
            matcher = PatternSet(include, anchored=True)
            cache_dir = self.cache.directory.resolve() if self.cache.enabled else None
            for dirpath, dirnames, filenames in os.walk(base):
                current = Path(dirpath)
                dirnames[:] = sorted(
                    d for d in dirnames
                    if d not in DENY_DIRS and (current / d).resolve() != cache_dir
                )
                relative_dir = current.relative_to(base)
                for name in sorted(filenames):
                    if matcher.matches((relative_dir / name).as_posix()):
                        found.append(current / name)

        return list(dict.fromkeys(found))

    def select_files(self, options: EnforceOptions, root: Path | None = None) -> list[FileTarget]:
        """Files to process, paired with their language analyzer.

        Unsupported extensions and disabled languages are dropped here and
        never show up in the stats.
        """
        base = root or self.root
        if options.files:
            candidates = [Path(f) if Path(f).is_absolute() else base / f for f in options.files]
            candidates = list(dict.fromkeys(candidates))
        else:
            candidates = self.find_files(options.patterns, base)

        targets = []
        for path in candidates:
            language = language_for(path)
            analyzer = self.analyzers.get(language) if language else None
            if analyzer is None:
                continue
            relative = self._relative(path, base)
            if self._denied(relative) or analyzer.is_excluded_path(relative):
                continue
            targets.append(FileTarget(path=path, relative=relative, analyzer=analyzer, root=base))
        return targets

    def process_file(self, target: FileTarget, options: EnforceOptions) -> FileOutcome:
        """Classify, consult the cache, detect and optionally fix one file."""
        analyzer = target.analyzer
        classification = analyzer.classify(target.relative)
        if classification.excluded:
            return FileOutcome(
                FileAnalysisResult.excluded_file(str(target.path), analyzer.language, classification.reason)
            )

        result, cache_hit = self._analyze(target)

        fix = None
        if options.fix and analyzer.settings.auto_fix and result.violations and not result.errored:
            fix = analyzer.fix(target.path, dry_run=options.dry_run, root=target.root)

        return FileOutcome(result=result, fix=fix, cache_hit=cache_hit)

    async def enforce(
        self,
        options: EnforceOptions | None = None,
        abort: asyncio.Event | None = None,
    ) -> EnforcementResult:
        """Run enforcement over the selected files.

        Args:
            options: File selection and fix flags
            abort: When set, no further batch is started

        Returns:
            EnforcementResult; ``success`` is false while any violation
            remains unresolved
        """
        options = options or EnforceOptions()
        started = time.perf_counter()
        stats = EnforcementStats()

        if not self.config.enabled:
            await self._logger.ainfo("Log enforcement disabled by configuration")
            return EnforcementResult(success=True, violations=[], stats=stats)

        root = Path(options.root).resolve() if options.root else self.root
        targets = self.select_files(options, root)
        batch_size = self.config.performance.parallelism

        await self._logger.ainfo(
            "Enforcing logging standards",
            root=str(root),
            files=len(targets),
            parallelism=batch_size,
            fix=options.fix,
            dry_run=options.dry_run,
        )

        outcomes: list[FileOutcome] = []
        for start in range(0, len(targets), batch_size):
            if abort is not None and abort.is_set():
                stats.aborted = True
                stats.files_skipped = len(targets) - start
                await self._logger.awarning(
                    "Enforcement aborted",
                    processed=start,
                    skipped=stats.files_skipped,
                )
                break

            batch = targets[start:start + batch_size]
            outcomes.extend(
                await asyncio.gather(
                    *(asyncio.to_thread(self._process_safely, target, options) for target in batch)
                )
            )

        result = self._aggregate(outcomes, stats)
        stats.time_elapsed_ms = int((time.perf_counter() - started) * 1000)

        await self._logger.ainfo(
            "Enforcement complete",
            success=result.success,
            files=stats.files_total,
            violations=stats.total_violations,
            errors=stats.files_errored,
            fixed=stats.files_fixed,
            cache_hits=stats.cache_hits,
            elapsed_ms=stats.time_elapsed_ms,
        )
        return result

    def clear_cache(self) -> int:
        return self.cache.clear()

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def _analyze(self, target: FileTarget) -> tuple[FileAnalysisResult, bool]:
        path = target.path
        try:
            mtime = path.stat().st_mtime_ns
        except OSError as e:
            return FileAnalysisResult.failed(str(path), target.analyzer.language, e), False

        entry = self.cache.get(str(path), mtime, self._fingerprint)
        if entry is not None:
            self._logger.debug("Cache hit", file=target.relative)
            return entry.payload, True

        result = target.analyzer.detect(path)
        # Parse errors are a function of the content; checker and I/O failures may be transient
        if result.error is None or result.error_type == "ParseError":
            self.cache.set(str(path), mtime, self._fingerprint, result)
        return result, False

    def _process_safely(self, target: FileTarget, options: EnforceOptions) -> FileOutcome:
        try:
            return self.process_file(target, options)
        except Exception as e:
            self._logger.exception("Unexpected failure processing file", file=str(target.path))
            return FileOutcome(FileAnalysisResult.failed(str(target.path), target.analyzer.language, e))

    def _aggregate(self, outcomes: list[FileOutcome], stats: EnforcementStats) -> EnforcementResult:
        violations = []
        results = []
        fixes = []

        for outcome in outcomes:
            result = outcome.result
            results.append(result)
            stats.files_total += 1
            if outcome.cache_hit:
                stats.cache_hits += 1

            if result.excluded:
                stats.files_excluded += 1
                reason = result.exclusion_reason.value if result.exclusion_reason else "unknown"
                stats.exclusion_reasons[reason] = stats.exclusion_reasons.get(reason, 0) + 1
                continue

            if result.errored:
                stats.files_errored += 1
                continue

            stats.files_analyzed += 1
            if not result.has_violations:
                continue

            stats.files_with_violations += 1
            stats.violations_found += len(result.violations)
            for violation in result.violations:
                stats.violations_by_type[violation.label] = stats.violations_by_type.get(violation.label, 0) + 1

            fix = outcome.fix
            if fix is not None:
                fixes.append(fix)
                if fix.modified:
                    stats.files_fixed += 1
                    stats.total_changes += len(fix.changes)
                elif not fix.success:
                    stats.fix_failures += 1

            if fix is None or not fix.written:
                violations.extend(result.violations)

        stats.total_violations = len(violations)
        return EnforcementResult(
            success=stats.total_violations == 0,
            violations=violations,
            stats=stats,
            results=results,
            fixes=fixes,
        )

    def _relative(self, path: Path, base: Path) -> str:
        resolved = path.resolve()
        if resolved.is_relative_to(base):
            return resolved.relative_to(base).as_posix()
        return normalize_path(path)

    def _denied(self, relative: str) -> bool:
        parts = relative.split("/")
        return any(part in DENY_DIRS for part in parts[:-1]) or self._deny_files.matches(relative)
