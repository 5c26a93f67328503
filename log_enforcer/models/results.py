"""Result models produced by detectors, fixers and the orchestrator.

These are created per invocation. Only FileAnalysisResult outlives a run,
serialized through to_dict()/from_dict() into the analysis cache.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ViolationKind(str, Enum):
    """Kinds of disallowed logging calls."""

    PRINT_STATEMENT = "print_statement"  # Python print(...)
    CONSOLE_USAGE = "console_usage"  # JS/TS console.<method>(...)


class ExclusionReason(str, Enum):
    """Why a file was exempted from enforcement."""

    TEST_FILE = "test_file"
    CLI_FILE = "cli_file"


class FixChangeType(str, Enum):
    """Kinds of edits a fixer makes."""

    CALL_REWRITE = "call_rewrite"
    IMPORT_ADDED = "import_added"
    LOGGER_INSTANCE_ADDED = "logger_instance_added"


@dataclass
class Violation:
    """One disallowed ad-hoc logging call-site."""

    file_path: str
    line: int
    column: int
    kind: ViolationKind
    message: str
    method: str | None = None
    severity: str = "error"
    level: str = "info"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.line, self.column)

    @property
    def label(self) -> str:
        """Short call label, e.g. ``print()`` or ``console.warn()``."""
        if self.kind == ViolationKind.PRINT_STATEMENT:
            return "print()"
        return f"console.{self.method}()"

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "line": self.line,
            "column": self.column,
            "kind": self.kind.value,
            "method": self.method,
            "message": self.message,
            "severity": self.severity,
            "level": self.level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        return cls(
            file_path=data["file_path"],
            line=int(data["line"]),
            column=int(data["column"]),
            kind=ViolationKind(data["kind"]),
            message=data.get("message", ""),
            method=data.get("method"),
            severity=data.get("severity", "error"),
            level=data.get("level", "info"),
        )


@dataclass
class FileAnalysisResult:
    """Complete analysis of a single file."""

    file_path: str
    language: str = ""
    excluded: bool = False
    exclusion_reason: ExclusionReason | None = None
    violations: list[Violation] = field(default_factory=list)
    has_logger_import: bool = False
    has_logger_instance: bool = False
    logger_names: list[str] = field(default_factory=list)
    error: str | None = None
    error_type: str | None = None

    def __post_init__(self) -> None:
        if self.excluded and self.violations:
            raise ValueError("excluded results cannot carry violations")

    @property
    def has_violations(self) -> bool:
        return bool(self.violations)

    @property
    def errored(self) -> bool:
        return self.error is not None

    @classmethod
    def excluded_file(cls, file_path: str, language: str, reason: ExclusionReason) -> "FileAnalysisResult":
        return cls(file_path=file_path, language=language, excluded=True, exclusion_reason=reason)

    @classmethod
    def failed(cls, file_path: str, language: str, error: Exception) -> "FileAnalysisResult":
        """Result for a file that could not be analyzed."""
        return cls(
            file_path=file_path,
            language=language,
            error=str(error),
            error_type=getattr(error, "error_type", type(error).__name__),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "language": self.language,
            "excluded": self.excluded,
            "exclusion_reason": self.exclusion_reason.value if self.exclusion_reason else None,
            "violations": [v.to_dict() for v in self.violations],
            "has_logger_import": self.has_logger_import,
            "has_logger_instance": self.has_logger_instance,
            "logger_names": list(self.logger_names),
            "error": self.error,
            "error_type": self.error_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileAnalysisResult":
        reason = data.get("exclusion_reason")
        return cls(
            file_path=data["file_path"],
            language=data.get("language", ""),
            excluded=bool(data.get("excluded", False)),
            exclusion_reason=ExclusionReason(reason) if reason else None,
            violations=[Violation.from_dict(v) for v in data.get("violations", [])],
            has_logger_import=bool(data.get("has_logger_import", False)),
            has_logger_instance=bool(data.get("has_logger_instance", False)),
            logger_names=list(data.get("logger_names", [])),
            error=data.get("error"),
            error_type=data.get("error_type"),
        )


@dataclass
class CacheEntry:
    """A cached analysis keyed by (path, mtime, config) fingerprint."""

    key: str
    file_path: str
    timestamp: float
    payload: FileAnalysisResult


@dataclass
class FixChange:
    """A single edit made by a fixer."""

    line: int
    column: int
    old: str
    new: str
    type: FixChangeType

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "old": self.old,
            "new": self.new,
            "type": self.type.value,
        }


@dataclass
class FixResult:
    """Outcome of fixing one file."""

    file_path: str
    success: bool
    changes: list[FixChange] = field(default_factory=list)
    original_content: str = ""
    fixed_content: str = ""
    error: str | None = None
    written: bool = False

    @property
    def modified(self) -> bool:
        return self.success and bool(self.changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "success": self.success,
            "changes": [c.to_dict() for c in self.changes],
            "error": self.error,
            "written": self.written,
        }


@dataclass
class EnforceOptions:
    """Options the CLI collaborator builds from its flags."""

    patterns: list[str] | None = None
    files: list[str | Path] | None = None
    root: Path | None = None
    fix: bool = False
    dry_run: bool = False


@dataclass
class EnforcementStats:
    """Aggregate counters for one enforcement run."""

    files_total: int = 0
    files_analyzed: int = 0
    files_excluded: int = 0
    files_errored: int = 0
    files_with_violations: int = 0
    total_violations: int = 0
    violations_found: int = 0
    files_fixed: int = 0
    total_changes: int = 0
    fix_failures: int = 0
    cache_hits: int = 0
    files_skipped: int = 0
    aborted: bool = False
    time_elapsed_ms: int = 0
    exclusion_reasons: dict[str, int] = field(default_factory=dict)
    violations_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_total": self.files_total,
            "files_analyzed": self.files_analyzed,
            "files_excluded": self.files_excluded,
            "files_errored": self.files_errored,
            "files_with_violations": self.files_with_violations,
            "total_violations": self.total_violations,
            "violations_found": self.violations_found,
            "files_fixed": self.files_fixed,
            "total_changes": self.total_changes,
            "fix_failures": self.fix_failures,
            "cache_hits": self.cache_hits,
            "files_skipped": self.files_skipped,
            "aborted": self.aborted,
            "time_elapsed_ms": self.time_elapsed_ms,
            "exclusion_reasons": dict(self.exclusion_reasons),
            "violations_by_type": dict(self.violations_by_type),
        }


@dataclass
class EnforcementResult:
    """Structured result handed to the external reporter."""

    success: bool
    violations: list[Violation]
    stats: EnforcementStats
    results: list[FileAnalysisResult] = field(default_factory=list)
    fixes: list[FixResult] = field(default_factory=list)

    @property
    def errors(self) -> list[FileAnalysisResult]:
        return [r for r in self.results if r.errored]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "violations": [v.to_dict() for v in self.violations],
            "stats": self.stats.to_dict(),
            "errors": [
                {"file_path": r.file_path, "error": r.error, "error_type": r.error_type}
                for r in self.errors
            ],
            "fixes": [f.to_dict() for f in self.fixes],
        }
