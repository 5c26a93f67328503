"""Data models for the log enforcement engine."""

from .results import (
    CacheEntry,
    EnforceOptions,
    EnforcementResult,
    EnforcementStats,
    ExclusionReason,
    FileAnalysisResult,
    FixChange,
    FixChangeType,
    FixResult,
    Violation,
    ViolationKind,
)

__all__ = [
    "CacheEntry",
    "EnforceOptions",
    "EnforcementResult",
    "EnforcementStats",
    "ExclusionReason",
    "FileAnalysisResult",
    "FixChange",
    "FixChangeType",
    "FixResult",
    "Violation",
    "ViolationKind",
]
