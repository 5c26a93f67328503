"""Project-level enforcement engine.

This module implements the run-level components:
- Analysis Cache: Persistent (path, mtime, config) keyed results
- Orchestrator: Bounded-concurrency batches over the per-file pipeline
"""

from .cache import (
    AnalysisCache,
    cache_key,
)
from .orchestrator import (
    DEFAULT_PATTERNS,
    DENY_DIRS,
    FileOutcome,
    FileTarget,
    LogEnforcer,
)

__all__ = [
    # Cache
    "AnalysisCache",
    "cache_key",
    # Orchestrator
    "DEFAULT_PATTERNS",
    "DENY_DIRS",
    "FileOutcome",
    "FileTarget",
    "LogEnforcer",
]
