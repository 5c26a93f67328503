"""Exclusion classifier: decides whether a file is exempt from enforcement."""

from dataclasses import dataclass
from pathlib import PurePath

import structlog

from log_enforcer.audit.patterns import PatternSet
from log_enforcer.models import ExclusionReason

logger = structlog.get_logger()


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one path."""

    excluded: bool
    reason: ExclusionReason | None = None
    pattern: str | None = None


NOT_EXCLUDED = Classification(excluded=False)


class ExclusionClassifier:
    """Glob-based exemption policy for test files and CLI entry points.

    Test-file patterns are checked before CLI-file patterns and the first
    match wins. Classification is a pure function of the path string and
    the configured patterns; the filesystem is never touched.
    """

    def __init__(self, test_patterns: list[str], cli_patterns: list[str]):
        self._rules = [
            (ExclusionReason.TEST_FILE, PatternSet(test_patterns)),
            (ExclusionReason.CLI_FILE, PatternSet(cli_patterns)),
        ]

    def classify(self, file_path: str | PurePath) -> Classification:
        for reason, patterns in self._rules:
            pattern = patterns.first_match(file_path)
            if pattern is not None:
                logger.debug("File excluded", file=str(file_path), reason=reason.value, pattern=pattern)
                return Classification(excluded=True, reason=reason, pattern=pattern)
        return NOT_EXCLUDED
