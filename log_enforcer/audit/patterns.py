"""Glob pattern matching on path strings.

Supports ``**`` (any number of directories), ``*`` (within one segment)
and ``?`` (one character). Patterns are matched against the whole path or
any suffix of it that starts at a ``/`` boundary, so relative patterns
such as ``**/tests/**/*.py`` also apply to absolute paths.
"""

import re
from functools import lru_cache
from pathlib import PurePath


def normalize_path(path: str | PurePath) -> str:
    """Forward-slash form of a path string."""
    return str(path).replace("\\", "/")


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str, anchored: bool = False) -> re.Pattern[str]:
    """Translate a glob pattern into a regular expression.

    With ``anchored`` the pattern must match from the start of the path
    instead of at any directory boundary.
    """
    pattern = normalize_path(pattern)
    if pattern.startswith("./"):
        pattern = pattern[2:]
    parts: list[str] = []
    i, n = 0, len(pattern)

    while i < n:
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("/**", i) and i + 3 == n:
            parts.append("(?:/.*)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1

    prefix = "" if anchored else "(?:.*/)?"
    return re.compile(prefix + "".join(parts))


class PatternSet:
    """An ordered set of glob patterns."""

    def __init__(self, patterns: list[str] | tuple[str, ...] = (), anchored: bool = False):
        self.patterns = list(patterns)
        self._compiled = [(p, glob_to_regex(p, anchored)) for p in self.patterns]

    def first_match(self, path: str | PurePath) -> str | None:
        """Return the first pattern matching the path, if any."""
        normalized = normalize_path(path)
        for pattern, regex in self._compiled:
            if regex.fullmatch(normalized):
                return pattern
        return None

    def matches(self, path: str | PurePath) -> bool:
        return self.first_match(path) is not None

    def __len__(self) -> int:
        return len(self.patterns)
