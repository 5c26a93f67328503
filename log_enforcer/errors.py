"""Error taxonomy for the log enforcement engine.

Only ConfigurationError is allowed to abort a run. Every other class is
caught at the per-file boundary and recorded on that file's result.
"""


class LogEnforcerError(Exception):
    """Base class for all engine errors."""

    @property
    def error_type(self) -> str:
        return type(self).__name__


class ConfigurationError(LogEnforcerError):
    """Configuration file is unreadable or fails schema validation."""


class ParseError(LogEnforcerError):
    """Source file is not syntactically valid in its language."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


class RegenerationError(LogEnforcerError):
    """Rewritten source no longer parses."""


class CacheCorruptionError(LogEnforcerError):
    """Cache index or payload blob could not be read."""


class ExternalInterpreterFailure(LogEnforcerError):
    """External syntax checker exited non-zero, timed out, or could not start."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.timed_out = timed_out
