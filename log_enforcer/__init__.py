"""Log Enforcer - replaces ad-hoc print/console logging with structured loggers.

Scans Python, JavaScript and TypeScript projects for print() and console.*
calls, reports them, and can rewrite them to a module-level structured
logger (logging, structlog, loguru, winston, pino, bunyan, log4js).
"""

from .config import EnforcerConfig, build_config, load_config
from .engine import AnalysisCache, LogEnforcer
from .errors import (
    CacheCorruptionError,
    ConfigurationError,
    ExternalInterpreterFailure,
    LogEnforcerError,
    ParseError,
    RegenerationError,
)
from .models import EnforceOptions, EnforcementResult

__version__ = "0.1.0"

__all__ = [
    "AnalysisCache",
    "CacheCorruptionError",
    "ConfigurationError",
    "EnforceOptions",
    "EnforcementResult",
    "EnforcerConfig",
    "ExternalInterpreterFailure",
    "LogEnforcer",
    "LogEnforcerError",
    "ParseError",
    "RegenerationError",
    "build_config",
    "load_config",
]
