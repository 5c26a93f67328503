"""Configuration schema and loader for the log enforcer.

The schema is validated once per run and merged over the built-in defaults.
Keys may be written in camelCase (the historical JSON format) or snake_case.
Unknown keys are rejected at every level.
"""

import hashlib
import json
import tomllib
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from log_enforcer.errors import ConfigurationError

logger = structlog.get_logger()


Severity = Literal["error", "warning", "info"]

CONFIG_FILENAMES = (
    ".log-enforcer.json",
    ".enforcement/log-enforcer.json",
)
PYPROJECT_TABLES = ("log-enforcer", "log_enforcer")

DEFAULT_DISABLE_COMMENT = "log-enforcer-disable-next-line"
DEFAULT_STRIP_SEGMENTS = ("src", "lib", "components", "utils", "services")

PYTHON_TEST_PATTERNS = (
    "**/test_*.py",
    "**/*_test.py",
    "**/tests/**/*.py",
    "**/testing/**/*.py",
)
PYTHON_CLI_PATTERNS = (
    "**/cli.py",
    "**/cli/**/*.py",
    "**/__main__.py",
    "**/scripts/**/*.py",
)
JAVASCRIPT_TEST_PATTERNS = (
    "**/*.test.js",
    "**/*.test.ts",
    "**/*.test.jsx",
    "**/*.test.tsx",
    "**/*.spec.js",
    "**/*.spec.ts",
    "**/tests/**/*.js",
    "**/tests/**/*.ts",
    "**/__tests__/**/*.js",
    "**/__tests__/**/*.ts",
)
JAVASCRIPT_CLI_PATTERNS = (
    "**/cli.js",
    "**/cli.ts",
    "**/cli/**/*.js",
    "**/cli/**/*.ts",
    "**/scripts/**/*.js",
    "**/scripts/**/*.ts",
    "**/bin/**/*.js",
    "**/bin/**/*.ts",
)


class _Schema(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LanguageSettings(_Schema):
    """Settings shared by every language family."""

    enabled: bool = True
    severity: Severity = "error"
    auto_fix: bool = True
    exclude_patterns: list[str] = Field(default_factory=list)
    test_file_patterns: list[str] = Field(default_factory=list)
    cli_file_patterns: list[str] = Field(default_factory=list)
    logger_variable_name: str = "logger"
    naming_strategy: Literal["fixed", "module"] = "fixed"
    strip_segments: list[str] = Field(default_factory=lambda: list(DEFAULT_STRIP_SEGMENTS))
    validator_command: list[str] | None = None

    @field_validator("logger_variable_name")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"'{value}' is not a valid identifier")
        return value

    @field_validator("validator_command")
    @classmethod
    def _check_command(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            raise ValueError("validator_command must name an executable")
        return value


class PythonSettings(LanguageSettings):
    test_file_patterns: list[str] = Field(default_factory=lambda: list(PYTHON_TEST_PATTERNS))
    cli_file_patterns: list[str] = Field(default_factory=lambda: list(PYTHON_CLI_PATTERNS))
    preferred_logger: Literal["logging", "structlog", "loguru"] = "logging"


class JavaScriptSettings(LanguageSettings):
    test_file_patterns: list[str] = Field(default_factory=lambda: list(JAVASCRIPT_TEST_PATTERNS))
    cli_file_patterns: list[str] = Field(default_factory=lambda: list(JAVASCRIPT_CLI_PATTERNS))
    preferred_logger: Literal["winston", "pino", "bunyan", "log4js"] = "winston"
    module_style: Literal["auto", "esm", "commonjs"] = "auto"


class LanguagesSettings(_Schema):
    python: PythonSettings = Field(default_factory=PythonSettings)
    javascript: JavaScriptSettings = Field(default_factory=JavaScriptSettings)
    # None inherits the javascript table
    typescript: JavaScriptSettings | None = None


class RuleSettings(_Schema):
    enabled: bool = True
    severity: Severity | None = None
    message: str | None = None


class ConsoleRuleSettings(RuleSettings):
    allowed_methods: list[str] = Field(default_factory=list)


class RulesSettings(_Schema):
    no_print_statements: RuleSettings = Field(default_factory=RuleSettings)
    no_console_usage: ConsoleRuleSettings = Field(default_factory=ConsoleRuleSettings)


class PerformanceSettings(_Schema):
    enable_cache: bool = True
    cache_directory: str = ".log-enforcer-cache"
    cache_ttl_hours: float = Field(default=24.0, gt=0)
    parallelism: int = Field(default=4, ge=1, le=16)
    interpreter_timeout: float = Field(default=10.0, gt=0)


class SuppressionSettings(_Schema):
    disable_comment: str = Field(default=DEFAULT_DISABLE_COMMENT, min_length=1)


class ReportingSettings(_Schema):
    """Consumed by the external reporter; the engine only carries it."""

    format: Literal["text", "json", "markdown"] = "text"
    output_file: str | None = None
    verbose: bool = False


class EnforcerConfig(BaseSettings):
    """Top-level log enforcer configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_ENFORCER_",
        env_nested_delimiter="__",
        extra="forbid",
        case_sensitive=False,
    )

    enabled: bool = True
    languages: LanguagesSettings = Field(default_factory=LanguagesSettings)
    rules: RulesSettings = Field(default_factory=RulesSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    suppression: SuppressionSettings = Field(default_factory=SuppressionSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)

    def language_settings(self, language: str) -> PythonSettings | JavaScriptSettings:
        """Settings for a language family, resolving typescript inheritance."""
        if language == "python":
            return self.languages.python
        if language == "typescript" and self.languages.typescript is not None:
            return self.languages.typescript
        if language in ("javascript", "typescript"):
            return self.languages.javascript
        raise KeyError(f"Unknown language family: {language}")

    @property
    def cache_ttl_seconds(self) -> float:
        return self.performance.cache_ttl_hours * 3600

    def fingerprint(self) -> str:
        """Stable digest of the active configuration, used in cache keys."""
        normalized = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(normalized.encode()).hexdigest()


def build_config(data: dict[str, Any] | None = None) -> EnforcerConfig:
    """Validate raw configuration data and merge it over the defaults."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration must be a mapping, got {type(data).__name__}"
        )

    try:
        return EnforcerConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid log enforcer configuration:\n{e}") from e


def load_config(
    config_path: str | Path | None = None,
    root: str | Path | None = None,
) -> EnforcerConfig:
    """Locate, read and validate the project configuration.

    Args:
        config_path: Explicit config file; must exist when given
        root: Project root searched for the default config locations

    Returns:
        Validated configuration (defaults when no file is found)

    Raises:
        ConfigurationError: If the file is unreadable or fails validation
    """
    root_path = Path(root) if root else Path.cwd()

    if config_path is not None:
        path = Path(config_path)
        if not path.is_absolute():
            path = root_path / path
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        return _load_from(path)

    for name in CONFIG_FILENAMES:
        candidate = root_path / name
        if candidate.is_file():
            return _load_from(candidate)

    pyproject = root_path / "pyproject.toml"
    if pyproject.is_file():
        table = _read_pyproject_table(pyproject)
        if table is not None:
            logger.debug("Loaded configuration", source=str(pyproject))
            return build_config(table)

    logger.debug("No configuration file found, using defaults", root=str(root_path))
    return build_config({})


def _load_from(path: Path) -> EnforcerConfig:
    if path.suffix == ".toml":
        data = _read_pyproject_table(path) or {}
    else:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e

    logger.debug("Loaded configuration", source=str(path))
    return build_config(data)


def _read_pyproject_table(path: Path) -> dict[str, Any] | None:
    try:
        with path.open("rb") as f:
            document = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"{path} is not valid TOML: {e}") from e

    tool = document.get("tool", {})
    for table in PYPROJECT_TABLES:
        if table in tool:
            return tool[table]
    return None
