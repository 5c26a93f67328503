"""Log Call Detector - shared scanning pipeline for every language family.

The Detector:
1. Parses source with the language's tree-sitter grammar
2. Rejects files that are not syntactically valid
3. Collects disallowed logging call-sites, honouring suppression comments
4. Records which structured-logger imports and instances the module has
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from tree_sitter import Node, Tree

from log_enforcer.audit.analyzer import SourceText, first_error, parse_bytes
from log_enforcer.audit.interpreter import ExternalValidator
from log_enforcer.config import EnforcerConfig, RuleSettings
from log_enforcer.errors import LogEnforcerError, ParseError
from log_enforcer.models import FileAnalysisResult, Violation, ViolationKind

logger = structlog.get_logger()


@dataclass
class CallSite:
    """A detected call together with the nodes a fixer rewrites."""

    violation: Violation
    call: Node
    callee: Node
    arguments: Node | None = None


@dataclass
class LoggerImport:
    """A module-scope import of a structured logging library."""

    backend: str
    line: int
    module_binding: str | None = None  # local name bound to the module itself
    named: dict[str, str] = field(default_factory=dict)  # exported name -> local name
    end_line: int = 0  # last line of the module-level statement holding the import


@dataclass
class LoggerPresence:
    """Logger imports, module-scope logger instances and bound names of a file."""

    imports: list[LoggerImport] = field(default_factory=list)
    instances: list[str] = field(default_factory=list)
    # instance name -> first line of the module-level statement defining it
    instance_lines: dict[str, int] = field(default_factory=dict)
    # every name bound at module scope, loggers or not
    bindings: set[str] = field(default_factory=set)

    @property
    def has_import(self) -> bool:
        return bool(self.imports)

    @property
    def has_instance(self) -> bool:
        return bool(self.instances)

    @property
    def instance_name(self) -> str | None:
        return self.instances[0] if self.instances else None

    def add_instance(self, name: str, line: int = 0) -> None:
        if name not in self.instances:
            self.instances.append(name)
            self.instance_lines[name] = line


@dataclass
class ScanReport:
    """Everything one scan learned about a file."""

    language: str
    source: SourceText
    tree: Tree
    calls: list[CallSite]
    presence: LoggerPresence

    @property
    def violations(self) -> list[Violation]:
        return [c.violation for c in self.calls]


class LogCallDetector(ABC):
    """Detects ad-hoc logging calls in one language family.

    Subclasses provide the grammar choice, the call matcher and the
    logger presence rules. Detection never raises: parse and I/O failures
    become an errored FileAnalysisResult.
    """

    language: str = ""
    kind: ViolationKind

    def __init__(
        self,
        config: EnforcerConfig,
        language: str | None = None,
        validator: ExternalValidator | None = None,
    ):
        self.config = config
        self.language = language or self.language
        self.settings = config.language_settings(self.language)
        self.sentinel = config.suppression.disable_comment
        self.validator = validator
        self._logger = logger.bind(component=type(self).__name__, language=self.language)

    @property
    @abstractmethod
    def rule(self) -> RuleSettings:
        """Rule settings governing this detector's violation kind."""

    @abstractmethod
    def grammar_for(self, path: Path) -> str:
        """Tree-sitter grammar name for a file."""

    @abstractmethod
    def _find_calls(self, root: Node, source: SourceText, file_path: str) -> list[CallSite]:
        """All disallowed calls, before suppression filtering."""

    @abstractmethod
    def _find_presence(self, root: Node, source: SourceText) -> LoggerPresence:
        """Module-scope logger imports and instances."""

    def detect_file(self, file_path: str | Path) -> FileAnalysisResult:
        """Detect violations in a file on disk.

        Runs the external checker when one is configured.
        """
        path = Path(file_path)
        try:
            data = path.read_bytes()
            report = self.scan(data, path)
            if self.validator is not None:
                self.validator.check(path)
        except (LogEnforcerError, OSError) as e:
            self._logger.debug("Detection failed", file=str(path), error=str(e))
            return FileAnalysisResult.failed(str(path), self.language, e)

        return self._to_result(str(path), report)

    def detect_source(self, code: str, file_path: str = "<string>") -> FileAnalysisResult:
        """Detect violations in source text."""
        try:
            report = self.scan(code.encode("utf-8"), Path(file_path))
        except LogEnforcerError as e:
            return FileAnalysisResult.failed(file_path, self.language, e)

        return self._to_result(file_path, report)

    def scan(self, data: bytes, path: Path) -> ScanReport:
        """Parse and scan source bytes.

        Raises:
            ParseError: If the source is not valid UTF-8 or does not parse
        """
        try:
            source = SourceText(data)
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid UTF-8 (byte {e.start}: {e.reason})") from e

        tree = parse_bytes(data, self.grammar_for(path))
        self._check_syntax(tree, source, path)

        calls: list[CallSite] = []
        if self.rule.enabled:
            calls = [
                call
                for call in self._find_calls(tree.root_node, source, str(path))
                if not source.is_suppressed(call.violation.line, self.sentinel)
            ]
            calls.sort(key=lambda c: c.violation.sort_key)

        presence = self._find_presence(tree.root_node, source)
        return ScanReport(
            language=self.language,
            source=source,
            tree=tree,
            calls=calls,
            presence=presence,
        )

    def _check_syntax(self, tree: Tree, source: SourceText, path: Path) -> None:
        error_node = first_error(tree.root_node)
        if error_node is not None:
            line = error_node.start_point[0] + 1
            raise ParseError(f"Syntax error at line {line}", line=line)

    def _violation(
        self,
        node: Node,
        source: SourceText,
        file_path: str,
        message: str,
        method: str | None,
        level: str,
    ) -> Violation:
        line, column = source.location(node)
        return Violation(
            file_path=file_path,
            line=line,
            column=column,
            kind=self.kind,
            message=self.rule.message or message,
            method=method,
            severity=self.rule.severity or self.settings.severity,
            level=level,
        )

    def _to_result(self, file_path: str, report: ScanReport) -> FileAnalysisResult:
        result = FileAnalysisResult(
            file_path=file_path,
            language=self.language,
            violations=report.violations,
            has_logger_import=report.presence.has_import,
            has_logger_instance=report.presence.has_instance,
            logger_names=list(report.presence.instances),
        )
        self._logger.debug(
            "File analyzed",
            file=file_path,
            violations=len(result.violations),
            has_logger_import=result.has_logger_import,
            has_logger_instance=result.has_logger_instance,
        )
        return result
